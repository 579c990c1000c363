"""
Pytest configuration for the hevc_shrink test suite.

Source modules live flat in src/ and are imported by name, so src/ goes on
sys.path before collection.
"""
import sys
from pathlib import Path

import pytest

src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def no_log_file_env(monkeypatch):
    """Keep a developer's HEVC_SHRINK_LOG_FILE from leaking into config tests."""
    monkeypatch.delenv('HEVC_SHRINK_LOG_FILE', raising=False)
