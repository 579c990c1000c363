#!/usr/bin/env python3
"""
Exception types raised by the conversion pipeline.

Only DependencyMissingError is allowed to escape the per-file loop; every other
error is converted into a skip or a rollback for the file being processed.
"""


class HevcShrinkError(Exception):
    """Base class for all pipeline errors."""


class DependencyMissingError(HevcShrinkError):
    """ffprobe or ffmpeg could not be executed. Fatal for the whole run."""

    def __init__(self, name, path=None):
        self.name = name
        self.path = path
        detail = f" (path: {path})" if path else ""
        super().__init__(f"Required dependency missing: {name}{detail}")


class FileAccessError(HevcShrinkError):
    """A requested input path does not exist or is not a readable file."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot access {path}: {reason}")


class InvalidBitrateError(HevcShrinkError):
    """Source bitrate is unknown or non-positive in bitrate-relative mode."""


class ExecutionError(HevcShrinkError):
    """The encoder did not produce a usable staging artifact."""


class StagingExistsError(HevcShrinkError):
    """A file already occupies the staging name; it was not created by this run."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Staging file already exists: {path}")
