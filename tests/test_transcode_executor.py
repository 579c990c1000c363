#!/usr/bin/env python3
"""
Unit tests for transcode_executor.py
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

import transcode_executor
from exceptions import DependencyMissingError, ExecutionError, StagingExistsError
from media_types import EncodingPlan, MediaFile

PLAN = EncodingPlan(
    encoder='libx265',
    parameters=('-c:v', 'libx265', '-preset', 'medium', '-crf', '24'),
    audio_parameters=('-c:a', 'copy'),
)


@pytest.fixture
def source(tmp_path):
    path = tmp_path / 'movie.mkv'
    path.write_bytes(b'x' * 4096)
    return MediaFile.from_path(path)


def writes_output(content=b'encoded'):
    """run_command side effect that writes the output file named last on the command line."""
    def _run(command_args, **kwargs):
        Path(command_args[-1]).write_bytes(content)
        return subprocess.CompletedProcess(command_args, 0, stdout='', stderr='')
    return _run


class TestStagingPaths:

    def test_staging_path(self):
        assert transcode_executor.staging_path_for(Path('/v/movie.mkv')) == Path('/v/movie_HEVC.mkv')
        assert transcode_executor.staging_path_for('/v/clip.final.mp4') == Path('/v/clip.final_HEVC.mp4')

    def test_is_staging_artifact(self):
        assert transcode_executor.is_staging_artifact('/v/movie_HEVC.mkv')
        assert not transcode_executor.is_staging_artifact('/v/movie.mkv')
        assert not transcode_executor.is_staging_artifact('/v/HEVC_movie.mkv')


class TestBuildCommand:

    def test_maps_all_streams_and_copies_non_video(self):
        cmd = transcode_executor.build_command(Path('/v/a.mkv'), Path('/v/a_HEVC.mkv'), PLAN, '/opt/ffmpeg')
        assert cmd[0] == '/opt/ffmpeg'
        assert cmd[cmd.index('-i') + 1] == '/v/a.mkv'
        assert cmd[cmd.index('-map') + 1] == '0'
        assert cmd[cmd.index('-map_metadata') + 1] == '0'
        assert cmd[cmd.index('-map_chapters') + 1] == '0'
        assert cmd[cmd.index('-c:s') + 1] == 'copy'
        assert cmd[cmd.index('-c:a') + 1] == 'copy'
        assert cmd[-1] == '/v/a_HEVC.mkv'

    def test_plan_parameters_are_kept_in_order(self):
        cmd = transcode_executor.build_command('in.mp4', 'in_HEVC.mp4', PLAN)
        start = cmd.index('-c:v')
        assert tuple(cmd[start:start + len(PLAN.parameters)]) == PLAN.parameters

    def test_never_overwrites_output(self):
        cmd = transcode_executor.build_command('in.mp4', 'in_HEVC.mp4', PLAN)
        assert '-n' in cmd
        assert '-y' not in cmd


class TestExecute:

    @patch('subprocess_utils.run_command')
    def test_success_returns_staging_path(self, mock_run, source):
        mock_run.side_effect = writes_output()

        staging = transcode_executor.execute(source, PLAN, ffmpeg_path='ffmpeg', timeout=30)

        assert staging == source.path.with_name('movie_HEVC.mkv')
        assert staging.read_bytes() == b'encoded'
        assert source.path.read_bytes() == b'x' * 4096
        kwargs = mock_run.call_args[1]
        assert kwargs['check'] is True
        assert kwargs['timeout'] == 30

    @patch('subprocess_utils.run_command')
    def test_nonzero_exit_raises_execution_error(self, mock_run, source):
        mock_run.side_effect = subprocess.CalledProcessError(1, ['ffmpeg'])

        with pytest.raises(ExecutionError, match='exited with code 1'):
            transcode_executor.execute(source, PLAN)

    @patch('subprocess_utils.run_command')
    def test_timeout_raises_execution_error(self, mock_run, source):
        mock_run.side_effect = subprocess.TimeoutExpired(['ffmpeg'], 5)

        with pytest.raises(ExecutionError, match='timed out'):
            transcode_executor.execute(source, PLAN, timeout=5)

    @patch('subprocess_utils.run_command')
    def test_missing_output_raises_execution_error(self, mock_run, source):
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout='', stderr='')

        with pytest.raises(ExecutionError, match='no output file'):
            transcode_executor.execute(source, PLAN)

    @patch('subprocess_utils.run_command')
    def test_empty_output_raises_execution_error(self, mock_run, source):
        mock_run.side_effect = writes_output(b'')

        with pytest.raises(ExecutionError, match='empty'):
            transcode_executor.execute(source, PLAN)

    @patch('subprocess_utils.run_command')
    def test_missing_ffmpeg_raises_dependency_error(self, mock_run, source):
        mock_run.side_effect = FileNotFoundError('ffmpeg')

        with pytest.raises(DependencyMissingError):
            transcode_executor.execute(source, PLAN, ffmpeg_path='/missing/ffmpeg')

    @patch('subprocess_utils.run_command')
    def test_runs_under_nice_on_posix(self, mock_run, source):
        mock_run.side_effect = writes_output()

        with patch.object(transcode_executor.sys, 'platform', 'linux'):
            transcode_executor.execute(source, PLAN)

        command_args = mock_run.call_args[0][0]
        assert command_args[:3] == ['nice', '-n', '10']
        assert command_args[3] == 'ffmpeg'

    @patch('subprocess_utils.run_command')
    def test_existing_staging_file_is_refused(self, mock_run, source):
        existing = source.path.with_name('movie_HEVC.mkv')
        existing.write_bytes(b'kept from an earlier run')

        with pytest.raises(StagingExistsError):
            transcode_executor.execute(source, PLAN)

        mock_run.assert_not_called()
        assert existing.read_bytes() == b'kept from an earlier run'

    @patch('subprocess_utils.run_command')
    def test_nice_without_ffmpeg_raises_dependency_error(self, mock_run, source):
        mock_run.side_effect = subprocess.CalledProcessError(127, ['nice'])

        with patch.object(transcode_executor.sys, 'platform', 'linux'):
            with pytest.raises(DependencyMissingError):
                transcode_executor.execute(source, PLAN, ffmpeg_path='/missing/ffmpeg')

        assert mock_run.call_count == 1

    @patch('subprocess_utils.run_command')
    def test_encoder_failure_under_nice_is_not_a_missing_dependency(self, mock_run, source):
        mock_run.side_effect = subprocess.CalledProcessError(1, ['nice'])

        with patch.object(transcode_executor.sys, 'platform', 'linux'):
            with pytest.raises(ExecutionError):
                transcode_executor.execute(source, PLAN)
