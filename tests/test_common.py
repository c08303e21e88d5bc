#!/usr/bin/env python3
"""Tests for common.py - shared utilities.

Tests verify:
1. run_command execution and error handling
2. spawn_detached output redirection
3. tail_file
"""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from common import run_command, spawn_detached, tail_file


class TestRunCommand:
    """Test run_command utility."""

    def test_returns_success_tuple(self):
        """Should return (returncode, stdout, stderr) on success."""
        rc, stdout, stderr = run_command(['echo', 'hello'])
        assert rc == 0
        assert 'hello' in stdout
        assert stderr == ''

    def test_returns_failure_tuple(self):
        """Should return non-zero returncode on failure."""
        rc, stdout, stderr = run_command(['false'])
        assert rc != 0

    def test_respects_cwd(self, tmp_path):
        """Should run command in specified directory."""
        (tmp_path / 'marker.txt').write_text('found')
        rc, stdout, stderr = run_command(['cat', 'marker.txt'], cwd=tmp_path)
        assert rc == 0
        assert 'found' in stdout

    def test_timeout_returns_error(self):
        """Should return error on timeout."""
        rc, stdout, stderr = run_command(['sleep', '10'], timeout=1)
        assert rc == -1
        assert 'timed out' in stderr.lower()

    def test_missing_binary(self):
        """Should return error tuple when the binary does not exist."""
        rc, stdout, stderr = run_command(['/nonexistent/okteto', 'version'])
        assert rc == -1
        assert stderr


class TestSpawnDetached:
    """Test spawn_detached."""

    def test_output_goes_to_log(self, tmp_path):
        log_file = tmp_path / 'logs' / 'dev-frontend.log'
        process = spawn_detached(['sh', '-c', 'echo out; echo err >&2'], log_file)
        process.wait(timeout=10)
        content = log_file.read_text()
        assert 'out' in content
        assert 'err' in content

    def test_appends(self, tmp_path):
        log_file = tmp_path / 'app.log'
        log_file.write_text('previous\n')
        spawn_detached(['echo', 'next'], log_file).wait(timeout=10)
        assert log_file.read_text() == 'previous\nnext\n'

    def test_new_session(self, tmp_path):
        with patch('common.subprocess.Popen') as mock_popen:
            spawn_detached(['okteto', 'up'], tmp_path / 'app.log', cwd=tmp_path)
        kwargs = mock_popen.call_args[1]
        assert kwargs['start_new_session'] is True
        assert kwargs['cwd'] == tmp_path


class TestTailFile:
    """Test tail_file."""

    def test_tail(self, tmp_path):
        path = tmp_path / 'log'
        path.write_text('a\nb\nc\n')
        assert tail_file(path, 2) == 'b\nc'

    def test_missing(self, tmp_path):
        assert tail_file(tmp_path / 'missing') == ''
