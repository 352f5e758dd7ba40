"""Tests for subprocess_utils module."""

import subprocess
from unittest.mock import patch

from confprobe.subprocess_utils import format_command, get_subprocess_creation_flags, safe_popen, safe_run, tool_command


CREATE_NO_WINDOW = 0x08000000


def test_get_subprocess_creation_flags_windows():
    """Test that Windows returns CREATE_NO_WINDOW flag."""
    with patch("sys.platform", "win32"), patch("subprocess.CREATE_NO_WINDOW", CREATE_NO_WINDOW, create=True):
        assert get_subprocess_creation_flags() == CREATE_NO_WINDOW


def test_get_subprocess_creation_flags_linux():
    with patch("sys.platform", "linux"):
        assert get_subprocess_creation_flags() == 0


@patch("subprocess.run")
def test_safe_run_detaches_stdin(mock_run):
    """Probes and rustc never read from the build's terminal."""
    with patch("sys.platform", "linux"):
        safe_run(["rustc", "--version"], capture_output=True)

    call_kwargs = mock_run.call_args[1]
    assert call_kwargs["stdin"] == subprocess.DEVNULL
    assert "creationflags" not in call_kwargs
    assert "timeout" not in call_kwargs


@patch("subprocess.run")
def test_safe_run_keeps_explicit_stdin(mock_run):
    with patch("sys.platform", "linux"):
        safe_run(["cat"], stdin=subprocess.PIPE)
    assert mock_run.call_args[1]["stdin"] == subprocess.PIPE


@patch("subprocess.run")
def test_safe_run_merges_custom_creationflags(mock_run):
    custom_flag = 0x00000200
    with patch("sys.platform", "win32"), patch("subprocess.CREATE_NO_WINDOW", CREATE_NO_WINDOW, create=True):
        safe_run(["cargo"], creationflags=custom_flag)
    assert mock_run.call_args[1]["creationflags"] == custom_flag | CREATE_NO_WINDOW


@patch("subprocess.Popen")
def test_safe_popen_applies_defaults(mock_popen):
    with patch("sys.platform", "linux"):
        safe_popen(["cargo", "rustc"], stdout=subprocess.PIPE)
    call_kwargs = mock_popen.call_args[1]
    assert call_kwargs["stdin"] == subprocess.DEVNULL
    assert call_kwargs["stdout"] == subprocess.PIPE


def test_tool_command():
    assert tool_command({"RUSTC": "/opt/rustc"}, "RUSTC", "rustc") == "/opt/rustc"
    assert tool_command({}, "RUSTC", "rustc") == "rustc"
    assert tool_command({"RUSTC": ""}, "RUSTC", "rustc") == "rustc"


def test_format_command_posix():
    with patch("sys.platform", "linux"):
        assert format_command(["rustc", "--cfg", 'feature="x"']) == 'rustc --cfg feature="x"'
