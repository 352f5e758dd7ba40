"""Subprocess helpers shared by the metadata query, artifact pass and probes.

Every external tool confprobe starts goes through safe_run() or
safe_popen(). Both detach stdin so cargo, rustc and the probe binaries never
read from the terminal of the enclosing build, and both apply the
CREATE_NO_WINDOW flag on Windows.
"""

import subprocess
import sys
from typing import Any, Mapping, Optional


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _apply_defaults(kwargs: dict[str, Any]) -> dict[str, Any]:
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL

    return kwargs


def safe_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run with confprobe's defaults.

    Args:
        cmd: Command and arguments (same as subprocess.run)
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result from subprocess.run

    Note:
        An explicit 'creationflags' is OR'd with the platform default and an
        explicit 'stdin' is used as-is. No timeout is applied.
    """
    return subprocess.run(cmd, **_apply_defaults(kwargs))


def safe_popen(cmd: list[str], **kwargs: Any) -> subprocess.Popen:
    """Execute subprocess.Popen with confprobe's defaults.

    Used for the artifact pass, whose stdout is consumed while cargo is
    still running.
    """
    return subprocess.Popen(cmd, **_apply_defaults(kwargs))


def tool_command(environ: Mapping[str, str], var: str, default: str) -> str:
    """Return the tool named by an environment variable, or its default.

    Cargo exports CARGO and RUSTC to build scripts; outside of a build the
    plain tool names are looked up on PATH.
    """
    value: Optional[str] = environ.get(var)
    if value:
        return value
    return default


def format_command(cmd: list[str]) -> str:
    """Render a command line for debug logs."""
    if sys.platform == "win32":
        return subprocess.list2cmdline(cmd)
    return " ".join(cmd)
