"""
Diagnostic output and cargo directive emission for confprobe.

Cargo reads a build script's stdout line by line and treats lines starting
with ``cargo:`` as instructions. Everything confprobe wants the build to see
is therefore written to stdout, and the same text is mirrored into the log
file in the staging directory, which is the audit trail of the run.

Example output:
    # OUT_DIR is '/target/debug/build/foo-1234/out'
    # checking for o_path
    # /src/foo/conf_tests/o_path.rs exists
    cargo:rerun-if-changed=/src/foo/conf_tests/o_path.rs
    # compiling ConfTest for o_path success
    # executing ConfTest for o_path success
    cargo:rustc-cfg=feature="o_path"

Usage:
    from confprobe.output import LogFile, emit_all, enable_feature

    with LogFile(config.log_path):
        emit_all(diagnostics)
"""

import sys
from pathlib import Path
from types import TracebackType
from typing import Iterable, Optional, TextIO

from .errors import StagingError

DIRECTIVE_PREFIX = "cargo:"

# Global output state
_output_stream: Optional[TextIO] = None
_output_file: Optional[TextIO] = None


def set_output_stream(output_stream: Optional[TextIO]) -> None:
    """
    Set the stream cargo reads directives from.

    Args:
        output_stream: Stream to write to, or None to restore sys.stdout
    """
    global _output_stream
    _output_stream = output_stream


def set_output_file(output_file: Optional[TextIO]) -> None:
    """
    Set a file to receive all output (in addition to the output stream).

    Args:
        output_file: File object to receive output, or None to disable file output
    """
    global _output_file
    _output_file = output_file


def get_output_file() -> Optional[TextIO]:
    return _output_file


def emit(text: str) -> None:
    """
    Write one diagnostic chunk verbatim to the stream and the log file.

    Args:
        text: Text to write, normally one newline-terminated line
    """
    stream = _output_stream if _output_stream is not None else sys.stdout
    stream.write(text)
    stream.flush()

    if _output_file is not None:
        _output_file.write(text)
        _output_file.flush()


def emit_all(lines: Iterable[str]) -> None:
    """Emit diagnostics in generation order."""
    for line in lines:
        emit(line)


def directive(key: str, value: str) -> str:
    """Format a cargo build script instruction."""
    return f"{DIRECTIVE_PREFIX}{key}={value}\n"


def enable_feature(feature: str) -> str:
    return directive("rustc-cfg", f'feature="{feature}"')


def rerun_if_changed(path: Path) -> str:
    return directive("rerun-if-changed", str(path))


def warning(message: str) -> str:
    return directive("warning", message)


def comment(message: str) -> str:
    """Informational line; cargo ignores anything not starting with 'cargo:'."""
    return f"# {message}\n"


def is_directive(line: str) -> bool:
    return line.startswith(DIRECTIVE_PREFIX)


def normalize_chunk(text: str) -> str:
    """Terminate captured probe output so the next line starts fresh."""
    if text and not text.endswith("\n"):
        return text + "\n"
    return text


class LogFile:
    """
    Context manager mirroring all output into a freshly created log file.

    Any log left by a previous run is overwritten.

    Usage:
        with LogFile(staging_dir / "conf_test.log"):
            emit(comment("checking for o_path"))
    """

    def __init__(self, path: Path):
        """
        Initialize the log file mirror.

        Args:
            path: Location of the log file
        """
        self.path = path
        self._file: Optional[TextIO] = None
        self._previous: Optional[TextIO] = None

    def __enter__(self) -> "LogFile":
        try:
            self._file = open(self.path, "w", encoding="utf-8")
        except OSError as e:
            raise StagingError(f"Failed to create logfile {self.path}: {e}") from e
        self._previous = get_output_file()
        set_output_file(self._file)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_type, exc_val, exc_tb  # Unused
        set_output_file(self._previous)
        if self._file is not None:
            self._file.close()
            self._file = None
        return None
