"""Typed view of cargo's ``--message-format json`` stream.

Cargo writes one JSON object per line, tagged by a "reason" field. Each line
is turned into one of the message dataclasses below; lines that are not JSON
(cargo passes through anything a build script prints) become TextLine.

parse_stream() is a generator so the artifact pass can be consumed while
cargo is still writing it.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Union


@dataclass(frozen=True)
class CompilerArtifact:
    """A crate target cargo finished compiling (reason "compiler-artifact").

    Attributes:
        package_id: Cargo package id
        target_name: Crate name of the target (the name used with --extern)
        target_kinds: Target kinds, e.g. ("lib",) or ("proc-macro",)
        filenames: Files produced for the target
        fresh: Whether cargo reused a previous build
    """

    package_id: str
    target_name: str
    target_kinds: tuple[str, ...] = ()
    filenames: tuple[str, ...] = ()
    fresh: bool = False


@dataclass(frozen=True)
class CompilerMessage:
    """A rustc diagnostic (reason "compiler-message")."""

    package_id: str
    rendered: str = ""
    level: str = ""


@dataclass(frozen=True)
class BuildScriptExecuted:
    """A build script ran (reason "build-script-executed")."""

    package_id: str
    out_dir: str = ""
    cfgs: tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildFinished:
    """Final message of a cargo run (reason "build-finished")."""

    success: bool


@dataclass(frozen=True)
class TextLine:
    """A line that was not a JSON message."""

    text: str


@dataclass(frozen=True)
class UnknownMessage:
    """A JSON message with a reason this module does not model."""

    reason: str
    data: dict[str, Any] = field(default_factory=dict, compare=False)


Message = Union[CompilerArtifact, CompilerMessage, BuildScriptExecuted, BuildFinished, TextLine, UnknownMessage]


def _parse_artifact(data: dict[str, Any]) -> CompilerArtifact:
    target = data.get("target") or {}
    return CompilerArtifact(
        package_id=str(data.get("package_id", "")),
        target_name=str(target.get("name", "")),
        target_kinds=tuple(target.get("kind") or ()),
        filenames=tuple(data.get("filenames") or ()),
        fresh=bool(data.get("fresh", False)),
    )


def _parse_compiler_message(data: dict[str, Any]) -> CompilerMessage:
    message = data.get("message") or {}
    return CompilerMessage(
        package_id=str(data.get("package_id", "")),
        rendered=str(message.get("rendered") or ""),
        level=str(message.get("level") or ""),
    )


def _parse_build_script(data: dict[str, Any]) -> BuildScriptExecuted:
    return BuildScriptExecuted(
        package_id=str(data.get("package_id", "")),
        out_dir=str(data.get("out_dir") or ""),
        cfgs=tuple(data.get("cfgs") or ()),
    )


_PARSERS = {
    "compiler-artifact": _parse_artifact,
    "compiler-message": _parse_compiler_message,
    "build-script-executed": _parse_build_script,
    "build-finished": lambda data: BuildFinished(success=bool(data.get("success", False))),
}


def parse_message(line: str) -> Message:
    """Parse one line of cargo output.

    Never raises: malformed JSON and unexpected shapes degrade to TextLine.
    """
    text = line.rstrip("\r\n")
    stripped = text.strip()
    if not stripped.startswith("{"):
        return TextLine(text)
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return TextLine(text)
    if not isinstance(data, dict):
        return TextLine(text)

    reason = str(data.get("reason", ""))
    parser = _PARSERS.get(reason)
    if parser is None:
        return UnknownMessage(reason=reason, data=data)
    try:
        return parser(data)
    except (AttributeError, TypeError, ValueError):
        return TextLine(text)


def parse_stream(lines: Iterable[Union[str, bytes]]) -> Iterator[Message]:
    """Lazily parse cargo output, one message per input line."""
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        if not line.strip():
            continue
        yield parse_message(line)
