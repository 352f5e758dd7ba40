"""Artifact resolver.

Probes are compiled by calling rustc directly, so they need the compiled
dependencies of the crate handed to them as ``--extern name=path``. Those
are obtained by running ``cargo rustc -- --emit metadata`` into a private
target directory and reading cargo's JSON messages as they are produced.

Resolution rules:
    - Only artifacts whose crate name is one of the declared dependencies count
    - Each produced file is keyed by its stem (e.g. "liblibc-1a2b3c")
    - When several files share a stem the most linkable one wins:
      .rlib > .rmeta > anything else
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

import psutil

from .config import ProbeConfig, get_resolver_env
from .messages import CompilerArtifact, Message, parse_stream
from .subprocess_utils import format_command, safe_popen

logger = logging.getLogger(__name__)


class ArtifactKind(Enum):
    """Kind of a produced dependency file, by extension."""

    LINKABLE = "linkable-library"
    METADATA = "metadata-only"
    OTHER = "other"

    @classmethod
    def from_path(cls, path: Path) -> "ArtifactKind":
        suffix = path.suffix
        if suffix == ".rlib":
            return cls.LINKABLE
        if suffix == ".rmeta":
            return cls.METADATA
        return cls.OTHER

    @property
    def priority(self) -> int:
        return _KIND_PRIORITY[self]


_KIND_PRIORITY = {
    ArtifactKind.LINKABLE: 2,
    ArtifactKind.METADATA: 1,
    ArtifactKind.OTHER: 0,
}


@dataclass(frozen=True)
class Artifact:
    """A dependency file probes can link against.

    Attributes:
        ident: File stem, unique per artifact
        name: Crate name to use with --extern
        path: Location of the file
        kind: Kind derived from the file extension
    """

    ident: str
    name: str
    path: Path
    kind: ArtifactKind

    @classmethod
    def from_file(cls, name: str, filename: str) -> "Artifact":
        path = Path(filename)
        return cls(ident=path.stem, name=name, path=path, kind=ArtifactKind.from_path(path))

    @property
    def extern_arg(self) -> str:
        return f"{self.name}={self.path}"


ExternLibs = dict[str, Artifact]


def _normalize(name: str) -> str:
    return name.replace("-", "_")


def is_wanted(target_name: str, dependencies: Iterable[str]) -> bool:
    """Whether a compiled target belongs to one of the declared dependencies.

    Cargo reports library targets by crate name, where '-' in the package
    name has become '_', so names are compared in that form as well.
    """
    wanted = _normalize(target_name)
    return any(target_name == dep or wanted == _normalize(dep) for dep in dependencies)


def record_artifact(extern_libs: ExternLibs, artifact: Artifact) -> bool:
    """Insert an artifact unless a higher priority kind already holds its stem.

    Returns:
        True if the artifact was stored
    """
    stored = extern_libs.get(artifact.ident)
    if stored is not None and stored.kind.priority > artifact.kind.priority:
        return False
    extern_libs[artifact.ident] = artifact
    return True


def collect_artifacts(messages: Iterable[Message], dependencies: Iterable[str]) -> ExternLibs:
    """Build the stem -> artifact mapping from a stream of cargo messages."""
    dependencies = tuple(dependencies)
    extern_libs: ExternLibs = {}
    for message in messages:
        if not isinstance(message, CompilerArtifact):
            continue
        if not is_wanted(message.target_name, dependencies):
            continue
        for filename in message.filenames:
            artifact = Artifact.from_file(message.target_name, filename)
            if record_artifact(extern_libs, artifact):
                logger.debug(f"Artifact {artifact.ident}: {artifact.kind.value} {artifact.path}")
    return extern_libs


def resolver_command(config: ProbeConfig, target_dir: Path) -> list[str]:
    """Build the metadata-only cargo pass command line."""
    return [
        config.cargo,
        "--offline",
        "rustc",
        "--message-format",
        "json",
        "--target-dir",
        str(target_dir),
        "--",
        "--emit",
        "metadata",
    ]


def _terminate_tree(pid: int) -> None:
    """Terminate a process and all of its children (cargo spawns rustc)."""
    try:
        root = psutil.Process(pid)
        procs = root.children(recursive=True) + [root]
    except psutil.NoSuchProcess:
        return
    for proc in procs:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass
    _gone, alive = psutil.wait_procs(procs, timeout=3)
    for proc in alive:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass


def resolve_extern_libs(
    config: ProbeConfig,
    dependencies: Iterable[str],
) -> ExternLibs:
    """Run the metadata-only pass and resolve dependency artifacts.

    The pass writes into the staging directory so it never waits on the
    build lock of the enclosing cargo invocation. Its exit status is only
    logged; whatever artifacts were reported before a failure are used.

    Args:
        config: Probe configuration
        dependencies: Declared dependency names

    Returns:
        Mapping of artifact stem to Artifact
    """
    target_dir = config.staging_dir
    cmd = resolver_command(config, target_dir)
    logger.debug(f"Running: {format_command(cmd)}")

    cwd = config.manifest_dir
    try:
        proc = safe_popen(
            cmd,
            stdout=subprocess.PIPE,
            env=get_resolver_env(config.base_env),
            cwd=str(cwd) if cwd else None,
        )
    except OSError as e:
        logger.warning(f"Could not start artifact pass: {e}")
        return {}

    try:
        with proc.stdout:
            extern_libs = collect_artifacts(parse_stream(proc.stdout), dependencies)
        returncode = proc.wait()
    except KeyboardInterrupt:
        _terminate_tree(proc.pid)
        raise

    if returncode != 0:
        logger.debug(f"Artifact pass exited with {returncode}, using {len(extern_libs)} artifacts reported before that")
    return extern_libs
