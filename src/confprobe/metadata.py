"""Project metadata reader.

Queries ``cargo metadata`` for the crate being built and extracts the three
things the probing loop needs: declared feature names, declared dependency
names and the language edition.
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .config import ProbeConfig
from .errors import MetadataError
from .subprocess_utils import format_command, safe_run

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectMetadata:
    """Features, dependencies and edition collected across all packages.

    Attributes:
        features: Unique feature names, sorted
        dependencies: Unique dependency names, sorted (versions are dropped)
        edition: First edition declared by any package, None if none was
    """

    features: tuple[str, ...]
    dependencies: tuple[str, ...]
    edition: Optional[str]

    def edition_or(self, default: str) -> str:
        return self.edition if self.edition else default


def metadata_command(config: ProbeConfig) -> list[str]:
    """Build the `cargo metadata` command line.

    --no-deps keeps cargo from resolving the dependency graph and --frozen
    forbids touching the network or the lockfile.
    """
    cmd = [config.cargo, "metadata", "--format-version", "1", "--no-deps", "--frozen"]
    if config.manifest_dir is not None:
        cmd.extend(["--manifest-path", str(config.manifest_dir / "Cargo.toml")])
    return cmd


def parse_metadata(data: dict[str, Any]) -> ProjectMetadata:
    """Extract features, dependencies and edition from decoded metadata.

    Raises:
        MetadataError: If the document does not have cargo's shape
    """
    packages = data.get("packages")
    if not isinstance(packages, list):
        raise MetadataError("Querying cargo metadata failed: no 'packages' list")

    features: set[str] = set()
    dependencies: set[str] = set()
    edition: Optional[str] = None

    try:
        for package in packages:
            if edition is None and package.get("edition"):
                # first edition seen wins
                edition = str(package["edition"])
            features.update(package.get("features", {}))
            for dep in package.get("dependencies", []):
                dependencies.add(dep["name"])
    except (AttributeError, KeyError, TypeError) as e:
        raise MetadataError(f"Querying cargo metadata failed: malformed package entry: {e}") from e

    return ProjectMetadata(
        features=tuple(sorted(features)),
        dependencies=tuple(sorted(dependencies)),
        edition=edition,
    )


def read_metadata(config: ProbeConfig) -> ProjectMetadata:
    """Run `cargo metadata` and parse its output.

    Args:
        config: Probe configuration (cargo command, manifest dir)

    Returns:
        ProjectMetadata for the crate

    Raises:
        MetadataError: If cargo cannot be run, fails, or prints unparseable JSON
    """
    cmd = metadata_command(config)
    logger.debug(f"Running: {format_command(cmd)}")

    cwd: Optional[Path] = config.manifest_dir
    try:
        result = safe_run(cmd, capture_output=True, text=True, cwd=str(cwd) if cwd else None)
    except (OSError, subprocess.SubprocessError) as e:
        raise MetadataError(f"Querying cargo metadata failed: {e}") from e

    if result.returncode != 0:
        raise MetadataError(f"Querying cargo metadata failed (exit {result.returncode}):\n{result.stderr}")

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise MetadataError(f"Querying cargo metadata failed: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MetadataError("Querying cargo metadata failed: expected a JSON object")

    metadata = parse_metadata(data)
    logger.debug(f"Metadata: features={list(metadata.features)} dependencies={list(metadata.dependencies)} edition={metadata.edition}")
    return metadata
