"""Probe configuration read from the build environment.

This module defines:
- ProbeConfig: Everything confprobe needs from the invoking build, captured once
- get_resolver_env: The environment handed to the nested artifact pass

Design:
    ProbeConfig.from_environ() is the only place that reads the process
    environment. The orchestrator and everything below it take a ProbeConfig,
    so a run can be driven entirely from tests without touching os.environ.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from .errors import ConfigError
from .subprocess_utils import tool_command

INHIBIT_VAR = "CONF_TEST_INHIBIT"
FEATURE_ENV_PREFIX = "CARGO_FEATURE_"
DOCS_RS_VAR = "DOCS_RS"
DOCS_RS_FEATURE = "docs_rs"
DEFAULT_EDITION = "2021"

STAGING_DIR_NAME = "conf_test"
LOG_FILE_NAME = "conf_test.log"
PROBE_DIR_NAME = "conf_tests"
PROBE_SUFFIX = ".rs"


def feature_env_name(feature: str) -> str:
    """Environment variable cargo sets when a feature is enabled manually.

    Cargo uppercases the feature name and maps '-' to '_'.
    """
    return FEATURE_ENV_PREFIX + feature.upper().replace("-", "_")


@dataclass(frozen=True)
class ProbeConfig:
    """Configuration for one probing run.

    Attributes:
        inhibit: Raw CONF_TEST_INHIBIT value, None when unset
        out_dir: Cargo's OUT_DIR, None when unset
        manifest_dir: Directory holding Cargo.toml, None when unset
        probe_dir: Directory holding the <feature>.rs probe sources
        cargo: Cargo command
        rustc: Rust compiler command
        docs_rs: Whether the run happens on the documentation builder
        overrides: Names of CARGO_FEATURE_* variables present in the environment
        default_edition: Edition used when no package declares one
        base_env: Snapshot of the environment the run was configured from
    """

    inhibit: Optional[str] = None
    out_dir: Optional[Path] = None
    manifest_dir: Optional[Path] = None
    probe_dir: Path = Path(PROBE_DIR_NAME)
    cargo: str = "cargo"
    rustc: str = "rustc"
    docs_rs: bool = False
    overrides: FrozenSet[str] = field(default_factory=frozenset)
    default_edition: str = DEFAULT_EDITION
    base_env: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "ProbeConfig":
        """Capture the build environment.

        Missing OUT_DIR or CARGO_MANIFEST_DIR is not an error here; a run
        stopped by CONF_TEST_INHIBIT never needs them. Use require_out_dir()
        and require_manifest_dir() once probing is certain.

        Args:
            environ: Environment mapping, defaults to os.environ

        Returns:
            ProbeConfig for this process
        """
        if environ is None:
            environ = os.environ

        out_dir = environ.get("OUT_DIR")
        manifest_dir = environ.get("CARGO_MANIFEST_DIR")
        if manifest_dir:
            probe_dir = Path(manifest_dir) / PROBE_DIR_NAME
        else:
            probe_dir = Path(PROBE_DIR_NAME)

        return cls(
            inhibit=environ.get(INHIBIT_VAR),
            out_dir=Path(out_dir) if out_dir else None,
            manifest_dir=Path(manifest_dir) if manifest_dir else None,
            probe_dir=probe_dir,
            cargo=tool_command(environ, "CARGO", "cargo"),
            rustc=tool_command(environ, "RUSTC", "rustc"),
            docs_rs=DOCS_RS_VAR in environ,
            overrides=frozenset(k for k in environ if k.startswith(FEATURE_ENV_PREFIX)),
            base_env=dict(environ),
        )

    def require_out_dir(self) -> Path:
        if self.out_dir is None:
            raise ConfigError("env var OUT_DIR is not set")
        return self.out_dir

    def require_manifest_dir(self) -> Path:
        if self.manifest_dir is None:
            raise ConfigError("env var CARGO_MANIFEST_DIR is not set")
        return self.manifest_dir

    @property
    def staging_dir(self) -> Path:
        """Dedicated directory under OUT_DIR for the artifact pass, probes and log."""
        return self.require_out_dir() / STAGING_DIR_NAME

    @property
    def log_path(self) -> Path:
        return self.staging_dir / LOG_FILE_NAME

    def is_overridden(self, feature: str) -> bool:
        """Whether the invoking build enabled this feature by hand."""
        return feature_env_name(feature) in self.overrides

    def probe_source(self, feature: str) -> Path:
        return self.probe_dir / f"{feature}{PROBE_SUFFIX}"


def get_resolver_env(environ: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of the given environment for the nested artifact pass.

    The nested cargo invocation runs this crate's build script again, so
    CONF_TEST_INHIBIT is forced to 'stop' to keep it from probing recursively.
    """
    env = dict(environ)
    env[INHIBIT_VAR] = "stop"
    return env
