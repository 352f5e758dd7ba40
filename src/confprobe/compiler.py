"""Probe compiler.

Compiles a single conf_tests/<feature>.rs file into a standalone executable
with rustc. The main crate is never involved: the probe only sees the
dependency artifacts passed as --extern and the features enabled so far.
"""

import logging
import subprocess
from pathlib import Path
from typing import Iterable, Optional

from .artifacts import ExternLibs
from .subprocess_utils import format_command, safe_run

logger = logging.getLogger(__name__)


class ProbeCompiler:
    """Compiles probe sources into the staging directory.

    Attributes:
        rustc: Rust compiler command
        edition: Edition every probe is compiled with
        extern_libs: Resolved dependency artifacts, keyed by file stem
        out_dir: Directory compiled probes are written to
    """

    def __init__(self, rustc: str, edition: str, extern_libs: ExternLibs, out_dir: Path):
        self.rustc = rustc
        self.edition = edition
        self.extern_libs = extern_libs
        self.out_dir = out_dir

    def output_path(self, src: Path) -> Path:
        """Deterministic location of a compiled probe: <staging>/<probe name>."""
        return self.out_dir / src.stem

    def build_command(self, src: Path, features: Iterable[str]) -> list[str]:
        """Assemble the rustc command line for one probe.

        Args:
            src: Probe source file
            features: Features enabled so far, each passed as --cfg

        Returns:
            rustc argument vector
        """
        cmd = [
            self.rustc,
            "--crate-type",
            "bin",
            "--edition",
            self.edition,
            "-o",
            str(self.output_path(src)),
            str(src),
        ]

        artifacts = [self.extern_libs[ident] for ident in sorted(self.extern_libs)]
        for artifact in artifacts:
            cmd.extend(["--extern", artifact.extern_arg])

        # transitive crates of the externs live next to them
        search_dirs: list[Path] = []
        for artifact in artifacts:
            if artifact.path.parent not in search_dirs:
                search_dirs.append(artifact.path.parent)
        for search_dir in search_dirs:
            cmd.extend(["-L", f"dependency={search_dir}"])

        for feature in features:
            cmd.extend(["--cfg", f'feature="{feature}"'])

        return cmd

    def compile(self, src: Path, features: Iterable[str]) -> Optional[Path]:
        """Compile a probe.

        Returns:
            Path to the executable, or None if rustc could not be run or failed
        """
        cmd = self.build_command(src, features)
        logger.debug(f"Running: {format_command(cmd)}")

        try:
            result = safe_run(cmd, capture_output=True, text=True, errors="replace")
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Could not run rustc for {src.name}: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"Compiling {src.name} failed (exit {result.returncode}):\n{result.stderr}")
            return None

        return self.output_path(src)
