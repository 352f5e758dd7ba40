"""Probe runner: execute a compiled probe and classify it by exit status."""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .subprocess_utils import safe_run

logger = logging.getLogger(__name__)


def run_probe(binary: Path) -> Optional[str]:
    """Run a probe with no arguments.

    Args:
        binary: Compiled probe executable

    Returns:
        The probe's stdout (decoded lossily) if it exited 0, otherwise None
    """
    try:
        result = safe_run([str(binary)], capture_output=True)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Could not run {binary}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"{binary.name} exited with {result.returncode}")
        return None

    return result.stdout.decode("utf-8", errors="replace")
