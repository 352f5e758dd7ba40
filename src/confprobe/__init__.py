"""confprobe - probe the build environment from a cargo build script.

For every feature declared in Cargo.toml that has a conf_tests/<feature>.rs
probe, confprobe compiles and runs the probe and, when it succeeds, tells
cargo to enable the feature.
"""

from confprobe.cli import run
from confprobe.config import ProbeConfig
from confprobe.errors import ConfProbeError
from confprobe.models import FeatureState, ProbeResult, RunReport
from confprobe.orchestrator import ConfTestOrchestrator, emit_report

__version__ = "0.4.0"

__all__ = [
    "ConfProbeError",
    "ConfTestOrchestrator",
    "FeatureState",
    "ProbeConfig",
    "ProbeResult",
    "RunReport",
    "__version__",
    "emit_report",
    "run",
]
