"""Data models for a probing run.

Defines the core dataclasses used throughout confprobe:
- FeatureState: Enum tracking what happened to a declared feature
- ProbeResult: Outcome of one feature in the probing loop
- RunReport: Aggregated result of a whole run, handed to the emitter
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .inhibit import GateAction


class FeatureState(Enum):
    """State of a declared feature within one run."""

    UNKNOWN = "unknown"
    MANUALLY_SET = "manually-set"
    PROBED_ENABLED = "probed-enabled"
    PROBED_ABSENT = "probed-absent"
    PROBED_FAILED = "probed-failed"


@dataclass
class ProbeResult:
    """Outcome of a single feature.

    Attributes:
        feature: Feature name as declared in Cargo.toml
        state: What happened to the feature
        binary: Compiled probe executable (None if never compiled or compile failed)
        stdout: Captured probe stdout (only set when the probe ran successfully)
        diagnostics: Lines this feature contributed to the run log
    """

    feature: str
    state: FeatureState = FeatureState.UNKNOWN
    binary: Optional[Path] = None
    stdout: Optional[str] = None
    diagnostics: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == FeatureState.PROBED_ENABLED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "feature": self.feature,
            "state": self.state.value,
            "binary": str(self.binary) if self.binary is not None else None,
            "stdout": self.stdout,
            "diagnostics": list(self.diagnostics),
        }


@dataclass
class RunReport:
    """Aggregated result of a probing run.

    Attributes:
        action: Gate decision the run was made under
        diagnostics: Every diagnostic line, in generation order
        enabled: Features enabled by probing, in the order they were enabled
        results: Per-feature results, in probing order
        edition: Edition probes were compiled with (None if nothing was compiled)
    """

    action: GateAction
    diagnostics: list[str] = field(default_factory=list)
    enabled: list[str] = field(default_factory=list)
    results: list[ProbeResult] = field(default_factory=list)
    edition: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.action == GateAction.FAIL else 0

    def get_result(self, feature: str) -> Optional[ProbeResult]:
        for result in self.results:
            if result.feature == feature:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "action": self.action.value,
            "diagnostics": list(self.diagnostics),
            "enabled": list(self.enabled),
            "results": [r.to_dict() for r in self.results],
            "edition": self.edition,
            "exit_code": self.exit_code,
        }
