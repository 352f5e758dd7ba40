"""CONF_TEST_INHIBIT handling.

The gate is evaluated once, before anything else happens. Any value other
than the three known ones is rejected so a typo never silently probes.
"""

from enum import Enum
from typing import Optional

from .config import INHIBIT_VAR
from .errors import InhibitError
from .output import warning


class GateAction(Enum):
    """What the run does after the gate."""

    PROCEED = "proceed"
    SKIP = "skip"
    STOP = "stop"
    FAIL = "fail"


def check_inhibit(value: Optional[str]) -> GateAction:
    """Map the control value to a gate action.

    Raises:
        InhibitError: If the value is set but not skip, stop or fail
    """
    if value is None:
        return GateAction.PROCEED
    if value == "skip":
        return GateAction.SKIP
    if value == "stop":
        return GateAction.STOP
    if value == "fail":
        return GateAction.FAIL
    raise InhibitError(f"Unknown {INHIBIT_VAR} value: {value!r}")


def gate_messages(action: GateAction) -> list[str]:
    """Diagnostics the gate itself emits for an action."""
    if action == GateAction.SKIP:
        return [warning(f"Skipping ConfTest via {INHIBIT_VAR}")]
    if action == GateAction.FAIL:
        return [warning(f"Requested ConfTest failure via {INHIBIT_VAR}")]
    return []
