"""Tests for the CONF_TEST_INHIBIT gate."""

import pytest

from confprobe.errors import InhibitError
from confprobe.inhibit import GateAction, check_inhibit, gate_messages


@pytest.mark.parametrize(
    "value,action",
    [
        (None, GateAction.PROCEED),
        ("skip", GateAction.SKIP),
        ("stop", GateAction.STOP),
        ("fail", GateAction.FAIL),
    ],
)
def test_known_values(value, action):
    assert check_inhibit(value) == action


@pytest.mark.parametrize("value", ["bogus", "", "SKIP", " skip"])
def test_unknown_values_are_rejected(value):
    """Typos and case variants must not silently proceed."""
    with pytest.raises(InhibitError):
        check_inhibit(value)


def test_skip_emits_one_warning():
    assert gate_messages(GateAction.SKIP) == ["cargo:warning=Skipping ConfTest via CONF_TEST_INHIBIT\n"]


def test_fail_emits_one_warning():
    assert gate_messages(GateAction.FAIL) == ["cargo:warning=Requested ConfTest failure via CONF_TEST_INHIBIT\n"]


def test_stop_and_proceed_are_silent():
    assert gate_messages(GateAction.STOP) == []
    assert gate_messages(GateAction.PROCEED) == []
