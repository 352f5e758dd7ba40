"""Exception hierarchy for confprobe.

Everything raised from here is fatal for the probing step: the CLI reports
it and exits with status 1. Per-feature probe failures are never raised,
they are recorded in ProbeResult instead.
"""


class ConfProbeError(Exception):
    """Base class for fatal confprobe errors."""

    pass


class InhibitError(ConfProbeError):
    """Raised when CONF_TEST_INHIBIT holds an unknown value."""

    pass


class ConfigError(ConfProbeError):
    """Raised when a required environment value is missing."""

    pass


class MetadataError(ConfProbeError):
    """Raised when `cargo metadata` cannot be run or its output parsed."""

    pass


class StagingError(ConfProbeError):
    """Raised when the staging directory or log file cannot be created."""

    pass
