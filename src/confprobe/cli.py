"""
Command-line interface for confprobe.

This module provides the `confprobe` command, meant to be run from a
crate's build script. Everything it prints on stdout is read by cargo;
diagnostics about confprobe itself go to stderr.
"""

import argparse
import dataclasses
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from confprobe.config import ProbeConfig
from confprobe.errors import ConfProbeError, StagingError
from confprobe.models import RunReport
from confprobe.orchestrator import ConfTestOrchestrator, emit_report
from confprobe.summary import print_summary

logger = logging.getLogger(__name__)


@dataclass
class RunArgs:
    """Arguments for a probing run."""

    probe_dir: Optional[Path] = None
    summary: bool = False
    verbose: bool = False
    json_report: Optional[Path] = None


def configure_logging(verbose: bool) -> None:
    """Send developer logging to stderr, away from cargo's directive channel."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="confprobe %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def write_json_report(report: RunReport, path: Path) -> None:
    """Write the run report as JSON for tooling that inspects probe outcomes."""
    try:
        path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise StagingError(f"Failed to write JSON report {path}: {e}") from e


def run(environ: Optional[Mapping[str, str]] = None, args: Optional[RunArgs] = None) -> RunReport:
    """Probe features and emit the results without exiting the process.

    Args:
        environ: Environment to read, defaults to os.environ
        args: Command-line options

    Returns:
        RunReport of the run

    Raises:
        ConfProbeError: On any fatal condition
    """
    if args is None:
        args = RunArgs()

    config = ProbeConfig.from_environ(environ)
    if args.probe_dir is not None:
        config = dataclasses.replace(config, probe_dir=args.probe_dir)
    logger.debug(f"Config: {config}")

    orchestrator = ConfTestOrchestrator(config)
    report = orchestrator.run()
    emit_report(report, config)

    if args.summary:
        print_summary(report)
    if args.json_report is not None:
        write_json_report(report, args.json_report)
    return report


def parse_args(argv: Optional[list[str]] = None) -> RunArgs:
    parser = argparse.ArgumentParser(
        prog="confprobe",
        description="Compile and run conf_tests/<feature>.rs probes and enable the features whose probe succeeds.",
        epilog="Set CONF_TEST_INHIBIT to skip, stop or fail to bypass probing.",
    )
    parser.add_argument(
        "--probe-dir",
        type=Path,
        default=None,
        help="Directory containing probe sources (default: $CARGO_MANIFEST_DIR/conf_tests)",
    )
    parser.add_argument("--summary", action="store_true", help="Print a table of probe results on stderr")
    parser.add_argument("--json-report", type=Path, default=None, metavar="PATH", help="Write the run report as JSON to PATH")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log commands and compiler output on stderr")
    ns = parser.parse_args(argv)
    return RunArgs(probe_dir=ns.probe_dir, summary=ns.summary, verbose=ns.verbose, json_report=ns.json_report)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point of the `confprobe` command.

    Returns:
        0 on normal completion (including skip and stop), 1 on fail or a fatal error
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        report = run(args=args)
    except ConfProbeError as e:
        print(f"confprobe: error: {e}", file=sys.stderr)
        return 1

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
