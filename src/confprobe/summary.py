"""Rich table summarizing a probing run.

Rendered on stderr so it never mixes with the directives cargo reads from
stdout.
"""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .models import FeatureState, RunReport

_STATE_STYLES = {
    FeatureState.UNKNOWN: "dim",
    FeatureState.MANUALLY_SET: "cyan",
    FeatureState.PROBED_ENABLED: "bold green",
    FeatureState.PROBED_ABSENT: "dim",
    FeatureState.PROBED_FAILED: "red",
}

_STATE_DETAILS = {
    FeatureState.UNKNOWN: "",
    FeatureState.MANUALLY_SET: "set by --features",
    FeatureState.PROBED_ENABLED: "probe succeeded",
    FeatureState.PROBED_ABSENT: "no probe source",
}


def _detail(report: RunReport, feature: str) -> str:
    result = report.get_result(feature)
    if result is None:
        return ""
    if result.state == FeatureState.PROBED_FAILED:
        return "probe did not run successfully" if result.binary is not None else "probe did not compile"
    return _STATE_DETAILS[result.state]


def build_summary_table(report: RunReport) -> Table:
    """Build the per-feature table for a report."""
    title = "confprobe"
    if report.edition:
        title += f" (edition {report.edition})"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Feature")
    table.add_column("State")
    table.add_column("Detail")

    for result in report.results:
        state = Text(result.state.value, style=_STATE_STYLES[result.state])
        table.add_row(result.feature, state, _detail(report, result.feature))

    return table


def print_summary(report: RunReport, console: Console | None = None) -> None:
    """Print the summary table, or a one-line note for short-circuited runs."""
    if console is None:
        console = Console(stderr=True)
    if not report.results:
        console.print(f"confprobe: {report.action.value}, no features probed")
        return
    console.print(build_summary_table(report))
    console.print(f"{len(report.enabled)} feature(s) enabled: {', '.join(report.enabled) or '-'}")
