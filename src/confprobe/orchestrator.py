"""
Probing run orchestration.

This module drives a complete confprobe run:

    1. Evaluate CONF_TEST_INHIBIT (skip / stop / fail short-circuit here)
    2. Create the staging directory under OUT_DIR
    3. Read features, dependencies and edition with `cargo metadata`
    4. On the documentation builder, enable `docs_rs` if declared and stop
    5. Resolve dependency artifacts with one metadata-only cargo pass
    6. For every feature, in sort order: compile and run its probe with the
       features enabled so far, and enable the feature if the probe succeeds

Features are probed strictly in order of their sort key (by default the
name). A probe that relies on another feature must therefore sort after it,
e.g. 'aa_foo' before 'bb_bar'. Only features enabled by probing are passed on
to later probes; features enabled by hand are skipped and not propagated.

A failing probe only affects its own feature. Fatal conditions (bad inhibit
value, missing OUT_DIR, broken metadata, unwritable staging dir) raise a
ConfProbeError subclass.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

from .artifacts import ExternLibs, resolve_extern_libs
from .compiler import ProbeCompiler
from .config import DOCS_RS_FEATURE, ProbeConfig
from .errors import StagingError
from .inhibit import GateAction, check_inhibit, gate_messages
from .metadata import ProjectMetadata, read_metadata
from .models import FeatureState, ProbeResult, RunReport
from .output import LogFile, comment, emit_all, enable_feature, normalize_chunk, rerun_if_changed
from .runner import run_probe

# Module-level logger
logger = logging.getLogger(__name__)


class IProbeCompiler(Protocol):
    def compile(self, src: Path, features: Iterable[str]) -> Optional[Path]: ...


MetadataReader = Callable[[ProbeConfig], ProjectMetadata]
ArtifactResolver = Callable[[ProbeConfig, Iterable[str]], ExternLibs]
CompilerFactory = Callable[[str, str, ExternLibs, Path], IProbeCompiler]
ProbeRunner = Callable[[Path], Optional[str]]


def feature_sort_key(feature: str) -> Any:
    """Default probing order: plain lexical order of the feature name."""
    return feature


class ConfTestOrchestrator:
    """
    Runs the configuration tests of one crate.

    Every external effect (metadata query, artifact pass, rustc, probe
    execution) goes through a collaborator passed to the constructor, so the
    sequencing logic can be exercised with fakes.

    Example usage:
        orchestrator = ConfTestOrchestrator(ProbeConfig.from_environ())
        report = orchestrator.run()
        emit_report(report, orchestrator.config)
    """

    def __init__(
        self,
        config: ProbeConfig,
        metadata_reader: MetadataReader = read_metadata,
        artifact_resolver: ArtifactResolver = resolve_extern_libs,
        compiler_factory: CompilerFactory = ProbeCompiler,
        probe_runner: ProbeRunner = run_probe,
        ordering_key: Callable[[str], Any] = feature_sort_key,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Probe configuration captured from the environment
            metadata_reader: Returns features, dependencies and edition
            artifact_resolver: Returns resolved dependency artifacts
            compiler_factory: Builds a compiler from (rustc, edition, extern_libs, out_dir)
            probe_runner: Runs a compiled probe, returning stdout on success
            ordering_key: Sort key deciding the probing order
        """
        self.config = config
        self.metadata_reader = metadata_reader
        self.artifact_resolver = artifact_resolver
        self.compiler_factory = compiler_factory
        self.probe_runner = probe_runner
        self.ordering_key = ordering_key

    def run(self) -> RunReport:
        """Execute the complete probing run.

        Returns:
            RunReport with all diagnostics and the enabled features

        Raises:
            ConfProbeError: On any fatal condition
        """
        action = check_inhibit(self.config.inhibit)
        if action != GateAction.PROCEED:
            logger.debug(f"Inhibited: {action.value}")
            return RunReport(action=action, diagnostics=gate_messages(action))

        report = RunReport(action=action)
        out_dir = self.config.require_out_dir()
        report.diagnostics.append(comment(f"OUT_DIR is '{out_dir}'"))
        self._prepare_staging()

        metadata = self.metadata_reader(self.config)

        if self.config.docs_rs:
            self._run_docs_mode(metadata, report)
            return report

        edition = metadata.edition_or(self.config.default_edition)
        report.edition = edition
        extern_libs = self._resolve_artifacts(metadata, report)
        compiler = self.compiler_factory(self.config.rustc, edition, extern_libs, self.config.staging_dir)

        for feature in self.ordered_features(metadata.features):
            result = self._probe_feature(feature, compiler, report.enabled)
            report.results.append(result)
            report.diagnostics.extend(result.diagnostics)
            if result.success:
                report.enabled.append(feature)

        logger.debug(f"Enabled features: {report.enabled}")
        return report

    def ordered_features(self, features: Iterable[str]) -> list[str]:
        return sorted(set(features), key=self.ordering_key)

    def _prepare_staging(self) -> None:
        staging_dir = self.config.staging_dir
        try:
            staging_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingError(f"Failed to create output directory {staging_dir}: {e}") from e

    def _run_docs_mode(self, metadata: ProjectMetadata, report: RunReport) -> None:
        """Documentation builds have no usable toolchain; only docs_rs may be enabled."""
        report.diagnostics.append(comment("running on DOCS.RS"))
        if DOCS_RS_FEATURE in metadata.features:
            line = enable_feature(DOCS_RS_FEATURE)
            report.diagnostics.append(line)
            report.enabled.append(DOCS_RS_FEATURE)
            report.results.append(ProbeResult(DOCS_RS_FEATURE, FeatureState.PROBED_ENABLED, diagnostics=[line]))

    def _resolve_artifacts(self, metadata: ProjectMetadata, report: RunReport) -> ExternLibs:
        """Run the artifact pass without leaving a new Cargo.lock behind."""
        lockfile = self.config.require_manifest_dir() / "Cargo.lock"
        lockfile_exists = lockfile.exists()
        report.diagnostics.append(comment(f"Lockfile '{lockfile}' present: {str(lockfile_exists).lower()}"))

        extern_libs = self.artifact_resolver(self.config, metadata.dependencies)

        if not lockfile_exists:
            try:
                lockfile.unlink()
                deleted = True
            except OSError:
                deleted = False
            report.diagnostics.append(comment(f"Delete Lockfile: '{lockfile}', {str(deleted).lower()}"))

        return extern_libs

    def _probe_feature(self, feature: str, compiler: IProbeCompiler, enabled: list[str]) -> ProbeResult:
        """Probe one feature against the features enabled so far.

        Args:
            feature: Feature name
            compiler: Probe compiler
            enabled: Features enabled by earlier probes (read only)

        Returns:
            ProbeResult with this feature's diagnostics
        """
        result = ProbeResult(feature)
        lines = result.diagnostics

        if self.config.is_overridden(feature):
            result.state = FeatureState.MANUALLY_SET
            lines.append(comment(f"test for '{feature}' manually overridden"))
            lines.append("\n")
            return result

        lines.append(comment(f"checking for {feature}"))
        src = self.config.probe_source(feature)
        if not src.exists():
            result.state = FeatureState.PROBED_ABSENT
            lines.append(comment(f"test for '{feature}' does not exist"))
            lines.append("\n")
            return result

        lines.append(comment(f"{src} exists"))
        lines.append(rerun_if_changed(src))

        result.state = FeatureState.PROBED_FAILED
        binary = compiler.compile(src, list(enabled))
        if binary is None:
            lines.append(comment(f"compiling ConfTest for {feature} failed"))
        else:
            result.binary = binary
            lines.append(comment(f"compiling ConfTest for {feature} success"))
            stdout = self.probe_runner(binary)
            if stdout is None:
                lines.append(comment(f"executing ConfTest for {feature} failed"))
            else:
                result.state = FeatureState.PROBED_ENABLED
                result.stdout = stdout
                lines.append(comment(f"executing ConfTest for {feature} success"))
                lines.append(enable_feature(feature))
                if stdout:
                    lines.append(normalize_chunk(stdout))

        lines.append("\n")
        return result


def emit_report(report: RunReport, config: ProbeConfig) -> None:
    """Write a run's diagnostics to stdout, and to the log file for probing runs.

    Gate short-circuits happen before the staging directory exists, so their
    lines only go to stdout.
    """
    if report.action != GateAction.PROCEED:
        emit_all(report.diagnostics)
        return

    with LogFile(config.log_path):
        emit_all(report.diagnostics)
