"""Pytest configuration and fixtures for confprobe tests.

Provides a throwaway crate layout (manifest dir, OUT_DIR, conf_tests/) and
fake collaborators for the orchestrator so no test needs cargo or rustc.
"""

import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest

from confprobe import output
from confprobe.artifacts import ExternLibs
from confprobe.config import ProbeConfig
from confprobe.metadata import ProjectMetadata


@pytest.fixture(autouse=True)
def _reset_output():
    """Ensure confprobe.output writes to the real stdout and no file after each test."""
    yield
    output.set_output_stream(None)
    output.set_output_file(None)
    if sys.stdout.closed:
        sys.stdout = sys.__stdout__


class FakeCompiler:
    """Stands in for ProbeCompiler, recording every compile call.

    A probe "compiles" if its source does not contain the word 'broken' and
    every feature named on a `// requires: a, b` line is in the feature set.
    """

    def __init__(self, rustc: str, edition: str, extern_libs: ExternLibs, out_dir: Path):
        self.rustc = rustc
        self.edition = edition
        self.extern_libs = extern_libs
        self.out_dir = out_dir
        self.calls: list[tuple[Path, list[str]]] = []

    def compile(self, src: Path, features: Iterable[str]) -> Optional[Path]:
        features = list(features)
        self.calls.append((src, features))
        text = src.read_text()
        if "broken" in text:
            return None
        for line in text.splitlines():
            if line.startswith("// requires:"):
                required = [f.strip() for f in line.split(":", 1)[1].split(",") if f.strip()]
                if not all(f in features for f in required):
                    return None
        binary = self.out_dir / src.stem
        binary.write_text(text)
        return binary


class FakeRunner:
    """Stands in for run_probe: a probe fails if it contains 'exit 1'.

    A `// stdout: text` line becomes the probe's output.
    """

    def __init__(self):
        self.calls: list[Path] = []

    def __call__(self, binary: Path) -> Optional[str]:
        self.calls.append(binary)
        text = binary.read_text()
        if "exit 1" in text:
            return None
        out = []
        for line in text.splitlines():
            if line.startswith("// stdout:"):
                out.append(line.split(":", 1)[1].strip() + "\n")
        return "".join(out)


class FakeProject:
    """A crate on disk plus the metadata and artifacts its fakes report."""

    def __init__(self, root: Path):
        self.root = root
        self.manifest_dir = root / "crate"
        self.out_dir = root / "out"
        self.probe_dir = self.manifest_dir / "conf_tests"
        self.probe_dir.mkdir(parents=True)
        self.out_dir.mkdir()
        (self.manifest_dir / "Cargo.toml").write_text('[package]\nname = "demo"\n')
        self.features: list[str] = []
        self.dependencies: list[str] = []
        self.edition: Optional[str] = "2021"
        self.extern_libs: ExternLibs = {}
        self.compilers: list[FakeCompiler] = []
        self.runner = FakeRunner()
        self.resolver_calls = 0

    def add_probe(self, feature: str, body: str = "fn main() {}\n") -> Path:
        src = self.probe_dir / f"{feature}.rs"
        src.write_text(body)
        return src

    def environ(self, **extra: str) -> dict[str, str]:
        env = {
            "OUT_DIR": str(self.out_dir),
            "CARGO_MANIFEST_DIR": str(self.manifest_dir),
        }
        env.update(extra)
        return env

    def config(self, **extra: str) -> ProbeConfig:
        return ProbeConfig.from_environ(self.environ(**extra))

    def read_metadata(self, config: ProbeConfig) -> ProjectMetadata:
        return ProjectMetadata(
            features=tuple(sorted(set(self.features))),
            dependencies=tuple(sorted(set(self.dependencies))),
            edition=self.edition,
        )

    def resolve(self, config: ProbeConfig, dependencies: Iterable[str]) -> ExternLibs:
        self.resolver_calls += 1
        return dict(self.extern_libs)

    def make_compiler(self, rustc: str, edition: str, extern_libs: ExternLibs, out_dir: Path) -> FakeCompiler:
        compiler = FakeCompiler(rustc, edition, extern_libs, out_dir)
        self.compilers.append(compiler)
        return compiler

    @property
    def compile_calls(self) -> list[tuple[Path, list[str]]]:
        return [call for compiler in self.compilers for call in compiler.calls]

    def orchestrator(self, config: Optional[ProbeConfig] = None, **kwargs):
        from confprobe.orchestrator import ConfTestOrchestrator

        return ConfTestOrchestrator(
            config if config is not None else self.config(),
            metadata_reader=self.read_metadata,
            artifact_resolver=self.resolve,
            compiler_factory=self.make_compiler,
            probe_runner=self.runner,
            **kwargs,
        )


@pytest.fixture
def project(tmp_path: Path) -> FakeProject:
    """A fake crate with an OUT_DIR and an empty conf_tests/ directory."""
    return FakeProject(tmp_path)
