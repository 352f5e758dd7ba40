"""Tests for metadata module - reading features, dependencies and edition."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from confprobe.config import ProbeConfig
from confprobe.errors import MetadataError
from confprobe.metadata import metadata_command, parse_metadata, read_metadata


def _metadata(*packages):
    return {"packages": list(packages), "workspace_members": [], "version": 1}


def _package(name, edition="2021", features=None, dependencies=()):
    return {
        "name": name,
        "edition": edition,
        "features": features or {},
        "dependencies": [{"name": dep, "req": "^1", "kind": None} for dep in dependencies],
    }


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess([], returncode=returncode, stdout=stdout, stderr=stderr)


def test_parse_collects_features_and_dependencies():
    data = _metadata(
        _package("demo", features={"o_path": [], "default": ["o_path"]}, dependencies=["libc"]),
        _package("helper", features={"aa_foo": []}, dependencies=["libc", "bitflags"]),
    )
    metadata = parse_metadata(data)
    assert metadata.features == ("aa_foo", "default", "o_path")
    assert metadata.dependencies == ("bitflags", "libc")


def test_parse_first_edition_wins():
    data = _metadata(_package("a", edition="2018"), _package("b", edition="2021"))
    assert parse_metadata(data).edition == "2018"


def test_parse_without_edition_uses_default():
    data = _metadata({"name": "a", "features": {}, "dependencies": []})
    metadata = parse_metadata(data)
    assert metadata.edition is None
    assert metadata.edition_or("2021") == "2021"


def test_parse_passes_unknown_editions_through():
    assert parse_metadata(_metadata(_package("a", edition="2024"))).edition == "2024"


def test_parse_rejects_missing_packages():
    with pytest.raises(MetadataError):
        parse_metadata({"version": 1})


def test_parse_rejects_malformed_dependency():
    data = _metadata({"name": "a", "features": {}, "dependencies": [{"req": "1"}]})
    with pytest.raises(MetadataError):
        parse_metadata(data)


def test_command_uses_manifest_path():
    config = ProbeConfig.from_environ({"CARGO": "/opt/cargo", "CARGO_MANIFEST_DIR": "/src/demo"})
    cmd = metadata_command(config)
    assert cmd[:6] == ["/opt/cargo", "metadata", "--format-version", "1", "--no-deps", "--frozen"]
    assert cmd[-2:] == ["--manifest-path", str(Path("/src/demo") / "Cargo.toml")]


@patch("confprobe.metadata.safe_run")
def test_read_metadata_success(mock_run):
    data = _metadata(_package("demo", edition="2018", features={"o_path": []}, dependencies=["libc"]))
    mock_run.return_value = _completed(stdout=json.dumps(data))

    metadata = read_metadata(ProbeConfig.from_environ({"CARGO_MANIFEST_DIR": "/src/demo"}))

    assert metadata.features == ("o_path",)
    assert metadata.dependencies == ("libc",)
    assert metadata.edition == "2018"
    assert mock_run.call_args[1]["cwd"] == "/src/demo"


@patch("confprobe.metadata.safe_run", side_effect=FileNotFoundError("cargo"))
def test_read_metadata_missing_cargo(mock_run):
    with pytest.raises(MetadataError):
        read_metadata(ProbeConfig.from_environ({}))


@patch("confprobe.metadata.safe_run")
def test_read_metadata_nonzero_exit(mock_run):
    mock_run.return_value = _completed(returncode=101, stderr="error: failed to parse manifest")
    with pytest.raises(MetadataError, match="failed to parse manifest"):
        read_metadata(ProbeConfig.from_environ({}))


@patch("confprobe.metadata.safe_run")
def test_read_metadata_invalid_json(mock_run):
    mock_run.return_value = _completed(stdout="not json")
    with pytest.raises(MetadataError):
        read_metadata(ProbeConfig.from_environ({}))
