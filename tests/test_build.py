"""Tests for the build runner and artifact handling."""

import sys
import tempfile
from pathlib import Path

import pytest

from harvester.build.artifacts import candidate_paths, harvest_path, place_artifact, resolve_artifact
from harvester.build.runner import PackageBuilder
from harvester.errors import ArtifactNotFound
from harvester.models.manifest import ManifestRecord


def test_candidate_order():
    pkg, cwd = Path("/pkg"), Path("/cwd")
    assert candidate_paths(pkg, "out.zip", cwd) == [
        pkg / "out.zip",
        pkg / "package.spk.zip",
        pkg / "potato.spk.zip",
        cwd / "out.zip",
        cwd / "package.spk.zip",
        cwd / "potato.spk.zip",
    ]


def test_candidate_default_name_not_repeated():
    assert len(candidate_paths(Path("/pkg"), "package.spk.zip", Path("/cwd"))) == 4


def test_resolve_prefers_package_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        pkg, cwd = Path(tmpdir) / "pkg", Path(tmpdir) / "cwd"
        pkg.mkdir()
        cwd.mkdir()
        (pkg / "potato.spk.zip").write_bytes(b"pkg")
        (cwd / "out.zip").write_bytes(b"cwd")
        assert resolve_artifact(pkg, "out.zip", cwd) == pkg / "potato.spk.zip"


def test_resolve_falls_back_to_cwd():
    with tempfile.TemporaryDirectory() as tmpdir:
        pkg, cwd = Path(tmpdir) / "pkg", Path(tmpdir) / "cwd"
        pkg.mkdir()
        cwd.mkdir()
        (cwd / "package.spk.zip").write_bytes(b"cwd")
        assert resolve_artifact(pkg, "out.zip", cwd) == cwd / "package.spk.zip"


def test_resolve_not_found():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ArtifactNotFound) as exc:
            resolve_artifact(Path(tmpdir), "out.zip", Path(tmpdir))
        assert len(exc.value.candidates) == 6


def test_place_artifact():
    with tempfile.TemporaryDirectory() as tmpdir:
        artifact = Path(tmpdir) / "package.spk.zip"
        artifact.write_bytes(b"zip-bytes")
        manifest = ManifestRecord.from_dict({"slug": "calc", "version": "1.0.0"})

        dest = place_artifact(artifact, Path(tmpdir) / "harvest", manifest)
        assert dest == harvest_path(Path(tmpdir) / "harvest", "calc", "1.0.0")
        assert dest.relative_to(Path(tmpdir)).as_posix() == "harvest/calc/calc.1.0.0.spk.zip"
        assert dest.read_bytes() == b"zip-bytes"


def test_builder_reports_exit_code():
    with tempfile.TemporaryDirectory() as tmpdir:
        builder = PackageBuilder([sys.executable, "-c", "import sys; sys.exit(3)"])
        result = builder.build(tmpdir)
        assert result.exit_code == 3
        assert not result.passed


def test_builder_runs_in_package_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        script = "open('package.spk.zip', 'w').write('built')"
        result = PackageBuilder([sys.executable, "-c", script]).build(tmpdir)
        assert result.passed
        assert (Path(tmpdir) / "package.spk.zip").read_text() == "built"


def test_builder_missing_executable():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = PackageBuilder(["harvester-no-such-build-tool"]).build(tmpdir)
        assert not result.passed
        assert result.error
