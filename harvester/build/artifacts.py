"""Artifact resolution and placement in the harvest tree."""

from __future__ import annotations

import shutil
from pathlib import Path

from harvester.errors import ArtifactNotFound
from harvester.models.manifest import DEFAULT_OUTPUT_ARTIFACT, ManifestRecord

FALLBACK_ARTIFACTS = (DEFAULT_OUTPUT_ARTIFACT, "potato.spk.zip")


def candidate_paths(
    package_dir: Path, declared: str, cwd: Path | None = None
) -> list[Path]:
    """Places a build may have left its artifact, in lookup order.

    The declared name and the two fallback names are tried in the package
    directory first, then in the process working directory.
    """
    cwd = Path.cwd() if cwd is None else Path(cwd)
    names = []
    for name in (declared, *FALLBACK_ARTIFACTS):
        if name and name not in names:
            names.append(name)
    return [Path(package_dir) / n for n in names] + [cwd / n for n in names]


def resolve_artifact(package_dir: Path, declared: str, cwd: Path | None = None) -> Path:
    """Return the first candidate artifact that exists.

    Raises:
        ArtifactNotFound: If no candidate exists.
    """
    candidates = candidate_paths(package_dir, declared, cwd)
    for path in candidates:
        if path.is_file():
            return path
    raise ArtifactNotFound(declared, [str(p) for p in candidates])


def harvest_path(harvest_dir: Path, slug: str, version: str) -> Path:
    """``harvest/{slug}/{slug}.{version}.spk.zip``, a function of slug and version only."""
    return Path(harvest_dir) / slug / f"{slug}.{version}.spk.zip"


def place_artifact(artifact: Path, harvest_dir: Path, manifest: ManifestRecord) -> Path:
    """Copy *artifact* to its harvest location and return that path."""
    dest = harvest_path(harvest_dir, manifest.slug, manifest.version)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(artifact, dest)
    return dest
