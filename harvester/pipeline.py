"""Harvest pipeline — one full run across every configured source.

For each manifest the pipeline decides whether there is work to do (a version
the index has not seen), builds the package, stores its artifact under
``harvest/{slug}/`` and records it in the harvest index.  A failing package
is logged and skipped; only a corrupt index or a failed tag index write
stops the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from harvester.build.artifacts import place_artifact, resolve_artifact
from harvester.build.runner import PackageBuilder
from harvester.config import HarvestConfig, Source
from harvester.errors import (
    BuildFailed,
    DuplicateVersion,
    HarvesterError,
    InvalidManifest,
    ManifestParseError,
    SourceSyncFailed,
)
from harvester.models.manifest import ManifestRecord, load_manifest
from harvester.registry.store import RegistryStore
from harvester.registry.tag_index import TagIndexBuilder, TagMap, collect_tag_map, merge_tags
from harvester.utils.file_scanner import find_manifest_files
from harvester.utils.git_ops import sync_source

logger = logging.getLogger(__name__)


class Outcome:
    HARVESTED = "harvested"
    SKIPPED = "skipped"  # Version already in the index
    INVALID = "invalid"  # Unreadable manifest or missing fields
    FAILED = "failed"  # Build, artifact, or copy failure


@dataclass
class ManifestResult:
    """What happened to one manifest during a run."""

    path: str
    outcome: str
    slug: str = ""
    version: str = ""
    artifact: str = ""
    reason: str = ""


@dataclass
class HarvestReport:
    """Summary of a harvest run."""

    results: list[ManifestResult] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    tag_files: list[Path] = field(default_factory=list)
    pruned_tag_files: list[Path] = field(default_factory=list)

    def by_outcome(self, outcome: str) -> list[ManifestResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def harvested(self) -> list[ManifestResult]:
        return self.by_outcome(Outcome.HARVESTED)

    @property
    def skipped(self) -> list[ManifestResult]:
        return self.by_outcome(Outcome.SKIPPED)

    @property
    def invalid(self) -> list[ManifestResult]:
        return self.by_outcome(Outcome.INVALID)

    @property
    def failed(self) -> list[ManifestResult]:
        return self.by_outcome(Outcome.FAILED)

    def summary(self) -> str:
        return (
            f"{len(self.harvested)} harvested, {len(self.skipped)} up to date, "
            f"{len(self.invalid)} invalid, {len(self.failed)} failed, "
            f"{len(self.tags)} tags"
        )


class HarvestPipeline:
    """Drives the registry store and tag index builder for one run.

    The tag to slugs map is owned by the run: it starts from the tags already
    in the index, grows as manifests are harvested, and is handed to the tag
    index builder at the end.
    """

    def __init__(
        self,
        config: HarvestConfig,
        builder: PackageBuilder | None = None,
        sync: Callable[[Source, Path], Path] = sync_source,
        cwd: Path | None = None,
    ):
        self.config = config
        self.builder = builder or PackageBuilder(config.build_command, config.build_timeout)
        self.sync = sync
        self.cwd = cwd
        self.store = RegistryStore(config.index_path, refresh_metadata=config.refresh_metadata)

    def run(self) -> HarvestReport:
        """Harvest every source, then save the index and write tag indexes.

        Raises:
            CorruptRegistry: If the existing harvest index cannot be read.
            TagIndexWriteFailed: If a tag index cannot be written.
        """
        report = HarvestReport()
        self.config.build_dir.mkdir(parents=True, exist_ok=True)
        self.config.harvest_dir.mkdir(parents=True, exist_ok=True)

        self.store.load()
        tag_map = collect_tag_map(self.store.entries)

        for source in self.config.sources:
            self.process_source(source, tag_map, report)

        report.tags = self.store.recompute_indexed_tags()
        logger.info("Found %d unique tags: %s", len(report.tags), ", ".join(report.tags))
        self.store.persist()

        tag_builder = TagIndexBuilder(
            self.config.output_root, self.store.document.indexed_tag_template
        )
        report.tag_files = tag_builder.write_all(tag_map, self.store.entries)
        if self.config.prune_tags:
            report.pruned_tag_files = tag_builder.prune_stale(report.tags)

        logger.info("Harvest complete: %s", report.summary())
        return report

    def process_source(self, source: Source, tag_map: TagMap, report: HarvestReport) -> None:
        logger.info("Processing repo: %s", source.name)
        try:
            repo_dir = self.sync(source, self.config.build_dir)
        except SourceSyncFailed as e:
            logger.error("  x %s", e)
            report.failed_sources.append(source.name)
            return

        manifest_paths = find_manifest_files(repo_dir)
        logger.info("  Found %d potato.yaml file(s)", len(manifest_paths))

        for path in manifest_paths:
            report.results.append(self.process_manifest(path, repo_dir, tag_map))

    def process_manifest(self, path: Path, repo_dir: Path, tag_map: TagMap) -> ManifestResult:
        """Harvest a single manifest.  Never raises."""
        logger.info("  Processing: %s", _relative(path.parent, repo_dir))

        try:
            manifest = load_manifest(path)
        except (ManifestParseError, InvalidManifest) as e:
            logger.warning("    ! Skipping: %s", e)
            return ManifestResult(path=str(path), outcome=Outcome.INVALID, reason=str(e))
        except Exception as e:
            logger.warning("    ! Skipping: unreadable manifest: %s", e)
            logger.debug("Unexpected error reading %s", path, exc_info=True)
            return ManifestResult(path=str(path), outcome=Outcome.INVALID, reason=str(e))

        logger.info("    Slug: %s, Version: %s", manifest.slug, manifest.version)
        result = ManifestResult(
            path=str(path), outcome=Outcome.FAILED, slug=manifest.slug, version=manifest.version
        )

        if self.store.has_version(self.store.find_entry(manifest.slug), manifest.version):
            logger.info("    v Version %s already exists, skipping", manifest.version)
            result.outcome = Outcome.SKIPPED
            result.reason = str(DuplicateVersion(manifest.slug, manifest.version))
            return result

        try:
            dest = self._harvest(manifest)
        except HarvesterError as e:
            logger.error("    x %s", e)
            result.reason = str(e)
            return result
        except Exception as e:
            logger.error("    x Error: %s", e)
            logger.debug("Unexpected error harvesting %s", manifest.qualified_id, exc_info=True)
            result.reason = str(e)
            return result

        merge_tags(tag_map, manifest.slug, manifest.tags)
        result.outcome = Outcome.HARVESTED
        result.artifact = str(dest)
        return result

    def _harvest(self, manifest: ManifestRecord) -> Path:
        """Build, place the artifact, and update the index."""
        package_dir = manifest.package_dir
        logger.info("    Building package...")
        build = self.builder.build(package_dir)
        if not build.passed:
            if build.error:
                logger.debug("Build error: %s", build.error)
            raise BuildFailed(str(package_dir), build.exit_code, build.stderr)

        artifact = resolve_artifact(package_dir, manifest.declared_output_artifact, self.cwd)
        dest = place_artifact(artifact, self.config.harvest_dir, manifest)
        logger.info("    v Copied to harvest: %s", _relative(dest, self.config.harvest_dir))

        self.store.upsert(manifest, manifest.version)
        logger.info("    v Updated harvest index")
        return dest


def _relative(path: Path, base: Path) -> str:
    try:
        return str(Path(path).relative_to(base))
    except ValueError:
        return str(path)
