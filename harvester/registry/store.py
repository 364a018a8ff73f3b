"""File-backed harvest index.

The whole index lives in a single JSON document (``harvest-index.json``).
It is loaded once at the start of a run, mutated in memory, and written back
atomically at the end, so an interrupted run leaves the previous index intact.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from harvester.errors import CorruptRegistry
from harvester.models.manifest import DESCRIPTIVE_FIELDS, ManifestRecord
from harvester.registry.models import (
    PackageEntry,
    RegistryDocument,
    dict_to_document,
    document_to_dict,
)
from harvester.utils.fileio import atomic_write_json

logger = logging.getLogger(__name__)


class RegistryStore:
    """The harvest index: an ordered list of package entries keyed by slug.

    Entries keep their insertion order in ``document.potatoes``.  A slug to
    entry dict is maintained next to the list so ``find_entry`` is a dict
    lookup rather than a scan of every entry.
    """

    INDEX_FILE = "harvest-index.json"

    def __init__(self, index_path: str | Path, refresh_metadata: bool = False):
        self.index_path = Path(index_path)
        self.refresh_metadata = refresh_metadata
        self.document = RegistryDocument()
        self._by_slug: dict[str, PackageEntry] = {}
        self._snapshot: dict = document_to_dict(self.document)

    @classmethod
    def in_directory(cls, root: str | Path, **kwargs) -> "RegistryStore":
        return cls(Path(root) / cls.INDEX_FILE, **kwargs)

    # -- load / persist -------------------------------------------------------

    def load(self) -> RegistryDocument:
        """Read the persisted index, or start a fresh one if there is none.

        Raises:
            CorruptRegistry: If the file exists but does not hold a valid index.
        """
        if not self.index_path.exists():
            logger.info("No harvest index at %s, starting a new one", self.index_path)
            self.document = RegistryDocument()
        else:
            try:
                data = json.loads(self.index_path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                raise CorruptRegistry(str(self.index_path), str(e)) from e
            _check_schema(str(self.index_path), data)
            self.document = dict_to_document(data)

        self._by_slug = {}
        for entry in self.document.potatoes:
            if entry.slug in self._by_slug:
                raise CorruptRegistry(str(self.index_path), f"duplicate slug {entry.slug!r}")
            self._by_slug[entry.slug] = entry
            _repair_versions(entry)

        self._snapshot = document_to_dict(self.document)
        logger.debug("Loaded %d package(s) from %s", len(self.document.potatoes), self.index_path)
        return self.document

    def persist(self) -> None:
        """Write the index to disk in a single atomic replace."""
        atomic_write_json(self.index_path, document_to_dict(self.document))
        self._snapshot = document_to_dict(self.document)
        logger.info("Harvest index saved to %s", self.index_path)

    @property
    def dirty(self) -> bool:
        """True when the in-memory index differs from what was loaded or saved."""
        return document_to_dict(self.document) != self._snapshot

    # -- queries --------------------------------------------------------------

    @property
    def entries(self) -> list[PackageEntry]:
        return self.document.potatoes

    def find_entry(self, slug: str) -> PackageEntry | None:
        return self._by_slug.get(slug)

    @staticmethod
    def has_version(entry: PackageEntry | None, version: str) -> bool:
        return entry is not None and version in entry.versions

    # -- mutation -------------------------------------------------------------

    def upsert(self, manifest: ManifestRecord, version: str) -> PackageEntry:
        """Create or update the entry for ``manifest.slug``.

        A new slug gets an entry with ``versions = [version]``.  For a known
        slug the version is appended if absent and always becomes
        ``current_version``.  Descriptive fields are only filled where the
        entry has none yet, unless the store runs with ``refresh_metadata``,
        in which case any non-empty manifest value replaces the stored one.
        Calling this twice with the same arguments changes nothing the
        second time.
        """
        entry = self.find_entry(manifest.slug)

        if entry is None:
            entry = PackageEntry(
                slug=manifest.slug,
                tags=list(manifest.tags),
                current_version=version,
                versions=[version],
                **{name: getattr(manifest, name) for name in DESCRIPTIVE_FIELDS},
            )
            self.document.potatoes.append(entry)
            self._by_slug[entry.slug] = entry
            logger.debug("Added %s to harvest index", entry.qualified_id)
            return entry

        if version not in entry.versions:
            entry.versions.append(version)
        entry.current_version = version

        for name in DESCRIPTIVE_FIELDS:
            incoming = getattr(manifest, name)
            if incoming and (self.refresh_metadata or not getattr(entry, name)):
                setattr(entry, name, incoming)
        if manifest.tags and (self.refresh_metadata or not entry.tags):
            entry.tags = list(manifest.tags)

        logger.debug("Updated %s in harvest index", entry.qualified_id)
        return entry

    def recompute_indexed_tags(self) -> list[str]:
        """Set ``indexed_tags`` to the sorted union of every entry's tags."""
        tags = sorted({tag for entry in self.document.potatoes for tag in entry.tags})
        self.document.indexed_tags = tags
        return tags


def _repair_versions(entry: PackageEntry) -> None:
    """Drop repeated versions and make sure current_version is listed."""
    versions: list[str] = []
    for version in entry.versions:
        if version not in versions:
            versions.append(version)
    if entry.current_version and entry.current_version not in versions:
        versions.append(entry.current_version)
    entry.versions = versions


def _check_schema(path: str, data) -> None:
    if not isinstance(data, dict):
        raise CorruptRegistry(path, "top level is not an object")

    for key in ("indexed_tags", "potatoes"):
        if key in data and not isinstance(data[key], list):
            raise CorruptRegistry(path, f"'{key}' is not a list")
    if not _all_strings(data.get("indexed_tags", [])):
        raise CorruptRegistry(path, "'indexed_tags' holds a non-string value")
    for key in ("name", "info", "type", "zip_template", "indexed_tag_template"):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise CorruptRegistry(path, f"'{key}' is not a string")

    for i, potato in enumerate(data.get("potatoes", [])):
        if not isinstance(potato, dict):
            raise CorruptRegistry(path, f"potato {i} is not an object")
        if not isinstance(potato.get("slug"), str) or not potato["slug"]:
            raise CorruptRegistry(path, f"potato {i} has no slug")
        slug = potato["slug"]
        for key in ("tags", "versions"):
            value = potato.get(key)
            if value is None:
                continue
            if not isinstance(value, list):
                raise CorruptRegistry(path, f"potato {slug!r} '{key}' is not a list")
            if not _all_strings(value):
                raise CorruptRegistry(path, f"potato {slug!r} '{key}' holds a non-string value")
        for key in ("current_version", *DESCRIPTIVE_FIELDS):
            if potato.get(key) is not None and not isinstance(potato[key], str):
                raise CorruptRegistry(path, f"potato {slug!r} '{key}' is not a string")


def _all_strings(values: list) -> bool:
    return all(isinstance(v, str) for v in values)
