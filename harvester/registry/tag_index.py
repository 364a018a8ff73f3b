"""Tag index generation — one JSON document per tag.

Each document lists the packages carrying a tag so consumers can fetch a
single small file instead of the whole harvest index.  Documents are
regenerated from scratch on every run.

Tag names come from package manifests and are untrusted.  They are
sanitized before they reach the path template, and every resolved path is
checked to stay inside the output root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from harvester.errors import InvalidTagName, TagIndexWriteFailed
from harvester.models.manifest import sanitize_tag
from harvester.registry.models import (
    DEFAULT_TAG_TEMPLATE,
    PackageEntry,
    TagIndexDocument,
    tag_document_to_dict,
)
from harvester.utils.fileio import atomic_write_json

logger = logging.getLogger(__name__)

TagMap = dict[str, set[str]]


def collect_tag_map(entries: list[PackageEntry]) -> TagMap:
    """Map every tag to the slugs of the entries that carry it."""
    tag_map: TagMap = {}
    for entry in entries:
        for tag in entry.tags:
            tag_map.setdefault(tag, set()).add(entry.slug)
    return tag_map


def merge_tags(tag_map: TagMap, slug: str, tags: list[str]) -> None:
    for tag in tags:
        tag_map.setdefault(tag, set()).add(slug)


class TagIndexBuilder:
    """Writes tag index documents under an output root."""

    def __init__(self, output_root: str | Path, template: str = DEFAULT_TAG_TEMPLATE):
        self.output_root = Path(output_root).resolve()
        self.template = template or DEFAULT_TAG_TEMPLATE

    def resolve_path(self, tag: str) -> Path:
        """Location of the document for ``tag``, always inside the output root.

        A leading ``/`` in the template means the output root, never the
        filesystem root.

        Raises:
            TagIndexWriteFailed: If the tag cannot be sanitized or the
                template resolves outside the output root.
        """
        try:
            safe = sanitize_tag(tag)
        except InvalidTagName as e:
            raise TagIndexWriteFailed(tag, str(e)) from e

        relative = self.template.replace("{tag}", safe).lstrip("/\\")
        path = (self.output_root / relative).resolve()
        if path == self.output_root or not path.is_relative_to(self.output_root):
            raise TagIndexWriteFailed(tag, f"path {relative!r} escapes {self.output_root}")
        return path

    def build_documents(self, tag_map: TagMap, entries: list[PackageEntry]) -> list[TagIndexDocument]:
        """Materialize one document per tag, members in registry order.

        A slug is listed under a tag only if its registry entry carries that
        tag.  Tags left without members produce no document.
        """
        documents = []
        for tag in sorted(tag_map):
            slugs = tag_map[tag]
            members = [e for e in entries if e.slug in slugs and tag in e.tags]
            if not members:
                logger.debug("Tag %r has no members, no document generated", tag)
                continue
            documents.append(TagIndexDocument(tag=tag, potatoes=members))
        return documents

    def write_all(self, tag_map: TagMap, entries: list[PackageEntry]) -> list[Path]:
        """Generate and write every tag document.

        All paths are resolved before anything is written, so a bad tag name
        fails the run without leaving a half-written set behind.

        Raises:
            TagIndexWriteFailed: On an unusable tag name, two tags mapping to
                the same file, or any I/O failure.
        """
        documents = self.build_documents(tag_map, entries)
        if not documents:
            logger.info("No tags found, skipping tag index generation")
            return []

        targets: dict[Path, TagIndexDocument] = {}
        for doc in documents:
            path = self.resolve_path(doc.tag)
            if path in targets:
                raise TagIndexWriteFailed(
                    doc.tag, f"same file as tag {targets[path].tag!r}: {path}"
                )
            targets[path] = doc

        logger.info("Generating tag indexes for all %d tags...", len(targets))
        written = []
        for path, doc in targets.items():
            try:
                atomic_write_json(path, tag_document_to_dict(doc))
            except OSError as e:
                raise TagIndexWriteFailed(doc.tag, str(e)) from e
            logger.info("  Generated %s (%d potatoes)", path.relative_to(self.output_root), doc.count)
            written.append(path)
        return written

    def prune_stale(self, indexed_tags: list[str]) -> list[Path]:
        """Delete tag documents for tags that are no longer indexed.

        Only works when ``{tag}`` sits in the file name of the template, so
        that all tag documents share one directory.
        """
        name_pattern = Path(self.template).name
        if "{tag}" not in name_pattern or "{tag}" in str(Path(self.template).parent):
            logger.warning("Template %r does not allow pruning, skipping", self.template)
            return []

        prefix, _, suffix = name_pattern.partition("{tag}")
        tag_dir = self.resolve_path("placeholder").parent
        if not tag_dir.is_dir():
            return []

        keep = {self.resolve_path(tag) for tag in indexed_tags}
        removed = []
        for path in sorted(tag_dir.iterdir()):
            if not path.is_file() or path in keep:
                continue
            if not (path.name.startswith(prefix) and path.name.endswith(suffix)):
                continue
            if len(path.name) <= len(prefix) + len(suffix):
                continue
            path.unlink()
            logger.info("  Pruned stale tag index %s", path.relative_to(self.output_root))
            removed.append(path)
        return removed
