"""Package manifest records — the normalized form of one ``potato.yaml``.

Every optional field carries a documented default and the record is
validated once, when it is built from the decoded document.  Code past the
parse boundary never re-checks for missing keys.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from harvester.errors import InvalidManifest, InvalidTagName, ManifestParseError

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAMES = ("potato.yaml", "potato.yml")

# Fallback artifact name when the manifest has no developer.output_zip_file
DEFAULT_OUTPUT_ARTIFACT = "package.spk.zip"

# Slugs and versions become path components under the harvest tree.
_SAFE_COMPONENT_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._+-]*$")
_UNSAFE_TAG_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")

DESCRIPTIVE_FIELDS = (
    "name",
    "info",
    "author_name",
    "author_email",
    "author_site",
    "license",
)


@dataclass
class ManifestRecord:
    """One discovered package manifest."""

    slug: str
    version: str
    name: str = ""
    info: str = ""
    tags: list[str] = field(default_factory=list)
    author_name: str = ""
    author_email: str = ""
    author_site: str = ""
    license: str = ""
    declared_output_artifact: str = DEFAULT_OUTPUT_ARTIFACT
    source_path: Path | None = None

    @property
    def qualified_id(self) -> str:
        return f"{self.slug}@{self.version}"

    @property
    def package_dir(self) -> Path | None:
        """Directory holding the manifest, where the build runs."""
        return self.source_path.parent if self.source_path else None

    @classmethod
    def from_dict(cls, data: dict, source_path: Path | None = None) -> "ManifestRecord":
        """Build a record from a decoded manifest document.

        Raises:
            InvalidManifest: If ``slug`` or ``version`` is missing, or either
                cannot be used as a single path component, ``tags`` is not a
                list, or ``developer.output_zip_file`` is not a plain file name.
        """
        slug = _scalar(data.get("slug"))
        version = _scalar(data.get("version"))
        if not slug or not version:
            raise InvalidManifest("missing slug or version")
        for label, value in (("slug", slug), ("version", version)):
            if not _SAFE_COMPONENT_RE.match(value):
                raise InvalidManifest(f"{label} {value!r} is not a safe path component")

        developer = data.get("developer") or {}
        output = ""
        if isinstance(developer, dict):
            output = _scalar(developer.get("output_zip_file"))
        # The artifact is looked up by name inside the package directory.
        if output and (Path(output).name != output or output in (".", "..") or "\\" in output):
            raise InvalidManifest(f"output_zip_file {output!r} must be a plain file name")

        return cls(
            slug=slug,
            version=version,
            tags=_normalize_tags(data.get("tags")),
            declared_output_artifact=output or DEFAULT_OUTPUT_ARTIFACT,
            source_path=source_path,
            **{name: _scalar(data.get(name)) for name in DESCRIPTIVE_FIELDS},
        )


def load_manifest(path: str | Path) -> ManifestRecord:
    """Read and validate a manifest file.

    Raises:
        ManifestParseError: If the file cannot be read or is not a YAML mapping.
        InvalidManifest: If required fields are missing.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ManifestParseError(str(path), str(e)) from e

    if not isinstance(data, dict):
        raise ManifestParseError(str(path), "top level is not a mapping")

    return ManifestRecord.from_dict(data, source_path=path)


def _scalar(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def sanitize_tag(tag: str) -> str:
    """Turn a tag name into a single safe file name component.

    Path separators and anything outside ``[A-Za-z0-9._-]`` become ``_``.

    Raises:
        InvalidTagName: If nothing usable is left (empty, ``.`` or ``..``).
    """
    safe = _UNSAFE_TAG_CHARS_RE.sub("_", str(tag).strip())
    if not safe or set(safe) == {"."}:
        raise InvalidTagName(tag)
    return safe


def _normalize_tags(value) -> list[str]:
    """Tags as an ordered set of safe tag names.

    Each tag is escaped with ``sanitize_tag`` so that what reaches the index
    can always be used in a tag index path.  Tags with nothing usable left
    are dropped.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise InvalidManifest("tags must be a list")

    tags: list[str] = []
    for item in value:
        if item is None:
            continue
        if not isinstance(item, (str, int, float)):
            raise InvalidManifest(f"tag {item!r} is not a string")
        try:
            tag = sanitize_tag(item)
        except InvalidTagName:
            logger.warning("Dropping unusable tag %r", item)
            continue
        if tag not in tags:
            tags.append(tag)
    return tags
