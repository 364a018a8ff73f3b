"""Registry data models — package entries, the harvest index, tag documents."""

from __future__ import annotations

from dataclasses import dataclass, field

INDEX_TYPE = "harvester-v1"
DEFAULT_NAME = "Official Potato Field"
DEFAULT_INFO = "Official Potato Field for PotatoVerse"
DEFAULT_ZIP_TEMPLATE = "/harvest/{slug}/{slug}.{version}.spk.zip"
DEFAULT_TAG_TEMPLATE = "/tags/{tag}.json"
DEFAULT_INDEXED_TAGS = ("official",)


@dataclass
class PackageEntry:
    """A single package in the harvest index."""

    slug: str
    name: str = ""
    info: str = ""
    tags: list[str] = field(default_factory=list)
    author_name: str = ""
    author_email: str = ""
    author_site: str = ""
    license: str = ""
    current_version: str = ""
    versions: list[str] = field(default_factory=list)

    @property
    def qualified_id(self) -> str:
        return f"{self.slug}@{self.current_version}"


@dataclass
class RegistryDocument:
    """The durable harvest index."""

    name: str = DEFAULT_NAME
    info: str = DEFAULT_INFO
    type: str = INDEX_TYPE
    zip_template: str = DEFAULT_ZIP_TEMPLATE
    indexed_tags: list[str] = field(default_factory=lambda: list(DEFAULT_INDEXED_TAGS))
    indexed_tag_template: str = DEFAULT_TAG_TEMPLATE
    potatoes: list[PackageEntry] = field(default_factory=list)

    # Top-level keys this version does not know about, kept on persist.
    extra: dict = field(default_factory=dict)


@dataclass
class TagIndexDocument:
    """Derived per-tag listing of member packages."""

    tag: str
    potatoes: list[PackageEntry] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.potatoes)


def entry_to_dict(entry: PackageEntry) -> dict:
    return {
        "name": entry.name,
        "info": entry.info,
        "slug": entry.slug,
        "tags": list(entry.tags),
        "author_name": entry.author_name,
        "author_email": entry.author_email,
        "author_site": entry.author_site,
        "license": entry.license,
        "current_version": entry.current_version,
        "versions": list(entry.versions),
    }


def dict_to_entry(data: dict) -> PackageEntry:
    return PackageEntry(
        slug=data["slug"],
        name=data.get("name") or "",
        info=data.get("info") or "",
        tags=list(data.get("tags") or []),
        author_name=data.get("author_name") or "",
        author_email=data.get("author_email") or "",
        author_site=data.get("author_site") or "",
        license=data.get("license") or "",
        current_version=data.get("current_version") or "",
        versions=list(data.get("versions") or []),
    )


_DOCUMENT_KEYS = (
    "name",
    "info",
    "type",
    "zip_template",
    "indexed_tags",
    "indexed_tag_template",
    "potatoes",
)


def document_to_dict(doc: RegistryDocument) -> dict:
    data = {
        "name": doc.name,
        "info": doc.info,
        "type": doc.type,
        "zip_template": doc.zip_template,
        "indexed_tags": list(doc.indexed_tags),
        "indexed_tag_template": doc.indexed_tag_template,
        "potatoes": [entry_to_dict(p) for p in doc.potatoes],
    }
    for key, value in doc.extra.items():
        data.setdefault(key, value)
    return data


def dict_to_document(data: dict) -> RegistryDocument:
    return RegistryDocument(
        name=data.get("name", DEFAULT_NAME),
        info=data.get("info", DEFAULT_INFO),
        type=data.get("type", INDEX_TYPE),
        zip_template=data.get("zip_template", DEFAULT_ZIP_TEMPLATE),
        indexed_tags=list(data.get("indexed_tags", DEFAULT_INDEXED_TAGS)),
        indexed_tag_template=data.get("indexed_tag_template") or DEFAULT_TAG_TEMPLATE,
        potatoes=[dict_to_entry(p) for p in data.get("potatoes", [])],
        extra={k: v for k, v in data.items() if k not in _DOCUMENT_KEYS},
    )


def tag_document_to_dict(doc: TagIndexDocument) -> dict:
    return {
        "tag": doc.tag,
        "count": doc.count,
        "potatoes": [entry_to_dict(p) for p in doc.potatoes],
    }
