"""Tests for the harvest index store."""

import json
import tempfile
from pathlib import Path

import pytest

from harvester.errors import CorruptRegistry
from harvester.models.manifest import ManifestRecord
from harvester.registry.models import INDEX_TYPE
from harvester.registry.store import RegistryStore


def _manifest(slug: str = "calc", version: str = "1.0.0", **fields) -> ManifestRecord:
    return ManifestRecord.from_dict({"slug": slug, "version": version, **fields})


def _write_index(tmpdir: str, data) -> Path:
    path = Path(tmpdir) / RegistryStore.INDEX_FILE
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return path


def test_load_missing_file_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        doc = store.load()
        assert doc.type == INDEX_TYPE
        assert doc.indexed_tags == ["official"]
        assert doc.indexed_tag_template == "/tags/{tag}.json"
        assert doc.potatoes == []
        assert not store.index_path.exists()


def test_load_corrupt_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_index(tmpdir, "{not json")
        with pytest.raises(CorruptRegistry):
            RegistryStore(path).load()


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"potatoes": {"slug": "calc"}},
        {"potatoes": ["calc"]},
        {"potatoes": [{"name": "no slug"}]},
        {"potatoes": [{"slug": "calc", "versions": "1.0.0"}]},
        {"potatoes": [{"slug": "calc"}, {"slug": "calc"}]},
        {"potatoes": [{"slug": "calc", "tags": [["a"]]}]},
        {"potatoes": [{"slug": "calc", "versions": ["1.0.0", 2]}]},
        {"potatoes": [{"slug": "calc", "current_version": 1}]},
        {"potatoes": [{"slug": "calc", "license": {"id": "MIT"}}]},
        {"indexed_tags": ["math", None]},
        {"indexed_tag_template": ["/tags/{tag}.json"]},
    ],
)
def test_load_rejects_bad_schema(data):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_index(tmpdir, data)
        with pytest.raises(CorruptRegistry):
            RegistryStore(path).load()


def test_upsert_new_entry():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        entry = store.upsert(_manifest(name="Calc", tags=["official", "math"]), "1.0.0")

        assert entry.versions == ["1.0.0"]
        assert entry.current_version == "1.0.0"
        assert entry.tags == ["official", "math"]
        assert entry.author_email == ""
        assert store.find_entry("calc") is entry
        assert store.has_version(entry, "1.0.0")
        assert not store.has_version(entry, "2.0.0")
        assert not store.has_version(None, "1.0.0")


def test_upsert_is_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        manifest = _manifest()
        store.upsert(manifest, "1.0.0")
        store.upsert(manifest, "1.0.0")

        assert len(store.entries) == 1
        assert store.entries[0].versions == ["1.0.0"]
        assert store.entries[0].current_version == "1.0.0"


def test_upsert_appends_versions_without_duplicates():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        store.upsert(_manifest(version="1.0.0"), "1.0.0")
        store.upsert(_manifest(version="2.0.0"), "2.0.0")
        entry = store.upsert(_manifest(version="1.0.0"), "1.0.0")

        assert entry.versions == ["1.0.0", "2.0.0"]
        assert entry.current_version == "1.0.0"
        assert entry.current_version in entry.versions


def test_fill_if_empty_keeps_first_value():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        store.upsert(_manifest(version="1.0.0", license="MIT"), "1.0.0")
        entry = store.upsert(
            _manifest(version="1.1.0", license="GPL", author_name="Ada", tags=["extra"]), "1.1.0"
        )

        assert entry.license == "MIT"
        assert entry.author_name == "Ada"
        assert entry.tags == ["extra"]  # empty tags get filled


def test_fill_if_empty_does_not_replace_tags():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        store.upsert(_manifest(version="1", tags=["math"]), "1")
        entry = store.upsert(_manifest(version="2", tags=["science"]), "2")
        assert entry.tags == ["math"]


def test_refresh_metadata_takes_latest_values():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir, refresh_metadata=True)
        store.load()
        store.upsert(_manifest(version="1", license="MIT", name="Calc", tags=["math"]), "1")
        entry = store.upsert(_manifest(version="2", license="GPL", tags=["science"]), "2")

        assert entry.license == "GPL"
        assert entry.name == "Calc"  # not provided by the newer manifest
        assert entry.tags == ["science"]


def test_recompute_indexed_tags():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        store.upsert(_manifest("calc", tags=["official", "math"]), "1.0.0")
        store.upsert(_manifest("notes", tags=["productivity", "official"]), "0.1.0")
        store.upsert(_manifest("bare"), "1")

        assert store.recompute_indexed_tags() == ["math", "official", "productivity"]
        assert store.document.indexed_tags == ["math", "official", "productivity"]


def test_persist_round_trip_keeps_order_and_unknown_keys():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_index(tmpdir, {"name": "Field", "mirror": "https://example.org", "potatoes": []})
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        store.upsert(_manifest("zeta"), "1")
        store.upsert(_manifest("alpha"), "1")
        assert store.dirty
        store.persist()
        assert not store.dirty

        data = json.loads(store.index_path.read_text())
        assert data["name"] == "Field"
        assert data["mirror"] == "https://example.org"
        assert [p["slug"] for p in data["potatoes"]] == ["zeta", "alpha"]
        assert list(data["potatoes"][0]) == [
            "name", "info", "slug", "tags", "author_name", "author_email",
            "author_site", "license", "current_version", "versions",
        ]

        reloaded = RegistryStore.in_directory(tmpdir)
        reloaded.load()
        assert reloaded.find_entry("alpha").versions == ["1"]


def test_load_repairs_current_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_index(
            tmpdir,
            {"potatoes": [{"slug": "calc", "current_version": "2", "versions": ["1", "1"]}]},
        )
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        assert store.find_entry("calc").versions == ["1", "2"]


def test_persist_failure_leaves_previous_index(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        store = RegistryStore.in_directory(tmpdir)
        store.load()
        store.upsert(_manifest(), "1.0.0")
        store.persist()
        before = store.index_path.read_bytes()

        store.upsert(_manifest(version="2.0.0"), "2.0.0")

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("harvester.utils.fileio.os.replace", fail_replace)
        with pytest.raises(OSError):
            store.persist()

        assert store.index_path.read_bytes() == before
        assert sorted(p.name for p in Path(tmpdir).iterdir()) == [RegistryStore.INDEX_FILE]
