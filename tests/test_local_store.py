# tests/test_local_store.py
"""
Tests del store local: registros, formatos antiguos, corrupción y backends.
"""
import json

import pytest

from app.config.settings import Settings
from app.domain.errors import LocalCorrupt, LocalStoreUnavailable
from app.domain.slot import Origin, SlotKind, SlotRecord
from app.integrations.local_store import (
    JsonFileBackend,
    LocalStore,
    MemoryBackend,
    normalize_stored_value,
)


class TestLocalStore:
    """Tests de lectura/escritura sobre MemoryBackend."""

    def test_missing_record_is_absent(self, local_store):
        assert local_store.read("never-written") is None

    def test_write_then_read(self, local_store):
        record = SlotRecord(slot_id="hero", data="x.jpg", version=3, origin=Origin.LOCAL_BACKUP)
        local_store.write("hero", record)

        stored = local_store.read("hero")
        assert stored.data == "x.jpg"
        assert stored.version == 3
        assert stored.origin == Origin.LOCAL_BACKUP

    def test_write_uses_prefixed_key(self, local_store, backend):
        local_store.write("hero", SlotRecord(slot_id="hero", data="x.jpg"))
        assert backend.keys() == ["redux-cms-hero"]
        assert json.loads(backend.get_item("redux-cms-hero"))["slotId"] == "hero"

    def test_write_overwrites_without_merge(self, local_store):
        local_store.write("gal", SlotRecord(slot_id="gal", data=["a", "b"], type=SlotKind.GALLERY))
        local_store.write("gal", SlotRecord(slot_id="gal", data=["c"], type=SlotKind.GALLERY))
        assert local_store.read("gal").data == ["c"]

    def test_write_is_visible_to_other_stores_on_same_backend(self, backend):
        writer = LocalStore(backend=backend)
        reader = LocalStore(backend=backend)
        writer.write("hero", SlotRecord(slot_id="hero", data="x.jpg"))
        assert reader.read("hero").data == "x.jpg"

    def test_remove(self, local_store):
        local_store.write("hero", SlotRecord(slot_id="hero", data="x.jpg"))
        local_store.remove("hero")
        assert local_store.read("hero") is None

    def test_enumerate_lists_only_slot_records(self, local_store, backend):
        local_store.write("b", SlotRecord(slot_id="b", data="b.jpg"))
        local_store.write("a", SlotRecord(slot_id="a", data=["1"], type=SlotKind.GALLERY))
        local_store.mark_pending_delete("c")
        backend.set_item("unrelated-key", "value")
        backend.set_item("redux-cms-broken", "{not json")

        listed = local_store.enumerate()
        assert [slot_id for slot_id, _ in listed] == ["a", "b"]

    def test_clear_all_keeps_foreign_keys(self, local_store, backend):
        local_store.write("a", SlotRecord(slot_id="a", data="a.jpg"))
        backend.set_item("unrelated-key", "value")

        assert local_store.clear_all() == 1
        assert backend.keys() == ["unrelated-key"]

    def test_pending_deletes(self, local_store):
        local_store.mark_pending_delete("hero")
        local_store.mark_pending_delete("gal")
        assert local_store.has_pending_delete("hero")
        assert local_store.pending_deletes() == ["gal", "hero"]

        local_store.clear_pending_delete("hero")
        assert local_store.pending_deletes() == ["gal"]

    def test_pending_prefix_cannot_shadow_records(self):
        with pytest.raises(ValueError):
            LocalStore(prefix="cms-", pending_delete_prefix="cms-pending-")

    def test_from_settings_defaults_to_memory(self):
        store = LocalStore.from_settings(Settings(local_store_path=None))
        assert isinstance(store.backend, MemoryBackend)
        assert store.prefix == "redux-cms-"


class TestLegacyFormats:
    """Tests de compatibilidad con formatos almacenados por versiones anteriores."""

    def test_bare_url_string(self, local_store, backend):
        backend.set_item("redux-cms-hero", "https://cdn.test/old.jpg")
        record = local_store.read("hero")

        assert record.data == "https://cdn.test/old.jpg"
        assert record.type == SlotKind.SINGLE

    def test_url_envelope(self):
        record = normalize_stored_value("hero", '{"url": "https://cdn.test/a.jpg"}')
        assert record.data == "https://cdn.test/a.jpg"

    def test_backup_envelope(self):
        raw = json.dumps({
            "data": ["a.jpg", "b.jpg"],
            "type": "gallery",
            "lastModified": "2024-05-01T10:00:00Z",
            "backup": True,
        })
        record = normalize_stored_value("gal", raw)

        assert record.type == SlotKind.GALLERY
        assert record.data == ["a.jpg", "b.jpg"]
        assert record.origin == Origin.LOCAL_BACKUP
        assert record.last_modified.year == 2024

    def test_fallback_envelope_without_type(self):
        record = normalize_stored_value("hero", json.dumps({"data": "x.jpg", "fallback": True}))
        assert record.type == SlotKind.SINGLE
        assert record.origin == Origin.LOCAL_FALLBACK

    def test_bare_json_array_is_gallery(self):
        record = normalize_stored_value("gal", '["a.jpg", "a.jpg"]')
        assert record.type == SlotKind.GALLERY
        assert record.data == ["a.jpg", "a.jpg"]

    def test_record_with_other_slot_id_takes_key_identity(self):
        raw = SlotRecord(slot_id="old-name", data="x.jpg").to_local_json()
        assert normalize_stored_value("new-name", raw).slot_id == "new-name"

    @pytest.mark.parametrize("raw", [
        "   ",
        "{broken json",
        '{"something": "else"}',
        '{"data": ["a", 1]}',
        '{"slotId": "x", "data": ["a"], "type": "single"}',
        '[1, 2]',
    ])
    def test_corrupt_values_raise(self, raw):
        with pytest.raises(LocalCorrupt):
            normalize_stored_value("x", raw)

    def test_corrupt_record_reads_as_absent(self, local_store, backend):
        """Test: Un registro corrupto no se propaga como error."""
        backend.set_item("redux-cms-hero", "{broken")
        assert local_store.read("hero") is None

    def test_corrupt_record_is_healed_by_next_write(self, local_store, backend):
        backend.set_item("redux-cms-hero", "{broken")
        local_store.write("hero", SlotRecord(slot_id="hero", data="fixed.jpg"))
        assert local_store.read("hero").data == "fixed.jpg"


class TestLegacyGalleryKeys:
    """Tests de galerías guardadas bajo `redux-gallery-<slot>` por versiones anteriores."""

    def test_read_falls_back_to_legacy_gallery_key(self, local_store, backend):
        backend.set_item("redux-gallery-memory", json.dumps(["a.jpg", "b.jpg"]))

        record = local_store.read("memory")
        assert record.data == ["a.jpg", "b.jpg"]
        assert record.type == SlotKind.GALLERY

    def test_current_record_wins_over_legacy_gallery(self, local_store, backend):
        backend.set_item("redux-gallery-memory", json.dumps(["old.jpg"]))
        local_store.write("memory", SlotRecord(slot_id="memory", data=["new.jpg"], type=SlotKind.GALLERY))

        assert local_store.read("memory").data == ["new.jpg"]
        assert local_store.enumerate() == [("memory", local_store.read("memory"))]

    def test_legacy_gallery_that_is_not_array_is_absent(self, local_store, backend):
        backend.set_item("redux-gallery-memory", "a.jpg")
        assert local_store.read("memory") is None

    def test_enumerate_includes_legacy_galleries(self, local_store, backend):
        local_store.write("hero", SlotRecord(slot_id="hero", data="x.jpg"))
        backend.set_item("redux-gallery-memory", json.dumps(["a.jpg"]))

        assert [slot_id for slot_id, _ in local_store.enumerate()] == ["hero", "memory"]

    def test_clear_all_removes_legacy_galleries(self, local_store, backend):
        local_store.write("hero", SlotRecord(slot_id="hero", data="x.jpg"))
        backend.set_item("redux-gallery-memory", json.dumps(["a.jpg"]))
        backend.set_item("unrelated-key", "value")

        assert local_store.clear_all() == 2
        assert backend.keys() == ["unrelated-key"]

    def test_remove_also_drops_legacy_gallery(self, local_store, backend):
        backend.set_item("redux-gallery-memory", json.dumps(["a.jpg"]))
        local_store.remove("memory")
        assert local_store.read("memory") is None

    def test_legacy_prefix_can_be_disabled(self, backend):
        backend.set_item("redux-gallery-memory", json.dumps(["a.jpg"]))
        store = LocalStore(backend=backend, legacy_gallery_prefix=None)
        assert store.read("memory") is None
        assert store.enumerate() == []

    def test_legacy_prefix_cannot_overlap(self):
        with pytest.raises(ValueError):
            LocalStore(prefix="cms-", legacy_gallery_prefix="cms-gallery-")

    def test_from_settings_uses_legacy_prefix(self):
        store = LocalStore.from_settings(Settings(legacy_gallery_prefix="old-gal-"))
        assert store.legacy_gallery_prefix == "old-gal-"


class TestJsonFileBackend:
    """Tests del backend en archivo."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        LocalStore(backend=JsonFileBackend(path)).write(
            "hero", SlotRecord(slot_id="hero", data="x.jpg")
        )

        reopened = LocalStore(backend=JsonFileBackend(path))
        assert reopened.read("hero").data == "x.jpg"

    def test_remove_persists(self, tmp_path):
        path = tmp_path / "store.json"
        store = LocalStore(backend=JsonFileBackend(path))
        store.write("hero", SlotRecord(slot_id="hero", data="x.jpg"))
        store.remove("hero")

        assert LocalStore(backend=JsonFileBackend(path)).read("hero") is None

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("not json at all", encoding="utf-8")

        backend = JsonFileBackend(path)
        assert backend.keys() == []

        backend.set_item("k", "v")
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}

    def test_write_failure_raises_local_store_unavailable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        backend = JsonFileBackend(blocker / "store.json")

        with pytest.raises(LocalStoreUnavailable):
            backend.set_item("k", "v")
        assert backend.get_item("k") is None

    def test_from_settings_uses_file(self, tmp_path):
        path = tmp_path / "cms.json"
        store = LocalStore.from_settings(Settings(local_store_path=str(path)))
        assert isinstance(store.backend, JsonFileBackend)
