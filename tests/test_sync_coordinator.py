# tests/test_sync_coordinator.py
"""
Tests de la sincronización forzada servidor -> local y del estado del backend.
"""
import pytest

from app.domain.errors import RemoteUnavailable
from app.domain.slot import Origin, SlotKind, SlotRecord


class TestSyncToLocal:

    def test_overwrites_local_records_present_remotely(self, coordinator, remote, local_store):
        remote.save("hero", "remote.jpg", SlotKind.SINGLE)
        remote.save("gal", ["a", "b"], SlotKind.GALLERY)
        local_store.write("hero", SlotRecord(slot_id="hero", data="local-only.jpg"))

        report = coordinator.sync_to_local()

        assert report.synced == 2
        assert local_store.read("hero").data == "remote.jpg"
        assert local_store.read("hero").origin == Origin.REMOTE
        assert local_store.read("gal").type == SlotKind.GALLERY
        assert local_store.read("gal").data == ["a", "b"]

    def test_keeps_local_slots_missing_from_remote(self, coordinator, remote, local_store):
        """Test: Un slot ausente de la respuesta masiva no se borra del local."""
        remote.save("hero", "remote.jpg", SlotKind.SINGLE)
        local_store.write("only-local", SlotRecord(slot_id="only-local", data="keep.jpg"))

        coordinator.sync_to_local()

        assert local_store.read("only-local").data == "keep.jpg"

    def test_keeps_remote_versions(self, coordinator, remote, local_store):
        remote.save("hero", "a.jpg", SlotKind.SINGLE)
        remote.save("hero", "b.jpg", SlotKind.SINGLE)

        coordinator.sync_to_local()
        assert local_store.read("hero").version == 2

    def test_empty_remote_syncs_nothing(self, coordinator):
        assert coordinator.sync_to_local().synced == 0

    def test_offline_remote_raises(self, coordinator, http_client):
        http_client.online = False
        with pytest.raises(RemoteUnavailable):
            coordinator.sync_to_local()

    def test_applies_pending_deletes_before_pulling(
        self, coordinator, resolver, repository, local_store, http_client
    ):
        resolver.write("hero", SlotKind.SINGLE, "x.jpg")
        http_client.online = False
        resolver.delete("hero")
        http_client.online = True

        report = coordinator.sync_to_local()

        assert report.synced == 0
        assert repository.get("hero") is None
        assert local_store.read("hero") is None


class TestCheckHealth:

    def test_online(self, coordinator, remote):
        remote.save("hero", "x.jpg", SlotKind.SINGLE)

        report = coordinator.check_health()
        assert report.online is True
        assert report.cms.total_slots == 1

    def test_offline(self, coordinator, http_client):
        http_client.online = False
        report = coordinator.check_health()
        assert report.online is False

    def test_online_health_retries_pending_deletes(
        self, coordinator, resolver, repository, local_store, http_client
    ):
        resolver.write("hero", SlotKind.SINGLE, "x.jpg")
        http_client.online = False
        resolver.delete("hero")
        http_client.online = True

        coordinator.check_health()

        assert repository.get("hero") is None
        assert local_store.pending_deletes() == []
