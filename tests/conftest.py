# tests/conftest.py
import httpx
import pytest
from fastapi.testclient import TestClient

from app.integrations.cms_client import RemoteContentClient
from app.integrations.local_store import LocalStore, MemoryBackend
from app.main import create_app
from app.services.content_repository import ContentRepository
from app.services.slot_hooks import SlotHooks
from app.services.slot_resolver import SlotResolver
from app.services.sync_coordinator import SyncCoordinator


class SwitchableClient(TestClient):
    """TestClient que puede simular que el backend está caído."""

    online = True

    def send(self, request, **kwargs):
        if not self.online:
            raise httpx.ConnectError("backend offline", request=request)
        return super().send(request, **kwargs)


@pytest.fixture
def repository():
    return ContentRepository()


@pytest.fixture
def http_client(repository):
    with SwitchableClient(create_app(repository)) as client:
        yield client


@pytest.fixture
def remote(http_client):
    return RemoteContentClient(http_client=http_client)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def local_store(backend):
    return LocalStore(backend=backend)


@pytest.fixture
def resolver(local_store, remote):
    return SlotResolver(local_store, remote)


@pytest.fixture
def coordinator(local_store, remote, resolver):
    return SyncCoordinator(local_store, remote, resolver)


@pytest.fixture
def hooks(resolver, coordinator):
    return SlotHooks(resolver, coordinator)
