# app/services/slot_hooks.py
"""
Handles reactivos por slot para el código de presentación.

Cada handle expone el valor resuelto, banderas de carga/error/disponibilidad
y las operaciones de edición. Las ediciones siempre "funcionan" para el
editor mientras el store local acepte escrituras; el riesgo de durabilidad se
comunica sólo por `is_backend_available` y `last_durability`.

Uso:
    hooks = SlotHooks.from_settings()
    hero = hooks.single("home-hero", initial="/img/default.jpg")
    hero.upload("https://cdn.example.com/new.jpg")

    gallery = hooks.gallery("about-memory-gallery")
    gallery.add("https://cdn.example.com/a.jpg")
    gallery.reorder(0, 2)
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence

import httpx

from app.config.settings import Settings
from app.domain import gallery as gallery_ops
from app.domain.errors import LocalStoreUnavailable, RemoteUnavailable, SlotValidationError
from app.domain.media import MediaType, validate_media_url
from app.domain.slot import Durability, Origin, SlotKind, SlotValue
from app.integrations.cms_client import HealthReport, RemoteContentClient
from app.integrations.local_store import LocalStore
from app.logger import get_logger
from app.services.slot_resolver import DeleteResult, Resolution, SlotResolver, WriteResult
from app.services.sync_coordinator import SyncCoordinator, SyncReport

logger = get_logger(__name__)

Listener = Callable[["SlotHandle"], None]

_DEFAULT = object()


class SlotHandle:
    """Estado y operaciones comunes de un slot. Usar las subclases."""

    kind: SlotKind = SlotKind.SINGLE

    def __init__(
        self,
        slot_id: str,
        resolver: SlotResolver,
        coordinator: Optional[SyncCoordinator] = None,
        initial: Optional[SlotValue] = None,
        media_type: MediaType = MediaType.ANY,
    ) -> None:
        if not slot_id:
            raise ValueError("slot_id cannot be empty")
        self.slot_id = slot_id
        self.resolver = resolver
        self.coordinator = coordinator
        self.media_type = media_type
        self._initial = initial
        self._value: Optional[SlotValue] = initial

        self.is_loading = False
        self.is_error = False
        self.error: Optional[str] = None
        self.is_backend_available = False
        self.origin: Optional[Origin] = None
        self.last_durability: Optional[Durability] = None

        self._listeners: List[Listener] = []

    # ------------------------
    # Suscripción
    # ------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Registra un listener que se llama en cada cambio de estado.

        Returns:
            Función para cancelar la suscripción
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        self.is_loading = True
        self.is_error = False
        self.error = None
        self._notify()
        try:
            yield
        except (SlotValidationError, LocalStoreUnavailable) as e:
            logger.error("%s on slot %s failed: %s", name, self.slot_id, e)
            self.is_error = True
            self.error = str(e)
            raise
        finally:
            self.is_loading = False
            self._notify()

    # ------------------------
    # Operaciones comunes
    # ------------------------
    def refresh(self) -> Resolution:
        """Vuelve a resolver el valor (remoto primero, local si el remoto cae)."""
        with self._operation("refresh"):
            resolution = self.resolver.read(self.slot_id, self.kind, self._initial)
            self._value = resolution.value
            self.origin = resolution.origin
            self.is_backend_available = resolution.remote_available
        return resolution

    def _write(self, value: SlotValue) -> WriteResult:
        result = self.resolver.write(self.slot_id, self.kind, value)
        self._value = result.value
        self.origin = result.record.origin
        self.last_durability = result.durability
        self.is_backend_available = result.remote_available
        return result

    def _delete(self) -> DeleteResult:
        result = self.resolver.delete(self.slot_id)
        self._value = self._initial
        self.origin = None
        self.last_durability = result.durability
        self.is_backend_available = result.remote_available
        return result

    def sync_to_local(self) -> Optional[SyncReport]:
        """
        Sincronización forzada servidor -> local, y recarga de este slot.

        Returns:
            SyncReport, o None si el remoto no respondió
        """
        if self.coordinator is None:
            raise RuntimeError("No SyncCoordinator configured for this handle")
        try:
            report = self.coordinator.sync_to_local()
        except RemoteUnavailable as e:
            logger.warning("Sync to local failed: %s", e)
            self.is_backend_available = False
            self._notify()
            return None
        self.refresh()
        return report

    def backend_health(self) -> HealthReport:
        if self.coordinator is None:
            raise RuntimeError("No SyncCoordinator configured for this handle")
        report = self.coordinator.check_health()
        self.is_backend_available = report.online
        self._notify()
        return report


class SingleSlotHandle(SlotHandle):
    """Slot de una sola URL (imagen o video)."""

    kind = SlotKind.SINGLE

    @property
    def value(self) -> Optional[str]:
        return self._value if isinstance(self._value, str) else None

    def upload(self, url: str) -> WriteResult:
        """
        Reemplaza la URL del slot.

        Raises:
            SlotValidationError: URL vacía o de otro tipo de medio
            LocalStoreUnavailable: remoto caído y store local sin escritura
        """
        with self._operation("upload"):
            url = validate_media_url(url, self.media_type)
            return self._write(url)

    def delete(self) -> DeleteResult:
        """Borra el slot (remoto y local) y vuelve al valor inicial."""
        with self._operation("delete"):
            return self._delete()


class GallerySlotHandle(SlotHandle):
    """Slot de galería: lista ordenada de URLs, direccionada por índice."""

    kind = SlotKind.GALLERY

    def __init__(
        self,
        slot_id: str,
        resolver: SlotResolver,
        coordinator: Optional[SyncCoordinator] = None,
        initial: Optional[Sequence[str]] = None,
        media_type: MediaType = MediaType.ANY,
        max_size: Optional[int] = None,
    ) -> None:
        super().__init__(
            slot_id,
            resolver,
            coordinator=coordinator,
            initial=list(initial or []),
            media_type=media_type,
        )
        self.max_size = max_size

    @property
    def value(self) -> List[str]:
        return gallery_ops.as_sequence(self._value)

    def __len__(self) -> int:
        return len(self.value)

    def add(self, url: str) -> WriteResult:
        """Agrega al final; con `max_size` descarta los más antiguos del frente."""
        with self._operation("add"):
            url = validate_media_url(url, self.media_type)
            return self._write(gallery_ops.append(self.value, url, self.max_size))

    def remove(self, index: int) -> WriteResult:
        with self._operation("remove"):
            return self._write(gallery_ops.remove_at(self.value, index))

    def reorder(self, from_index: int, to_index: int) -> WriteResult:
        with self._operation("reorder"):
            return self._write(gallery_ops.reorder(self.value, from_index, to_index))

    def replace(self, urls: Sequence[str]) -> WriteResult:
        """Reemplaza la galería completa."""
        with self._operation("replace"):
            items = [validate_media_url(url, self.media_type) for url in urls]
            if self.max_size and len(items) > self.max_size:
                items = items[len(items) - self.max_size:]
            return self._write(items)

    def clear(self) -> WriteResult:
        """Deja la galería vacía (se escribe una lista vacía)."""
        with self._operation("clear"):
            return self._write([])


class SlotHooks:
    """
    Fábrica de handles. Todas las instancias comparten el mismo resolver y,
    por lo tanto, el mismo store local.
    """

    def __init__(
        self,
        resolver: SlotResolver,
        coordinator: Optional[SyncCoordinator] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.resolver = resolver
        self.coordinator = coordinator or SyncCoordinator(resolver.local, resolver.remote, resolver)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
        local_store: Optional[LocalStore] = None,
    ) -> "SlotHooks":
        """
        Args:
            settings: Settings de la app
            http_client: httpx.Client ya configurado (para testing/DI)
            local_store: Store local ya construido (para testing/DI)
        """
        settings = settings or Settings()
        local = local_store or LocalStore.from_settings(settings)
        remote = RemoteContentClient(http_client=http_client, settings=settings)
        return cls(SlotResolver(local, remote), settings=settings)

    def single(
        self,
        slot_id: str,
        initial: Optional[str] = None,
        media_type: MediaType = MediaType.ANY,
        load: bool = True,
    ) -> SingleSlotHandle:
        handle = SingleSlotHandle(
            slot_id,
            self.resolver,
            coordinator=self.coordinator,
            initial=initial,
            media_type=media_type,
        )
        if load:
            handle.refresh()
        return handle

    def gallery(
        self,
        slot_id: str,
        initial: Optional[Sequence[str]] = None,
        media_type: MediaType = MediaType.ANY,
        max_size=_DEFAULT,
        load: bool = True,
    ) -> GallerySlotHandle:
        if max_size is _DEFAULT:
            max_size = self.settings.max_gallery_size
        handle = GallerySlotHandle(
            slot_id,
            self.resolver,
            coordinator=self.coordinator,
            initial=initial,
            media_type=media_type,
            max_size=max_size,
        )
        if load:
            handle.refresh()
        return handle
