# app/services/slot_resolver.py
"""
Protocolo de doble store (remoto + local) para slots de contenido.

Lectura: el remoto manda; el local sólo se consulta si el remoto no responde.
Escritura: siempre se calcula el valor completo y se intenta el remoto; el
resultado (exitoso o no) se refleja en el local. Borrado: se intenta el
remoto y el local se limpia siempre.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.domain.errors import LocalStoreUnavailable, RemoteUnavailable
from app.domain.slot import (
    Durability,
    Origin,
    SlotKind,
    SlotRecord,
    SlotValue,
    check_value_shape,
    utc_now,
)
from app.integrations.cms_client import RemoteContentClient
from app.integrations.local_store import LocalStore
from app.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Valor autoritativo actual de un slot y por qué se eligió."""
    slot_id: str
    value: Optional[SlotValue]
    origin: Optional[Origin]  # None = valor inicial del llamador
    remote_available: bool
    record: Optional[SlotRecord] = None


@dataclass(frozen=True)
class WriteResult:
    slot_id: str
    value: SlotValue
    durability: Durability
    record: SlotRecord
    remote_available: bool

    @property
    def is_durable(self) -> bool:
        return self.durability == Durability.DURABLE_REMOTE


@dataclass(frozen=True)
class DeleteResult:
    slot_id: str
    durability: Durability
    remote_available: bool


class SlotResolver:
    """
    Resuelve y escribe slots aplicando el protocolo de fallback.

    El store local se inyecta: todas las instancias que comparten el mismo
    LocalStore ven las escrituras de las demás de inmediato.
    """

    def __init__(self, local_store: LocalStore, remote: RemoteContentClient) -> None:
        """
        Args:
            local_store: Store local compartido (caché y respaldo)
            remote: Cliente del servicio remoto de contenido
        """
        self.local = local_store
        self.remote = remote

    # ------------------------
    # Lectura
    # ------------------------
    def read(
        self,
        slot_id: str,
        kind: SlotKind = SlotKind.SINGLE,
        initial: Optional[SlotValue] = None,
    ) -> Resolution:
        """
        Protocolo de lectura:
        1. Si hay un borrado pendiente, se reintenta primero.
        2. Remoto con valor -> se refleja en el local y se retorna.
        3. Remoto sin datos -> valor inicial; el local NO se consulta.
        4. Remoto caído -> registro local (LOCAL_FALLBACK) o valor inicial.
        """
        try:
            if self.local.has_pending_delete(slot_id):
                self._retry_delete(slot_id)
                return Resolution(slot_id, initial, None, remote_available=True)

            stored = self.remote.load_record(slot_id)
        except RemoteUnavailable as e:
            return self._read_local(slot_id, kind, initial, reason=str(e))

        if stored is None:
            logger.debug("Slot %s is empty remotely, using initial value", slot_id)
            return Resolution(slot_id, initial, None, remote_available=True)

        if stored.type != kind:
            logger.warning(
                "Remote value for slot %s is not a %s slot, using initial value",
                slot_id,
                kind.value,
            )
            return Resolution(slot_id, initial, None, remote_available=True)

        record = stored.with_origin(Origin.REMOTE)
        self._mirror(record)
        return Resolution(slot_id, record.data, Origin.REMOTE, remote_available=True, record=record)

    def _read_local(
        self,
        slot_id: str,
        kind: SlotKind,
        initial: Optional[SlotValue],
        reason: str,
    ) -> Resolution:
        record = self.local.read(slot_id)
        if record is None or record.type != kind:
            logger.info("Remote unavailable for slot %s (%s), no local record", slot_id, reason)
            return Resolution(slot_id, initial, None, remote_available=False)

        logger.info("Remote unavailable for slot %s (%s), using local record", slot_id, reason)
        return Resolution(
            slot_id,
            record.data,
            Origin.LOCAL_FALLBACK,
            remote_available=False,
            record=record,
        )

    # ------------------------
    # Escritura
    # ------------------------
    def write(self, slot_id: str, kind: SlotKind, value: SlotValue) -> WriteResult:
        """
        Protocolo de escritura (valor completo, nunca deltas):
        1. Validar la forma del valor (antes de tocar cualquier store).
        2. Intentar guardar en el remoto.
        3. Éxito -> reflejar en el local como LOCAL_BACKUP (DURABLE_REMOTE).
        4. Falla -> escribir en el local como LOCAL_FALLBACK (LOCAL_ONLY).

        Raises:
            SlotValidationError: si el valor no coincide con el tipo
            LocalStoreUnavailable: si el remoto falló y el local tampoco acepta la escritura
        """
        check_value_shape(kind, value)
        previous = self.local.read(slot_id)

        try:
            stored = self.remote.save(slot_id, value, kind)
        except RemoteUnavailable as e:
            logger.warning("Remote save failed for slot %s, keeping local copy: %s", slot_id, e)
            record = SlotRecord(
                slot_id=slot_id,
                data=value,
                type=kind,
                last_modified=utc_now(),
                version=(previous.version if previous else 0) + 1,
                origin=Origin.LOCAL_FALLBACK,
            )
            self.local.write(slot_id, record)
            return WriteResult(slot_id, value, Durability.LOCAL_ONLY, record, remote_available=False)

        record = stored.with_origin(Origin.LOCAL_BACKUP)
        self._mirror(record)
        self._forget_pending_delete(slot_id)
        return WriteResult(slot_id, value, Durability.DURABLE_REMOTE, record, remote_available=True)

    def _mirror(self, record: SlotRecord) -> None:
        """Refleja un valor del remoto en el local. El remoto ya lo tiene: una falla local no es fatal."""
        try:
            self.local.write(record.slot_id, record)
        except LocalStoreUnavailable as e:
            logger.error("Could not mirror slot %s into local store: %s", record.slot_id, e)

    def _forget_pending_delete(self, slot_id: str) -> None:
        try:
            self.local.clear_pending_delete(slot_id)
        except LocalStoreUnavailable as e:
            logger.error("Could not clear pending delete for slot %s: %s", slot_id, e)

    # ------------------------
    # Borrado
    # ------------------------
    def delete(self, slot_id: str) -> DeleteResult:
        """
        Intenta el borrado remoto y SIEMPRE limpia el local. Si el remoto no
        responde, deja una marca para reintentarlo en la próxima conexión.
        """
        try:
            self.remote.delete(slot_id)
            remote_available = True
        except RemoteUnavailable as e:
            logger.warning("Remote delete failed for slot %s, will retry: %s", slot_id, e)
            remote_available = False

        self.local.remove(slot_id)
        if remote_available:
            self._forget_pending_delete(slot_id)
            return DeleteResult(slot_id, Durability.DURABLE_REMOTE, remote_available=True)

        self.local.mark_pending_delete(slot_id)
        return DeleteResult(slot_id, Durability.LOCAL_ONLY, remote_available=False)

    def _retry_delete(self, slot_id: str) -> None:
        """Raises RemoteUnavailable si el remoto sigue caído."""
        self.remote.delete(slot_id)
        self.local.clear_pending_delete(slot_id)
        logger.info("Pending delete for slot %s applied remotely", slot_id)

    def retry_pending_deletes(self) -> int:
        """
        Reintenta todos los borrados pendientes. Se detiene en la primera
        falla del remoto.

        Returns:
            Cantidad de borrados aplicados
        """
        applied = 0
        for slot_id in self.local.pending_deletes():
            try:
                self._retry_delete(slot_id)
            except RemoteUnavailable as e:
                logger.warning("Remote still unavailable retrying delete of slot %s: %s", slot_id, e)
                break
            applied += 1
        return applied
