# app/services/sync_coordinator.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from app.domain.errors import RemoteUnavailable
from app.domain.slot import Origin
from app.integrations.cms_client import HealthReport, RemoteContentClient
from app.integrations.local_store import LocalStore
from app.logger import get_logger
from app.services.slot_resolver import SlotResolver

logger = get_logger(__name__)


@dataclass
class SyncReport:
    synced: int
    skipped: List[str] = field(default_factory=list)


class SyncCoordinator:
    """
    Reconciliación forzada servidor -> local.

    Es una acción explícita del operador: sobrescribe cualquier edición que
    sólo exista en el local. Nunca borra slots locales que falten en la
    respuesta masiva (una respuesta parcial no implica borrado).
    """

    def __init__(
        self,
        local_store: LocalStore,
        remote: RemoteContentClient,
        resolver: SlotResolver,
    ) -> None:
        self.local = local_store
        self.remote = remote
        self.resolver = resolver

    def sync_to_local(self) -> SyncReport:
        """
        Copia todo el contenido del remoto al store local.

        Returns:
            SyncReport con la cantidad de slots sincronizados

        Raises:
            RemoteUnavailable: si el remoto no responde
        """
        self.resolver.retry_pending_deletes()
        records = self.remote.load_all_records()

        report = SyncReport(synced=0)
        for slot_id, record in records.items():
            # Un borrado que el remoto aún no conoce no se resucita
            if self.local.has_pending_delete(slot_id):
                report.skipped.append(slot_id)
                continue
            self.local.write(slot_id, record.with_origin(Origin.REMOTE))
            report.synced += 1

        logger.info(
            "Synced %d slots from remote to local (skipped=%d)",
            report.synced,
            len(report.skipped),
        )
        return report

    def check_health(self) -> HealthReport:
        """
        Estado del backend para el indicador online/offline del operador.
        Con el backend en línea aprovecha para aplicar borrados pendientes.
        """
        try:
            report = self.remote.health()
        except RemoteUnavailable as e:
            logger.warning("CMS backend offline: %s", e)
            return HealthReport(online=False)

        applied = self.resolver.retry_pending_deletes()
        if applied:
            logger.info("Applied %d pending deletes after backend came back", applied)
        return report
