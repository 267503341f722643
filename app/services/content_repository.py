# app/services/content_repository.py
from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

from app.domain.slot import SlotKind, SlotRecord, SlotValue, check_value_shape, utc_now
from app.logger import get_logger

logger = get_logger(__name__)


class ContentRepository:
    """
    Almacén del lado servidor para los registros de slot.

    Una sola instancia por aplicación, compartida por todas las rutas.
    Cada escritura incrementa la versión del slot.
    """

    storage_type = "memory"

    def __init__(self) -> None:
        self._records: Dict[str, SlotRecord] = {}
        self._lock = threading.Lock()
        self.started_at = time.monotonic()

    def save(
        self,
        slot_id: str,
        data: SlotValue,
        kind: SlotKind = SlotKind.SINGLE,
        timestamp: Optional[datetime] = None,
    ) -> SlotRecord:
        """
        Raises:
            SlotValidationError: si `data` no coincide con `kind`
        """
        check_value_shape(kind, data)
        with self._lock:
            previous = self._records.get(slot_id)
            record = SlotRecord(
                slot_id=slot_id,
                data=data,
                type=kind,
                last_modified=timestamp or utc_now(),
                version=(previous.version if previous else 0) + 1,
            )
            self._records[slot_id] = record

        logger.info("CMS data saved: %s (%s) version=%d", slot_id, kind.value, record.version)
        return record

    def get(self, slot_id: str) -> Optional[SlotRecord]:
        with self._lock:
            return self._records.get(slot_id)

    def all(self) -> List[SlotRecord]:
        with self._lock:
            return list(self._records.values())

    def delete(self, slot_id: str) -> bool:
        with self._lock:
            deleted = self._records.pop(slot_id, None) is not None
        if deleted:
            logger.info("CMS data deleted: %s", slot_id)
        return deleted

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at
