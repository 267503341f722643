# app/integrations/local_store.py
"""
Store local persistente de registros de slot.

Equivale al localStorage del navegador: un espacio de llaves string -> string
compartido por todo el proceso, con una entrada JSON por slot bajo un prefijo
fijo. Es caché y respaldo, nunca la fuente de verdad cuando el remoto responde.
"""
from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from app.config.settings import Settings
from app.domain.errors import LocalCorrupt, LocalStoreUnavailable
from app.domain.slot import Origin, SlotKind, SlotRecord, utc_now
from app.logger import get_logger

logger = get_logger(__name__)


class KeyValueBackend(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


class MemoryBackend:
    """Backend en memoria. Sirve como fake en tests y como store efímero."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class JsonFileBackend:
    """
    Backend en un único documento JSON en disco.

    Mantiene una copia en memoria y reescribe el archivo completo de forma
    atómica en cada cambio. Un archivo ilegible se trata como vacío y se
    sobrescribe en la siguiente escritura.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._items: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Local store file %s unreadable, starting empty: %s", self.path, e)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Local store file %s is not a JSON object, starting empty", self.path)
            return {}
        return {str(k): v for k, v in payload.items() if isinstance(v, str)}

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".local-store-")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._items, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise LocalStoreUnavailable(f"Cannot write local store {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._items.get(key)
            self._items[key] = value
            try:
                self._flush()
            except LocalStoreUnavailable:
                if previous is None:
                    self._items.pop(key, None)
                else:
                    self._items[key] = previous
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            if key not in self._items:
                return
            previous = self._items.pop(key)
            try:
                self._flush()
            except LocalStoreUnavailable:
                self._items[key] = previous
                raise

    def keys(self) -> List[str]:
        return list(self._items)


def normalize_stored_value(slot_id: str, raw: str) -> SlotRecord:
    """
    Convierte cualquier formato almacenado en un SlotRecord.

    Formatos aceptados:
    1. Registro actual: {"slotId", "data", "type", "lastModified", "version", "origin"?}
    2. Envoltura anterior: {"data", "type"?, "backup"|"fallback": true}
    3. Envoltura antigua de single: {"url": "..."}
    4. Galería antigua: arreglo JSON de URLs (también bajo `redux-gallery-<slot>`)
    5. URL suelta sin JSON (single)

    Raises:
        LocalCorrupt: si el valor no corresponde a ningún formato.
    """
    text = raw.strip()
    if not text:
        raise LocalCorrupt(slot_id, "empty value")

    # Formato 5: URL suelta
    if text[0] not in "{[":
        return SlotRecord(slot_id=slot_id, data=text, type=SlotKind.SINGLE)

    try:
        payload = json.loads(text)
    except ValueError as e:
        raise LocalCorrupt(slot_id, f"invalid JSON: {e}") from e

    try:
        # Formato 4
        if isinstance(payload, list):
            return SlotRecord(slot_id=slot_id, data=payload, type=SlotKind.GALLERY)

        if not isinstance(payload, dict):
            raise LocalCorrupt(slot_id, f"unexpected JSON value {type(payload).__name__}")

        # Formato 1
        if "slotId" in payload and "data" in payload:
            record = SlotRecord.model_validate(payload)
            if record.slot_id != slot_id:
                record = record.model_copy(update={"slot_id": slot_id})
            return record

        # Formato 2
        if "data" in payload:
            data = payload["data"]
            origin = None
            if payload.get("backup"):
                origin = Origin.LOCAL_BACKUP
            elif payload.get("fallback"):
                origin = Origin.LOCAL_FALLBACK
            fields = {
                "slot_id": slot_id,
                "data": data,
                "type": payload.get("type") or SlotKind.infer(data),
                "origin": origin,
            }
            if payload.get("lastModified"):
                fields["last_modified"] = payload["lastModified"]
            return SlotRecord(**fields)

        # Formato 3
        if isinstance(payload.get("url"), str):
            return SlotRecord(slot_id=slot_id, data=payload["url"], type=SlotKind.SINGLE)

    except ValidationError as e:
        raise LocalCorrupt(slot_id, f"invalid record: {e.errors()[0].get('msg')}") from e

    raise LocalCorrupt(slot_id, "unrecognized record format")


class LocalStore:
    """
    Lectura/escritura de registros de slot sobre un KeyValueBackend.

    Las lecturas nunca lanzan: un registro faltante o corrupto es "ausente".
    Las escrituras sobrescriben sin merge y son visibles de inmediato para
    cualquier lector que comparta la instancia.
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        prefix: str = "redux-cms-",
        pending_delete_prefix: str = "redux-pending-delete-",
        legacy_gallery_prefix: Optional[str] = "redux-gallery-",
    ) -> None:
        """
        Args:
            backend: Backend de llaves/valores (MemoryBackend si es None)
            prefix: Prefijo de las llaves de registros de slot
            pending_delete_prefix: Prefijo de las marcas de borrado pendiente
            legacy_gallery_prefix: Prefijo antiguo de galerías (arreglo JSON);
                sólo se lee como respaldo. None lo desactiva.
        """
        if pending_delete_prefix.startswith(prefix):
            raise ValueError("pending_delete_prefix must not live under the record prefix")
        if legacy_gallery_prefix is not None and (
            legacy_gallery_prefix.startswith(prefix)
            or legacy_gallery_prefix.startswith(pending_delete_prefix)
            or prefix.startswith(legacy_gallery_prefix)
            or pending_delete_prefix.startswith(legacy_gallery_prefix)
        ):
            raise ValueError("legacy_gallery_prefix must not overlap the other key prefixes")
        self.backend = backend if backend is not None else MemoryBackend()
        self.prefix = prefix
        self.pending_delete_prefix = pending_delete_prefix
        self.legacy_gallery_prefix = legacy_gallery_prefix

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LocalStore":
        settings = settings or Settings()
        backend: KeyValueBackend
        if settings.local_store_path:
            backend = JsonFileBackend(settings.local_store_path)
        else:
            backend = MemoryBackend()
        return cls(
            backend=backend,
            prefix=settings.storage_prefix,
            pending_delete_prefix=settings.pending_delete_prefix,
            legacy_gallery_prefix=settings.legacy_gallery_prefix,
        )

    def _key(self, slot_id: str) -> str:
        return f"{self.prefix}{slot_id}"

    def _legacy_gallery_key(self, slot_id: str) -> Optional[str]:
        if self.legacy_gallery_prefix is None:
            return None
        return f"{self.legacy_gallery_prefix}{slot_id}"

    def read(self, slot_id: str) -> Optional[SlotRecord]:
        raw = self.backend.get_item(self._key(slot_id))
        if raw is None:
            return self._read_legacy_gallery(slot_id)
        try:
            return normalize_stored_value(slot_id, raw)
        except LocalCorrupt as e:
            logger.warning("Ignoring local record: %s", e)
            return None

    def _read_legacy_gallery(self, slot_id: str) -> Optional[SlotRecord]:
        """Galería guardada con el esquema antiguo: un arreglo JSON bajo su propia llave."""
        key = self._legacy_gallery_key(slot_id)
        raw = self.backend.get_item(key) if key is not None else None
        if raw is None:
            return None
        try:
            record = normalize_stored_value(slot_id, raw)
        except LocalCorrupt as e:
            logger.warning("Ignoring legacy gallery: %s", e)
            return None
        if record.type != SlotKind.GALLERY:
            logger.warning("Ignoring legacy gallery for slot %s: not a JSON array", slot_id)
            return None
        logger.debug("Read slot %s from legacy gallery key", slot_id)
        return record

    def write(self, slot_id: str, record: SlotRecord) -> None:
        if record.slot_id != slot_id:
            record = record.model_copy(update={"slot_id": slot_id})
        try:
            self.backend.set_item(self._key(slot_id), record.to_local_json())
        except LocalStoreUnavailable:
            raise
        except OSError as e:
            raise LocalStoreUnavailable(f"Cannot write local record {slot_id}: {e}") from e
        logger.debug("Local record written slot=%s origin=%s", slot_id, record.origin)

    def remove(self, slot_id: str) -> None:
        """Borra el registro y, si existe, la galería antigua del mismo slot."""
        keys = [self._key(slot_id)]
        legacy_key = self._legacy_gallery_key(slot_id)
        if legacy_key is not None:
            keys.append(legacy_key)
        try:
            for key in keys:
                self.backend.remove_item(key)
        except LocalStoreUnavailable:
            raise
        except OSError as e:
            raise LocalStoreUnavailable(f"Cannot remove local record {slot_id}: {e}") from e

    def _slot_keys(self) -> Dict[str, str]:
        """{llave: slot_id} de registros actuales y galerías antiguas."""
        found: Dict[str, str] = {}
        for key in self.backend.keys():
            if key.startswith(self.prefix):
                found[key] = key[len(self.prefix):]
            elif self.legacy_gallery_prefix is not None and key.startswith(self.legacy_gallery_prefix):
                found[key] = key[len(self.legacy_gallery_prefix):]
        return found

    def enumerate(self) -> List[Tuple[str, SlotRecord]]:
        """Todos los registros legibles, ordenados por slot_id. El registro actual gana a la galería antigua."""
        records: List[Tuple[str, SlotRecord]] = []
        for slot_id in sorted(set(self._slot_keys().values())):
            record = self.read(slot_id)
            if record is not None:
                records.append((slot_id, record))
        return records

    def clear_all(self) -> int:
        """Borra todos los registros de slot, incluidas las galerías antiguas (acción de administrador)."""
        keys = list(self._slot_keys())
        for key in keys:
            self.backend.remove_item(key)
        logger.info("Cleared %d local slot records", len(keys))
        return len(keys)

    # ------------------------
    # Borrados pendientes contra el remoto
    # ------------------------
    def mark_pending_delete(self, slot_id: str) -> None:
        self.backend.set_item(f"{self.pending_delete_prefix}{slot_id}", utc_now().isoformat())

    def clear_pending_delete(self, slot_id: str) -> None:
        self.backend.remove_item(f"{self.pending_delete_prefix}{slot_id}")

    def has_pending_delete(self, slot_id: str) -> bool:
        return self.backend.get_item(f"{self.pending_delete_prefix}{slot_id}") is not None

    def pending_deletes(self) -> List[str]:
        return sorted(
            key[len(self.pending_delete_prefix):]
            for key in self.backend.keys()
            if key.startswith(self.pending_delete_prefix)
        )
