"""
Cliente HTTP del servicio remoto de contenido (/api/cms).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.config.settings import Settings
from app.domain.errors import RemoteUnavailable
from app.domain.slot import SlotKind, SlotRecord, SlotValue, utc_now
from app.logger import get_logger

logger = get_logger(__name__)


class CmsHealth(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_slots: int = Field(0, alias="totalSlots")
    storage_type: str = Field("unknown", alias="storageType")
    last_check: Optional[datetime] = Field(None, alias="lastCheck")


class HealthReport(BaseModel):
    """Estado del backend tal como lo reporta GET /health."""
    online: bool = True
    server: Dict[str, Any] = Field(default_factory=dict)
    cms: CmsHealth = Field(default_factory=CmsHealth)


def _is_slot_value(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


class RemoteContentClient:
    """
    Fachada sobre el servicio remoto de contenido.

    Todas las fallas (red, timeout, status no-2xx, body malformado o `ok`
    falso) se normalizan a RemoteUnavailable. "Sin datos" NO es una falla:
    `load()` devuelve None y el llamador debe usar su valor inicial.

    Uso:
        client = RemoteContentClient(base_url="http://localhost:8000")
        client.save("hero", "https://cdn/x.jpg", SlotKind.SINGLE)
        value = client.load("hero")
    """

    API_PREFIX = "/api/cms"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Args:
            base_url: URL base del servicio (default: settings.remote_base_url)
            timeout: Timeout en segundos (default: settings.request_timeout)
            http_client: httpx.Client ya configurado (para testing/DI)
            settings: Settings de la app
        """
        self.settings = settings or Settings()
        if http_client is not None:
            self._client = http_client
            self._owns_client = False
        else:
            self._client = httpx.Client(
                base_url=(base_url or self.settings.remote_base_url).rstrip("/"),
                timeout=timeout if timeout is not None else self.settings.request_timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_client = True

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RemoteContentClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        allow_not_found: bool = False,
    ) -> Optional[dict]:
        url = f"{self.API_PREFIX}{path}"
        try:
            response = self._client.request(method, url, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.warning("Timeout calling %s %s: %s", method, url, e)
            raise RemoteUnavailable(f"Timeout calling {url}") from e
        except httpx.HTTPError as e:
            logger.warning("Network error calling %s %s: %s", method, url, e)
            raise RemoteUnavailable(f"Network error calling {url}: {e}") from e

        if allow_not_found and response.status_code == 404:
            return None

        if not response.is_success:
            logger.warning(
                "HTTP error from %s %s: status=%s body=%s",
                method,
                url,
                response.status_code,
                response.text[:200],
            )
            raise RemoteUnavailable(f"{method} {url} failed", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            logger.warning("Malformed response body from %s %s", method, url)
            raise RemoteUnavailable(f"Malformed response from {url}") from e

        if not isinstance(body, dict) or body.get("ok") is not True:
            logger.warning("Unexpected response envelope from %s %s: %s", method, url, body)
            raise RemoteUnavailable(f"Unexpected response from {url}")
        return body

    def save(self, slot_id: str, value: SlotValue, kind: SlotKind) -> SlotRecord:
        """
        Upsert del registro del slot en el servidor.

        Returns:
            El registro almacenado (con la versión asignada por el servidor)
        """
        payload = {
            "slotId": slot_id,
            "data": value,
            "type": kind.value,
            "timestamp": utc_now().isoformat(),
        }
        body = self._request("POST", "/save", json=payload)
        try:
            record = SlotRecord.model_validate(body.get("record"))
        except ValidationError as e:
            raise RemoteUnavailable(f"Malformed record returned for {slot_id}") from e

        logger.info("Saved slot %s remotely (version=%s)", slot_id, record.version)
        return record

    def load(self, slot_id: str) -> Optional[SlotValue]:
        """
        Returns:
            El valor del slot, o None si el servidor no tiene datos para él
        """
        record = self.load_record(slot_id)
        return record.data if record is not None else None

    def load_record(self, slot_id: str) -> Optional[SlotRecord]:
        """Como `load`, pero conserva tipo/versión de `metadata` si vienen."""
        body = self._request("GET", "/load", params={"slotId": slot_id})
        if "data" not in body:
            raise RemoteUnavailable(f"Response for {slot_id} has no 'data' field")

        data = body["data"]
        if data is None:
            logger.debug("Remote has no data for slot %s", slot_id)
            return None
        if not _is_slot_value(data):
            raise RemoteUnavailable(f"Malformed data returned for {slot_id}")
        meta = body.get("metadata")
        if meta is not None and not isinstance(meta, dict):
            raise RemoteUnavailable(f"Malformed metadata returned for {slot_id}")
        return self._build_record(slot_id, data, meta or {})

    @staticmethod
    def _build_record(slot_id: str, value: SlotValue, meta: Dict[str, Any]) -> SlotRecord:
        if not isinstance(meta, dict):
            raise RemoteUnavailable(f"Malformed metadata returned for {slot_id}")
        fields: Dict[str, Any] = {
            "slot_id": slot_id,
            "data": value,
            "type": SlotKind.infer(value),
            "version": meta.get("version") or 0,
        }
        if meta.get("lastModified"):
            fields["last_modified"] = meta["lastModified"]
        try:
            return SlotRecord(**fields)
        except ValidationError as e:
            raise RemoteUnavailable(f"Inconsistent record returned for {slot_id}") from e

    def load_all(self) -> Dict[str, SlotValue]:
        """Lectura masiva: {slot_id: valor}."""
        return {slot_id: record.data for slot_id, record in self.load_all_records().items()}

    def load_all_records(self) -> Dict[str, SlotRecord]:
        """
        Lectura masiva conservando tipo/versión cuando el servidor envía `metadata`.
        Sin metadata, el tipo se deduce de la forma del valor.
        """
        body = self._request("GET", "/load-all")
        data = body.get("data")
        if not isinstance(data, dict):
            raise RemoteUnavailable("Malformed load-all response")
        metadata = body.get("metadata")
        if metadata is None:
            metadata = {}
        elif not isinstance(metadata, dict):
            raise RemoteUnavailable("Malformed load-all metadata")

        records: Dict[str, SlotRecord] = {}
        for slot_id, value in data.items():
            if not _is_slot_value(value):
                logger.warning("Skipping malformed remote value for slot %s", slot_id)
                continue
            try:
                records[slot_id] = self._build_record(slot_id, value, metadata.get(slot_id) or {})
            except RemoteUnavailable:
                logger.warning("Skipping inconsistent remote record for slot %s", slot_id)

        logger.info("Loaded %d slots from remote", len(records))
        return records

    def delete(self, slot_id: str) -> bool:
        """
        Borra el slot en el servidor. Un 404 cuenta como éxito.

        Returns:
            True si existía y se borró, False si ya no existía
        """
        payload = {"slotId": slot_id, "timestamp": utc_now().isoformat()}
        body = self._request("DELETE", "/delete", json=payload, allow_not_found=True)
        if body is None:
            logger.info("Slot %s already absent remotely", slot_id)
            return False
        logger.info("Deleted slot %s remotely", slot_id)
        return True

    def health(self) -> HealthReport:
        body = self._request("GET", "/health")
        try:
            return HealthReport.model_validate(body.get("data") or {})
        except ValidationError as e:
            raise RemoteUnavailable("Malformed health response") from e
