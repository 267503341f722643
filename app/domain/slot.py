# app/domain/slot.py
"""
Modelo de datos de un slot de contenido.

Un slot es la unidad de contenido editable: se identifica sólo por su
`slot_id` (legible y con namespace de página/sección, ej. "about-memory-gallery")
y guarda una URL (single) o una lista ordenada de URLs (gallery).
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.domain.errors import SlotValidationError

SlotValue = Union[str, List[str]]


class SlotKind(str, Enum):
    """Tipo de slot. Fijo durante toda la vida del slot."""
    SINGLE = "single"  # Una URL (imagen o video)
    GALLERY = "gallery"  # Lista ordenada de URLs

    @classmethod
    def infer(cls, value: Any) -> "SlotKind":
        """Deduce el tipo a partir de la forma del valor (lista = galería)."""
        return cls.GALLERY if isinstance(value, list) else cls.SINGLE


class Origin(str, Enum):
    """Procedencia del valor en memoria. Nunca se envía al remoto."""
    REMOTE = "remote"
    LOCAL_FALLBACK = "local_fallback"
    LOCAL_BACKUP = "local_backup"


class Durability(str, Enum):
    """Qué tan durable quedó una escritura aceptada."""
    DURABLE_REMOTE = "durable_remote"
    LOCAL_ONLY = "local_only"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_value_shape(kind: SlotKind, value: Any) -> None:
    """
    Verifica que el valor tenga la forma que exige el tipo de slot.

    Raises:
        SlotValidationError: si un single recibe una lista o una galería
            recibe algo que no es una lista de strings.
    """
    if kind == SlotKind.SINGLE:
        if not isinstance(value, str):
            raise SlotValidationError("Single slots require a URL string")
        return

    if not isinstance(value, list):
        raise SlotValidationError("Gallery slots require a list of URLs")
    for item in value:
        if not isinstance(item, str):
            raise SlotValidationError("Gallery entries must be URL strings")


class SlotRecord(BaseModel):
    """
    Registro persistido por slot, igual en el remoto y en el store local.

    `version` es un contador visible por slot; no se usa para resolver
    conflictos (gana el último que escribe).
    """
    model_config = ConfigDict(populate_by_name=True)

    slot_id: str = Field(..., alias="slotId", min_length=1, description="ID único del slot")
    data: SlotValue = Field(..., description="URL o lista ordenada de URLs")
    type: SlotKind = Field(SlotKind.SINGLE, description="Tipo de slot")
    last_modified: datetime = Field(default_factory=utc_now, alias="lastModified")
    version: int = Field(0, ge=0, description="Contador de escrituras exitosas")

    # Sólo en el store local
    origin: Optional[Origin] = Field(None, description="Procedencia del registro local")

    @model_validator(mode="after")
    def _check_shape(self) -> "SlotRecord":
        check_value_shape(self.type, self.data)
        return self

    def with_origin(self, origin: Origin) -> "SlotRecord":
        return self.model_copy(update={"origin": origin})

    def to_wire(self) -> dict[str, Any]:
        """Forma JSON del registro tal como la maneja el servicio remoto."""
        return self.model_dump(by_alias=True, mode="json", exclude={"origin"})

    def to_local_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
