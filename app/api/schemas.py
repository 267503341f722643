# app/api/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.domain.slot import SlotKind


class SaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slot_id: str = Field(..., alias="slotId", min_length=1, description="ID único del slot.")
    data: Union[str, List[str]] = Field(..., description="URL (single) o lista ordenada de URLs (gallery).")
    type: SlotKind = Field(SlotKind.SINGLE, description="Tipo de slot.")
    timestamp: Optional[datetime] = Field(None, description="Momento de la edición en el cliente.")


class DeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slot_id: str = Field(..., alias="slotId", min_length=1, description="ID del slot a borrar.")
    timestamp: Optional[datetime] = None


class SlotMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slot_id: str = Field(..., alias="slotId")
    type: SlotKind
    last_modified: datetime = Field(..., alias="lastModified")
    version: int


class SaveResponse(BaseModel):
    ok: bool = True
    record: Dict[str, Any]
    message: str = "Data saved successfully"


class LoadResponse(BaseModel):
    ok: bool = True
    data: Union[str, List[str], None] = None
    metadata: Optional[SlotMetadata] = None
    message: Optional[str] = None


class LoadAllResponse(BaseModel):
    ok: bool = True
    data: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    metadata: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    count: int = 0
    message: Optional[str] = None


class DeleteResponse(BaseModel):
    ok: bool = True
    data: Dict[str, Any]
    message: str = "Data deleted successfully"


class HealthResponse(BaseModel):
    ok: bool = True
    status: str = "healthy"
    data: Dict[str, Any]
    message: str = "CMS Backend is running normally"
