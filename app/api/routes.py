# app/api/routes.py
import platform
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.api.schemas import (
    DeleteRequest,
    DeleteResponse,
    HealthResponse,
    LoadAllResponse,
    LoadResponse,
    SaveRequest,
    SaveResponse,
    SlotMetadata,
)
from app.domain.errors import SlotValidationError
from app.domain.slot import utc_now
from app.logger import get_logger
from app.services.content_repository import ContentRepository

logger = get_logger(__name__)

router = APIRouter(prefix="/api/cms", tags=["cms"])


def get_repository(request: Request) -> ContentRepository:
    """Dependency injection del repositorio compartido por todas las rutas."""
    return request.app.state.repository


@router.post("/save", response_model=SaveResponse)
async def save_slot(
    request: SaveRequest,
    repository: ContentRepository = Depends(get_repository),
) -> SaveResponse:
    """
    Upsert del contenido de un slot. Valida que `data` coincida con `type`
    y asigna la siguiente versión.
    """
    try:
        record = repository.save(
            request.slot_id,
            request.data,
            kind=request.type,
            timestamp=request.timestamp,
        )
    except SlotValidationError as e:
        logger.error("Validation error saving slot %s: %s", request.slot_id, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SaveResponse(record=record.to_wire())


@router.get("/load", response_model=LoadResponse)
async def load_slot(
    slot_id: Optional[str] = Query(None, alias="slotId"),
    repository: ContentRepository = Depends(get_repository),
) -> LoadResponse:
    """
    Retorna el contenido del slot. `data: null` significa que el slot está
    vacío (no es un error).
    """
    if not slot_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameter: slotId",
        )

    record = repository.get(slot_id)
    if record is None:
        return LoadResponse(data=None, message="No data found for this slot")

    return LoadResponse(
        data=record.data,
        metadata=SlotMetadata(
            slot_id=record.slot_id,
            type=record.type,
            last_modified=record.last_modified,
            version=record.version,
        ),
    )


@router.get("/load-all", response_model=LoadAllResponse)
async def load_all_slots(
    repository: ContentRepository = Depends(get_repository),
) -> LoadAllResponse:
    records = repository.all()
    return LoadAllResponse(
        data={record.slot_id: record.data for record in records},
        metadata={
            record.slot_id: {
                "type": record.type.value,
                "lastModified": record.last_modified.isoformat(),
                "version": record.version,
            }
            for record in records
        },
        count=len(records),
        message=f"Loaded {len(records)} CMS entries",
    )


@router.delete("/delete", response_model=DeleteResponse)
async def delete_slot(
    request: DeleteRequest,
    repository: ContentRepository = Depends(get_repository),
) -> DeleteResponse:
    if not repository.delete(request.slot_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Data not found")

    deleted_at = request.timestamp or utc_now()
    return DeleteResponse(
        data={
            "slotId": request.slot_id,
            "deleted": True,
            "deletedAt": deleted_at.isoformat(),
        }
    )


@router.get("/health", response_model=HealthResponse)
async def health(
    repository: ContentRepository = Depends(get_repository),
) -> HealthResponse:
    uptime = repository.uptime_seconds
    return HealthResponse(
        data={
            "server": {
                "status": "running",
                "uptime": uptime,
                "uptimeReadable": f"{int(uptime // 60)} minutes",
                "python": platform.python_version(),
            },
            "cms": {
                "totalSlots": len(repository),
                "storageType": repository.storage_type,
                "lastCheck": utc_now().isoformat(),
            },
        }
    )
