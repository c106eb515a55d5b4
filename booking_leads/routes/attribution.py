from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from booking_leads.core.exceptions import ServiceUnavailableError
from booking_leads.core.logging import get_structlog_logger
from booking_leads.routes.dependencies import get_attribution_store
from booking_leads.services.attribution import AttributionStorageUnavailable, AttributionStore

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/attribution", tags=["attribution"])


class CaptureRequest(BaseModel):
    query: Optional[str] = Field(
        default=None,
        max_length=4096,
        description="Query string of the landing page URL; defaults to this request's own query",
    )


class AttributionResponse(BaseModel):
    captured: Optional[bool] = None
    attribution: Optional[Dict[str, Optional[str]]] = None


@router.post("/capture", response_model=AttributionResponse)
async def capture_attribution(
    request: Request,
    body: Optional[CaptureRequest] = None,
    store: AttributionStore = Depends(get_attribution_store),
):
    """Record first-touch UTM parameters for this visitor."""
    query = body.query if body and body.query is not None else str(request.url.query)
    try:
        record = await store.capture(query)
    except AttributionStorageUnavailable as e:
        raise ServiceUnavailableError(
            "Attribution storage unavailable",
            code="attribution_storage_unavailable",
        ) from e

    if record is None:
        existing = await store.read()
        return AttributionResponse(
            captured=False,
            attribution=existing.to_dict() if existing else None,
        )
    return AttributionResponse(captured=True, attribution=record.to_dict())


@router.get("")
async def read_attribution(store: AttributionStore = Depends(get_attribution_store)):
    record = await store.read()
    return {"attribution": record.to_dict() if record else None}


@router.delete("")
async def clear_attribution(store: AttributionStore = Depends(get_attribution_store)):
    try:
        await store.clear()
    except AttributionStorageUnavailable as e:
        raise ServiceUnavailableError(
            "Attribution storage unavailable",
            code="attribution_storage_unavailable",
        ) from e
    return {"cleared": True}
