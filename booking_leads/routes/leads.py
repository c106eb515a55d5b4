from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from booking_leads.core.logging import get_structlog_logger
from booking_leads.routes.dependencies import get_attribution_store, get_lead_repository
from booking_leads.schemas.lead import BookingLeadPayload, LeadUpsertResponse
from booking_leads.services.attribution import AttributionStore
from booking_leads.services.booking_lead import upsert_booking_lead
from booking_leads.services.lead_repository import LeadRepository

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post(
    "/upsert",
    response_model=LeadUpsertResponse,
    response_model_exclude_none=True,
    summary="Autosave a booking lead",
    description=(
        "Creates a draft lead, or updates one when an id is supplied. "
        "Submissions without an email or contact number are skipped."
    ),
)
async def upsert_lead(
    payload: BookingLeadPayload,
    repository: LeadRepository = Depends(get_lead_repository),
    attribution: AttributionStore = Depends(get_attribution_store),
):
    try:
        if payload.id is None and payload.utm is None and payload.has_contact:
            record = await attribution.read()
            if record is not None and record.params:
                payload = payload.model_copy(update={"utm": record.to_utm()})

        lead = await upsert_booking_lead(repository, payload)
    except Exception as e:
        logger.error(
            "lead.upsert_failed",
            lead_id=str(payload.id) if payload.id else None,
            error_type=type(e).__name__,
            error=str(e),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to save lead"},
        )

    if lead is None:
        return LeadUpsertResponse(skipped=True)

    return LeadUpsertResponse(lead_id=lead.id)
