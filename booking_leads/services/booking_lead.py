"""
Booking lead lifecycle: autosave upsert, conversion after payment and the
abandoned-draft report.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence

from booking_leads.core.config import settings
from booking_leads.core.logging import get_structlog_logger
from booking_leads.db.base import utcnow
from booking_leads.models.lead import Lead
from booking_leads.schemas.lead import BookingLeadPayload, LeadPatch, LeadRecord
from booking_leads.services.lead_repository import LeadFilter, LeadOrder, LeadRepository

logger = get_structlog_logger(__name__)


async def upsert_booking_lead(
    repository: LeadRepository,
    payload: BookingLeadPayload,
    *,
    now: Optional[datetime] = None,
) -> Optional[Lead]:
    """
    Save or update a lead from partial booking form state.

    Workflow:
    1. Skip entirely when neither email nor contact number is present.
    2. With an id, apply a LeadPatch built from the fields present in the
       payload. Attribution is never part of an update.
    3. Without an id, create a draft with every field populated (nulls for
       anything missing) and attribution from the payload's utm block.

    Returns:
        The persisted Lead, or None when the contact gate skipped the save.

    Raises:
        Whatever the repository raises; failures are not handled here.
    """
    if not payload.has_contact:
        logger.debug("lead.upsert_skipped", reason="no_contact", lead_id=payload.id)
        return None

    now = now or utcnow()

    if payload.id is not None:
        patch = LeadPatch.from_payload(payload)
        values = patch.values()
        values["updated_at"] = now
        lead = await repository.update(payload.id, values)
        logger.info("lead.updated", lead_id=str(lead.id), fields=sorted(patch.values()))
        return lead

    record = LeadRecord.from_payload(
        payload,
        now=now,
        default_currency=settings.default_currency,
    )
    lead = await repository.create(record.values())
    logger.info(
        "lead.created",
        lead_id=str(lead.id),
        booking_type=record.booking_type,
        source=record.source,
        utm_source=record.utm_source,
    )
    return lead


async def mark_lead_converted_by_email(
    repository: LeadRepository,
    email: Optional[str],
    *,
    now: Optional[datetime] = None,
) -> int:
    """Convert every draft lead with this email. Returns the number converted.

    All matching drafts are converted together, including older abandoned
    attempts by the same customer.
    """
    if not email:
        return 0

    converted = await repository.update_many(
        LeadFilter(email=email, status="draft"),
        {"status": "converted", "updated_at": now or utcnow()},
    )
    logger.info("lead.converted", email=email, count=converted)
    return converted


async def get_abandoned_leads(
    repository: LeadRepository,
    hours_ago: float = 24,
    *,
    now: Optional[datetime] = None,
) -> Sequence[Lead]:
    """Drafts created at least ``hours_ago`` hours ago, newest first.

    Age is measured from creation, so a draft still being edited can appear.
    """
    cutoff = (now or utcnow()) - timedelta(hours=hours_ago)
    return await repository.find_many(
        LeadFilter(status="draft", created_before=cutoff),
        order_by=LeadOrder.CREATED_DESC,
    )
