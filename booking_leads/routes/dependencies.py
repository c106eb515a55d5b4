from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from booking_leads.core.config import settings
from booking_leads.core.exceptions import ServiceUnavailableError
from booking_leads.core.logging import get_structlog_logger
from booking_leads.db.session import get_session
from booking_leads.services.attribution import (
    AttributionStorage,
    AttributionStore,
    RedisAttributionStorage,
)
from booking_leads.services.lead_repository import LeadRepository, SqlAlchemyLeadRepository
from booking_leads.services.redis import get_redis_client

logger = get_structlog_logger(__name__)


async def get_lead_repository(session: AsyncSession = Depends(get_session)) -> LeadRepository:
    return SqlAlchemyLeadRepository(session)


def get_visitor_id(request: Request, response: Response) -> str:
    """Visitor id from the tracking cookie, issuing a new one when missing."""
    visitor_id = request.cookies.get(settings.visitor_cookie_name)
    try:
        return str(uuid.UUID(visitor_id))
    except (TypeError, ValueError):
        pass

    visitor_id = str(uuid.uuid4())
    response.set_cookie(
        settings.visitor_cookie_name,
        visitor_id,
        max_age=settings.visitor_cookie_max_age_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return visitor_id


async def get_attribution_storage(
    visitor_id: str = Depends(get_visitor_id),
) -> Optional[AttributionStorage]:
    try:
        client = await get_redis_client()
    except ServiceUnavailableError as e:
        logger.warning("attribution.storage_unavailable", error=e.message)
        return None
    return RedisAttributionStorage(client, namespace=f"attribution:{visitor_id}")


async def get_attribution_store(
    storage: Optional[AttributionStorage] = Depends(get_attribution_storage),
) -> AttributionStore:
    return AttributionStore(storage)
