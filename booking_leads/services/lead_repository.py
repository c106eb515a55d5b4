"""
Persistence for booking leads.

``LeadRepository`` is the narrow interface the lead services depend on;
``SqlAlchemyLeadRepository`` implements it over an ``AsyncSession``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booking_leads.core.exceptions import LeadNotFoundError
from booking_leads.core.logging import get_structlog_logger
from booking_leads.db.base import utcnow
from booking_leads.models.lead import Lead

logger = get_structlog_logger(__name__)

AFFILIATE = "affiliate"


class UtmFilter(str, Enum):
    ALL = "all"
    AFFILIATE = "affiliate"
    DIRECT = "direct"


class LeadOrder(str, Enum):
    CREATED_DESC = "created_desc"
    CREATED_ASC = "created_asc"


@dataclass(frozen=True)
class LeadFilter:
    """Predicate over leads. Unset fields do not constrain the selection.

    ``utm`` accepts ``all``, ``affiliate`` (source or medium equals
    "affiliate"), ``direct`` (no utm_source) or a specific utm_source.
    """

    status: Optional[str] = None
    email: Optional[str] = None
    booking_type: Optional[str] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    search: Optional[str] = None
    utm: Optional[str] = None

    def clauses(self) -> List[Any]:
        conditions: List[Any] = []

        if self.status is not None:
            conditions.append(Lead.status == self.status)
        if self.email is not None:
            conditions.append(Lead.email == self.email)
        if self.booking_type is not None:
            conditions.append(Lead.booking_type == self.booking_type)
        if self.created_after is not None:
            conditions.append(Lead.created_at >= self.created_after)
        if self.created_before is not None:
            conditions.append(Lead.created_at <= self.created_before)

        if self.search and self.search.strip():
            pattern = f"%{self.search.strip().lower()}%"
            searchable = (
                Lead.full_name,
                Lead.email,
                Lead.contact_number,
                Lead.source,
                Lead.utm_source,
                Lead.utm_medium,
                Lead.utm_campaign,
            )
            conditions.append(or_(*(func.lower(column).like(pattern) for column in searchable)))

        if self.utm and self.utm != UtmFilter.ALL.value:
            if self.utm == UtmFilter.AFFILIATE.value:
                conditions.append(or_(Lead.utm_medium == AFFILIATE, Lead.utm_source == AFFILIATE))
            elif self.utm == UtmFilter.DIRECT.value:
                conditions.append(or_(Lead.utm_source.is_(None), Lead.utm_source == ""))
            else:
                conditions.append(Lead.utm_source == self.utm)

        return conditions


class LeadRepository(Protocol):
    async def create(self, values: Mapping[str, Any]) -> Lead:
        ...

    async def update(self, lead_id: UUID, values: Mapping[str, Any]) -> Lead:
        ...

    async def update_many(self, where: LeadFilter, values: Mapping[str, Any]) -> int:
        ...

    async def find_many(
        self,
        where: LeadFilter,
        order_by: LeadOrder = LeadOrder.CREATED_DESC,
        limit: Optional[int] = None,
    ) -> Sequence[Lead]:
        ...

    async def get(self, lead_id: UUID) -> Optional[Lead]:
        ...

    async def delete(self, lead_id: UUID) -> bool:
        ...


class SqlAlchemyLeadRepository:
    """Lead repository backed by SQLAlchemy. Each write commits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, values: Mapping[str, Any]) -> Lead:
        lead = Lead(**values)
        self.session.add(lead)
        await self.session.commit()
        await self.session.refresh(lead)
        return lead

    async def update(self, lead_id: UUID, values: Mapping[str, Any]) -> Lead:
        lead = await self.session.get(Lead, lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)

        lead.update(**values)
        await self.session.commit()
        await self.session.refresh(lead)
        return lead

    async def update_many(self, where: LeadFilter, values: Mapping[str, Any]) -> int:
        conditions = where.clauses()
        if not conditions:
            raise ValueError("update_many requires at least one condition")

        data = dict(values)
        data.setdefault("updated_at", utcnow())
        result = await self.session.execute(
            update(Lead)
            .where(and_(*conditions))
            .values(**data)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def find_many(
        self,
        where: LeadFilter,
        order_by: LeadOrder = LeadOrder.CREATED_DESC,
        limit: Optional[int] = None,
    ) -> Sequence[Lead]:
        stmt = select(Lead).execution_options(populate_existing=True)
        conditions = where.clauses()
        if conditions:
            stmt = stmt.where(and_(*conditions))

        if order_by == LeadOrder.CREATED_ASC:
            stmt = stmt.order_by(Lead.created_at.asc())
        else:
            stmt = stmt.order_by(Lead.created_at.desc())

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get(self, lead_id: UUID) -> Optional[Lead]:
        return await self.session.get(Lead, lead_id, populate_existing=True)

    async def delete(self, lead_id: UUID) -> bool:
        result = await self.session.execute(delete(Lead).where(Lead.id == lead_id))
        await self.session.commit()
        return (result.rowcount or 0) > 0
