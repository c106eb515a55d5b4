"""
Periodic report of abandoned booking leads.
"""
from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from booking_leads.core.config import settings
from booking_leads.core.logging import configure_structlog, get_structlog_logger
from booking_leads.db.session import dispose_engine, transaction_session
from booking_leads.services.booking_lead import get_abandoned_leads
from booking_leads.services.lead_repository import LeadRepository, SqlAlchemyLeadRepository

logger = get_structlog_logger(__name__)


async def report_abandoned_leads(repository: LeadRepository, hours_ago: float) -> List[str]:
    """Log one line per abandoned draft. Returns the reported lead ids."""
    leads = await get_abandoned_leads(repository, hours_ago)
    for lead in leads:
        logger.info(
            "abandoned_lead",
            lead_id=str(lead.id),
            created_at=lead.created_at.isoformat(),
            email=lead.email,
            contact_number=lead.contact_number,
            booking_type=lead.booking_type,
            utm_source=lead.utm_source,
            quoted_price=lead.quoted_price,
        )
    logger.info("abandoned_leads.report", count=len(leads), hours_ago=hours_ago)
    return [str(lead.id) for lead in leads]


async def run_once(hours_ago: float) -> None:
    async with transaction_session() as session:
        await report_abandoned_leads(SqlAlchemyLeadRepository(session), hours_ago)


async def run_worker(hours_ago: float, interval_seconds: int, once: bool = False) -> None:
    logger.info("abandoned_leads_worker.started", hours_ago=hours_ago, interval_seconds=interval_seconds)
    try:
        while True:
            try:
                await run_once(hours_ago)
            except Exception as e:
                logger.error("abandoned_leads_worker.run_failed", error=str(e), exc_info=True)
                if once:
                    raise
            if once:
                break
            await asyncio.sleep(interval_seconds)
    finally:
        await dispose_engine()
        logger.info("abandoned_leads_worker.stopped")


def main(args: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Abandoned booking lead reporter")
    parser.add_argument("--hours", type=float, default=settings.abandoned_lead_hours)
    parser.add_argument("--interval", type=int, default=settings.abandoned_lead_worker_interval_seconds)
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parsed = parser.parse_args(args)

    configure_structlog()
    asyncio.run(run_worker(parsed.hours, parsed.interval, once=parsed.once))


if __name__ == "__main__":
    main()
