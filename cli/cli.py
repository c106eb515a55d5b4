"""
Operational commands for the booking leads service.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional, Sequence

from booking_leads.core.config import settings
from booking_leads.core.logging import configure_structlog
from booking_leads.db.session import transaction_session
from booking_leads.models.lead import Lead
from booking_leads.schemas.lead import LeadResponse
from booking_leads.services.booking_lead import get_abandoned_leads, mark_lead_converted_by_email
from booking_leads.services.lead_repository import LeadFilter, LeadRepository, SqlAlchemyLeadRepository


def _supports_color() -> bool:
    """Check if terminal supports ANSI color codes."""
    if sys.platform == "win32":
        return os.getenv("TERM") == "xterm" or os.getenv("ANSICON") is not None
    return sys.stdout.isatty()


SUPPORTS_COLOR = _supports_color()

GREEN = '\033[92m' if SUPPORTS_COLOR else ''
RED = '\033[91m' if SUPPORTS_COLOR else ''
YELLOW = '\033[93m' if SUPPORTS_COLOR else ''
BLUE = '\033[94m' if SUPPORTS_COLOR else ''
RESET = '\033[0m' if SUPPORTS_COLOR else ''


def print_success(message: str):
    print(f"{GREEN}[✓]{RESET} {message}")


def print_error(message: str):
    print(f"{RED}[✗]{RESET} {message}")


def print_warning(message: str):
    print(f"{YELLOW}[!]{RESET} {message}")


def print_info(message: str):
    print(f"{BLUE}[i]{RESET} {message}")


@asynccontextmanager
async def open_repository() -> AsyncIterator[LeadRepository]:
    async with transaction_session() as session:
        yield SqlAlchemyLeadRepository(session)


def format_lead(lead: Lead) -> str:
    contact = lead.email or lead.contact_number or "-"
    if lead.booking_type == "hourly":
        trip = f"{lead.hourly_pickup_location or '?'} ({lead.hourly_hours or '?'}h)"
    else:
        trip = f"{lead.pickup_location or '?'} -> {lead.dropoff_location or '?'}"
    price = f"{lead.quoted_price:.2f} {lead.currency}" if lead.quoted_price is not None else "-"
    return (
        f"{lead.created_at:%Y-%m-%d %H:%M} {lead.status:<9} {lead.full_name or 'Anonymous'} "
        f"<{contact}> {trip} {price} [{lead.utm_source or 'direct'}]"
    )


def print_leads(leads: Sequence[Lead], as_json: bool) -> None:
    if as_json:
        rows = [LeadResponse.model_validate(lead).model_dump(mode="json", by_alias=True) for lead in leads]
        print(json.dumps(rows, indent=2))
        return
    for lead in leads:
        print(f"  {format_lead(lead)}")


async def cmd_abandoned_leads(args: argparse.Namespace) -> int:
    """Command: List drafts older than the given number of hours."""
    async with open_repository() as repository:
        leads = await get_abandoned_leads(repository, args.hours)

    if not args.json:
        print_info(f"{len(leads)} abandoned lead(s) older than {args.hours:g}h")
    print_leads(leads, args.json)
    return 0


async def cmd_mark_converted(args: argparse.Namespace) -> int:
    """Command: Mark draft leads for an email as converted."""
    if not args.email:
        print_error("Email is required")
        return 1

    async with open_repository() as repository:
        converted = await mark_lead_converted_by_email(repository, args.email)

    if converted:
        print_success(f"Marked {converted} lead(s) converted for {args.email}")
    else:
        print_warning(f"No draft leads found for {args.email}")
    return 0


async def cmd_list_leads(args: argparse.Namespace) -> int:
    """Command: List leads, newest first."""
    async with open_repository() as repository:
        leads = await repository.find_many(
            LeadFilter(status=args.status, utm=args.utm, search=args.search),
            limit=args.limit,
        )

    if not args.json:
        print_info(f"{len(leads)} lead(s)")
    print_leads(leads, args.json)
    return 0


COMMANDS: Dict[str, Callable] = {
    'abandoned-leads': cmd_abandoned_leads,
    'mark-converted': cmd_mark_converted,
    'list-leads': cmd_list_leads,
}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        description='Booking leads CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    abandoned_parser = subparsers.add_parser('abandoned-leads', help='List abandoned draft leads')
    abandoned_parser.add_argument('--hours', type=float, default=settings.abandoned_lead_hours, help='Minimum age in hours')
    abandoned_parser.add_argument('--json', action='store_true', help='Print JSON')

    converted_parser = subparsers.add_parser('mark-converted', help='Mark drafts for an email converted')
    converted_parser.add_argument('email', help='Customer email')

    list_parser = subparsers.add_parser('list-leads', help='List leads')
    list_parser.add_argument('--status', choices=['draft', 'converted'], default=None)
    list_parser.add_argument('--utm', default=None, help='all, affiliate, direct or a utm_source')
    list_parser.add_argument('--search', default=None)
    list_parser.add_argument('--limit', type=int, default=50)
    list_parser.add_argument('--json', action='store_true', help='Print JSON')

    return parser


def main(args: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    command_func = COMMANDS.get(parsed_args.command)
    if not command_func:
        print_error(f"Unknown command: {parsed_args.command}")
        parser.print_help()
        return 1

    configure_structlog()

    try:
        return asyncio.run(command_func(parsed_args))
    except KeyboardInterrupt:
        print_error("\nInterrupted by user")
        return 130
    except Exception as e:
        print_error(f"Error executing command: {str(e)}")
        if os.getenv('DEBUG'):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
