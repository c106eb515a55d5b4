from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from booking_leads.core.config import settings
from booking_leads.core.exceptions import ConfigurationError, LeadNotFoundError
from booking_leads.core.logging import get_structlog_logger
from booking_leads.routes.dependencies import get_lead_repository
from booking_leads.schemas.lead import LeadListResponse, LeadResponse
from booking_leads.services.auth import (
    ADMIN_CONSOLE,
    CMS_CONSOLE,
    COOKIE_NAMES,
    create_session_token,
    is_authenticated,
    require_admin,
    verify_console_password,
)
from booking_leads.services.booking_lead import get_abandoned_leads
from booking_leads.services.lead_repository import LeadFilter, LeadRepository

logger = get_structlog_logger(__name__)

router = APIRouter(tags=["admin"])


class LoginRequest(BaseModel):
    password: Optional[str] = None


def _login(console: str, password: Optional[str]) -> JSONResponse:
    try:
        valid = verify_console_password(console, password)
    except ConfigurationError as e:
        logger.error("auth.password_not_configured", console=console)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": e.message},
        )

    if not valid:
        logger.warning("auth.login_failed", console=console)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"ok": False, "error": "Invalid password"},
        )

    response = JSONResponse(content={"ok": True})
    response.set_cookie(
        COOKIE_NAMES[console],
        create_session_token(console),
        max_age=settings.session_max_age_hours * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    logger.info("auth.login", console=console)
    return response


def _logout(console: str) -> JSONResponse:
    response = JSONResponse(content={"ok": True})
    response.delete_cookie(
        COOKIE_NAMES[console],
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return response


# Admin console session

@router.post("/admin/login")
async def admin_login(body: LoginRequest):
    return _login(ADMIN_CONSOLE, body.password)


@router.get("/admin/session")
async def admin_session(request: Request):
    if not is_authenticated(request, ADMIN_CONSOLE):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"authenticated": False},
        )
    return {"authenticated": True}


@router.post("/admin/logout")
async def admin_logout():
    return _logout(ADMIN_CONSOLE)


# CMS console session

@router.post("/cms/login")
async def cms_login(body: LoginRequest):
    return _login(CMS_CONSOLE, body.password)


@router.get("/cms/session")
async def cms_session(request: Request):
    if not is_authenticated(request, CMS_CONSOLE):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"ok": False})
    return {"ok": True}


@router.post("/cms/logout")
async def cms_logout():
    return _logout(CMS_CONSOLE)


# Admin lead management

def _start_of_day(day: Optional[date]) -> Optional[datetime]:
    if day is None:
        return None
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _end_of_day(day: Optional[date]) -> Optional[datetime]:
    if day is None:
        return None
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


@router.get(
    "/admin/leads",
    response_model=LeadListResponse,
    dependencies=[Depends(require_admin)],
)
async def list_leads(
    search: Optional[str] = Query(None, max_length=200),
    utm: str = Query("all", description="all, affiliate, direct or a utm_source value"),
    lead_status: Optional[str] = Query(None, alias="status", pattern="^(draft|converted)$"),
    booking_type: Optional[str] = Query(None, pattern="^(standard|hourly)$"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    repository: LeadRepository = Depends(get_lead_repository),
):
    where = LeadFilter(
        status=lead_status,
        booking_type=booking_type,
        created_after=_start_of_day(date_from),
        created_before=_end_of_day(date_to),
        search=search,
        utm=utm,
    )
    leads = await repository.find_many(where)
    return LeadListResponse(
        total=len(leads),
        leads=[LeadResponse.model_validate(lead) for lead in leads],
    )


@router.get(
    "/admin/leads/abandoned",
    response_model=LeadListResponse,
    dependencies=[Depends(require_admin)],
)
async def list_abandoned_leads(
    hours: Optional[float] = Query(None, gt=0, le=24 * 365),
    repository: LeadRepository = Depends(get_lead_repository),
):
    hours_ago = hours if hours is not None else settings.abandoned_lead_hours
    leads = await get_abandoned_leads(repository, hours_ago)
    return LeadListResponse(
        total=len(leads),
        leads=[LeadResponse.model_validate(lead) for lead in leads],
    )


@router.delete(
    "/admin/leads/{lead_id}",
    dependencies=[Depends(require_admin)],
)
async def delete_lead(
    lead_id: UUID,
    repository: LeadRepository = Depends(get_lead_repository),
):
    deleted = await repository.delete(lead_id)
    if not deleted:
        raise LeadNotFoundError(lead_id)
    logger.info("lead.deleted", lead_id=str(lead_id))
    return {"ok": True}
