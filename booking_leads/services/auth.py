"""
Console sessions for the admin and CMS areas.

Both consoles are unlocked by a static shared password from configuration.
A successful login issues a signed session token that is stored in an
HttpOnly cookie; its content is opaque to the browser.
"""
from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Request
from jose import JWTError, jwt

from booking_leads.core.config import settings
from booking_leads.core.exceptions import AuthenticationError, ConfigurationError
from booking_leads.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)

ADMIN_CONSOLE = "admin"
CMS_CONSOLE = "cms"

COOKIE_NAMES = {
    ADMIN_CONSOLE: "admin_auth",
    CMS_CONSOLE: "cms_auth",
}


def console_password(console: str) -> Optional[str]:
    if console == CMS_CONSOLE:
        return settings.effective_cms_password
    return settings.admin_password


def verify_console_password(console: str, password: Optional[str]) -> bool:
    """Compare a submitted password with the configured one.

    Raises:
        ConfigurationError: no password is configured for the console.
    """
    expected = console_password(console)
    if not expected:
        label = "CMS" if console == CMS_CONSOLE else "admin"
        raise ConfigurationError(
            f"Server {label} password not configured",
            code="password_not_configured",
        )
    if not password:
        return False
    return hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))


def create_session_token(console: str, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.session_max_age_hours))
    claims = {
        "sub": console,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def verify_session_token(console: str, token: Optional[str]) -> bool:
    if not token:
        return False
    try:
        payload: Dict = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError as e:
        logger.warning("auth.invalid_session", console=console, error=str(e))
        return False
    return payload.get("sub") == console


def is_authenticated(request: Request, console: str) -> bool:
    return verify_session_token(console, request.cookies.get(COOKIE_NAMES[console]))


async def require_admin(request: Request) -> None:
    """Route dependency guarding the admin console API."""
    if not is_authenticated(request, ADMIN_CONSOLE):
        logger.warning("auth.admin_rejected", path=request.url.path)
        raise AuthenticationError(code="not_authenticated", message="Admin session required")
