from __future__ import annotations

import json
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse

from booking_leads.core.config import settings
from booking_leads.core.logging import get_structlog_logger
from booking_leads.routes.dependencies import get_lead_repository
from booking_leads.services.booking_lead import mark_lead_converted_by_email
from booking_leads.services.lead_repository import LeadRepository

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

PAID_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)


def _invalid_payload() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid payload"},
    )


def customer_email(session: Dict[str, Any]) -> Optional[str]:
    """Email of the paying customer from a checkout session object."""
    details = session.get("customer_details")
    if isinstance(details, dict) and details.get("email"):
        return details["email"]
    if session.get("customer_email"):
        return session["customer_email"]

    metadata = session.get("metadata")
    booking = metadata.get("booking") if isinstance(metadata, dict) else None
    if isinstance(booking, str):
        try:
            booking = json.loads(booking)
        except ValueError:
            return None
    if isinstance(booking, dict):
        return booking.get("email")
    return None


@router.post("/payment")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    repository: LeadRepository = Depends(get_lead_repository),
):
    """Mark draft leads converted when a Stripe checkout is paid."""
    secret = settings.payment_webhook_secret
    if not secret:
        logger.error("webhook.not_configured")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook not configured"},
        )

    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        return _invalid_payload()

    try:
        stripe.WebhookSignature.verify_header(
            body,
            stripe_signature or "",
            secret,
            tolerance=settings.payment_webhook_tolerance_seconds,
        )
    except stripe.SignatureVerificationError as e:
        logger.warning("webhook.invalid_signature", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid signature"},
        )

    try:
        event = json.loads(body)
    except ValueError:
        return _invalid_payload()
    if not isinstance(event, dict):
        return _invalid_payload()

    event_type = event.get("type")
    if event_type not in PAID_EVENTS:
        return {"received": True}

    data = event.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    if not isinstance(session, dict):
        logger.warning("webhook.malformed_event", event_type=event_type, event_id=event.get("id"))
        return _invalid_payload()

    if session.get("payment_status") != "paid":
        logger.info(
            "webhook.payment_not_paid",
            session_id=session.get("id"),
            payment_status=session.get("payment_status"),
        )
        return {"received": True}

    email = customer_email(session)
    if not email:
        logger.warning("webhook.missing_customer_email", session_id=session.get("id"))
        return {"received": True, "converted": 0}

    try:
        converted = await mark_lead_converted_by_email(repository, email)
    except Exception as e:
        logger.error(
            "webhook.handler_error",
            event_type=event_type,
            error=str(e),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook handler error"},
        )

    return {"received": True, "converted": converted}
