"""
Pydantic schemas for request/response validation and serialization.
"""

from booking_leads.schemas.lead import (
    BookingLeadPayload,
    LeadPatch,
    LeadRecord,
    LeadResponse,
    UtmParams,
)

__all__ = [
    "BookingLeadPayload",
    "LeadPatch",
    "LeadRecord",
    "LeadResponse",
    "UtmParams",
]
