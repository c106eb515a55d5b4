from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from booking_leads.services.pricing import to_minor_units

BookingType = Literal["standard", "hourly"]
LeadStatus = Literal["draft", "converted"]

UTM_KEYS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")

# Fields a payload can set that are not attribution, pricing or identity.
_PLAIN_FIELDS = (
    "booking_type",
    "pickup_location",
    "pickup_address",
    "dropoff_location",
    "dropoff_address",
    "pickup_date",
    "pickup_time",
    "passengers",
    "luggage",
    "flight_number",
    "child_seat",
    "hourly_pickup_location",
    "hourly_hours",
    "hourly_vehicle_type",
    "full_name",
    "email",
    "contact_number",
    "currency",
    "source",
)

# Explicit null on these means "leave unchanged" on update.
_NULL_MEANS_UNCHANGED = ("booking_type", "email", "contact_number", "currency")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UtmParams(BaseModel):
    """First-touch marketing parameters attached to a lead submission."""

    model_config = ConfigDict(populate_by_name=True)

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    captured_at: Optional[datetime] = Field(default=None, alias="capturedAt")


class BookingLeadPayload(CamelModel):
    """Autosaved booking form state, sent as camelCase JSON."""

    id: Optional[UUID] = None

    booking_type: Optional[BookingType] = None

    # Standard transfer
    pickup_location: Optional[str] = None
    pickup_address: Optional[str] = None
    dropoff_location: Optional[str] = None
    dropoff_address: Optional[str] = None

    pickup_date: Optional[str] = None
    pickup_time: Optional[str] = None

    passengers: Optional[int] = None
    luggage: Optional[int] = None
    flight_number: Optional[str] = None
    child_seat: Optional[bool] = None

    # Hourly hire
    hourly_pickup_location: Optional[str] = None
    hourly_hours: Optional[float] = None
    hourly_vehicle_type: Optional[str] = None

    # Contact, at least one of email / contact_number is needed to save
    full_name: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None

    quoted_price: Optional[float] = None
    currency: Optional[str] = None

    source: Optional[str] = None

    utm: Optional[UtmParams] = None

    @property
    def has_contact(self) -> bool:
        return bool(self.email) or bool(self.contact_number)


class LeadPatch(BaseModel):
    """Partial update of an existing lead.

    Every field is optional and only fields that were explicitly set are
    written. Attribution and status are not part of this type, so an update
    cannot change them.
    """

    model_config = ConfigDict(extra="forbid")

    booking_type: Optional[BookingType] = None
    pickup_location: Optional[str] = None
    pickup_address: Optional[str] = None
    dropoff_location: Optional[str] = None
    dropoff_address: Optional[str] = None
    pickup_date: Optional[str] = None
    pickup_time: Optional[str] = None
    passengers: Optional[int] = None
    luggage: Optional[int] = None
    flight_number: Optional[str] = None
    child_seat: Optional[bool] = None
    hourly_pickup_location: Optional[str] = None
    hourly_hours: Optional[float] = None
    hourly_vehicle_type: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
    quoted_price_cents: Optional[int] = None
    currency: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: BookingLeadPayload) -> "LeadPatch":
        data = payload.model_dump(include=set(_PLAIN_FIELDS), exclude_unset=True)
        for key in _NULL_MEANS_UNCHANGED:
            if key in data and data[key] is None:
                del data[key]
        if payload.quoted_price is not None:
            data["quoted_price_cents"] = to_minor_units(payload.quoted_price)
        return cls(**data)

    def values(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class LeadRecord(BaseModel):
    """Complete shape of a newly created lead."""

    booking_type: BookingType = "standard"
    pickup_location: Optional[str] = None
    pickup_address: Optional[str] = None
    dropoff_location: Optional[str] = None
    dropoff_address: Optional[str] = None
    pickup_date: Optional[str] = None
    pickup_time: Optional[str] = None
    passengers: Optional[int] = None
    luggage: Optional[int] = None
    flight_number: Optional[str] = None
    child_seat: Optional[bool] = None
    hourly_pickup_location: Optional[str] = None
    hourly_hours: Optional[float] = None
    hourly_vehicle_type: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
    quoted_price_cents: Optional[int] = None
    currency: str
    source: Optional[str] = None
    status: LeadStatus = "draft"
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    utm_captured_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_payload(
        cls,
        payload: BookingLeadPayload,
        *,
        now: datetime,
        default_currency: str,
    ) -> "LeadRecord":
        data = payload.model_dump(include=set(_PLAIN_FIELDS))
        data["booking_type"] = payload.booking_type or "standard"
        data["currency"] = payload.currency or default_currency
        data["email"] = payload.email or None
        data["contact_number"] = payload.contact_number or None
        if payload.quoted_price is not None:
            data["quoted_price_cents"] = to_minor_units(payload.quoted_price)

        if payload.utm is not None:
            for key in UTM_KEYS:
                data[key] = getattr(payload.utm, key)
            data["utm_captured_at"] = payload.utm.captured_at or now

        return cls(status="draft", created_at=now, updated_at=now, **data)

    def values(self) -> Dict[str, Any]:
        return self.model_dump()


class LeadUpsertResponse(CamelModel):
    lead_id: Optional[UUID] = None
    skipped: Optional[bool] = None


class LeadResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    booking_type: BookingType
    pickup_location: Optional[str] = None
    pickup_address: Optional[str] = None
    dropoff_location: Optional[str] = None
    dropoff_address: Optional[str] = None
    pickup_date: Optional[str] = None
    pickup_time: Optional[str] = None
    passengers: Optional[int] = None
    luggage: Optional[int] = None
    flight_number: Optional[str] = None
    child_seat: Optional[bool] = None
    hourly_pickup_location: Optional[str] = None
    hourly_hours: Optional[float] = None
    hourly_vehicle_type: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
    quoted_price_cents: Optional[int] = None
    quoted_price: Optional[float] = None
    currency: str
    source: Optional[str] = None
    status: LeadStatus
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    utm_captured_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeadListResponse(CamelModel):
    total: int
    leads: List[LeadResponse]
