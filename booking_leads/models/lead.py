from __future__ import annotations

from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    Text,
)

from booking_leads.db.base import Base, UUIDMixin
from booking_leads.services.pricing import from_minor_units

BOOKING_TYPES = ("standard", "hourly")
LEAD_STATUSES = ("draft", "converted")


class Lead(UUIDMixin, Base):
    """A prospective booking captured before payment.

    Form fields are stored as sent, without length or range checks.
    """

    __tablename__ = "booking_leads"

    booking_type = Column(
        Enum(*BOOKING_TYPES, name="booking_type"),
        nullable=False,
        default="standard",
    )

    # Standard transfer
    pickup_location = Column(Text)
    pickup_address = Column(Text)
    dropoff_location = Column(Text)
    dropoff_address = Column(Text)

    pickup_date = Column(Text)
    pickup_time = Column(Text)
    passengers = Column(Integer)
    luggage = Column(Integer)
    flight_number = Column(Text)
    child_seat = Column(Boolean)

    # Hourly hire
    hourly_pickup_location = Column(Text)
    hourly_hours = Column(Float)
    hourly_vehicle_type = Column(Text)

    # Contact
    full_name = Column(Text)
    email = Column(Text)
    contact_number = Column(Text)

    quoted_price_cents = Column(Integer)
    currency = Column(Text, nullable=False, default="AUD")

    source = Column(Text)

    status = Column(
        Enum(*LEAD_STATUSES, name="booking_lead_status"),
        nullable=False,
        default="draft",
    )

    # First-touch attribution, written on create only
    utm_source = Column(Text)
    utm_medium = Column(Text)
    utm_campaign = Column(Text)
    utm_term = Column(Text)
    utm_content = Column(Text)
    utm_captured_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_booking_leads_email_status", "email", "status"),
        Index("idx_booking_leads_status_created", "status", "created_at"),
        Index("idx_booking_leads_utm_source", "utm_source"),
    )

    @property
    def quoted_price(self) -> Optional[float]:
        if self.quoted_price_cents is None:
            return None
        return from_minor_units(self.quoted_price_cents)
