"""
SQLAlchemy ORM models for database entities.
"""

from booking_leads.models.lead import Lead

__all__ = [
    "Lead",
]
