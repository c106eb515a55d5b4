"""
Database package for SQLAlchemy setup, session management, and base models.
"""

from booking_leads.db.base import Base
from booking_leads.db.session import create_database_engine, get_session, transaction_session

__all__ = [
    "Base",
    "create_database_engine",
    "get_session",
    "transaction_session",
]
