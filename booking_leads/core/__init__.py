"""
Core package for configuration, logging, and shared utilities.
"""

from booking_leads.core.config import Settings, settings
from booking_leads.core.logging import configure_structlog, get_structlog_logger

__all__ = [
    "Settings",
    "settings",
    "configure_structlog",
    "get_structlog_logger",
]
