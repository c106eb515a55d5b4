"""
API route handlers organized by domain.
"""

from booking_leads.routes.admin import router as admin_router
from booking_leads.routes.leads import router as leads_router

__all__ = [
    "admin_router",
    "leads_router",
]
