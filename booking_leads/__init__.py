"""
Booking leads service: lead capture, first-touch attribution and conversion tracking.
"""

__version__ = "1.0.0"
