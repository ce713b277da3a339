"""
Scheduling Domain

Availability and booking for phone-assistant tenants. Each tenant is served
by one calendar backend: the built-in bookings ledger, or an external
provider (Google Calendar, Outlook, Calendly) connected through a stored
OAuth credential. Bookings a backend cannot take go to the pending-booking
review workflow.
"""

from .base import CalendarProvider, CalendarService
from .errors import (
    AuthExpiredError,
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    SchedulingError,
    SlotUnavailableError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from .pending import PendingBookingService
from .router import pending_router, router
from .service import (
    cancel_booking,
    check_availability,
    create_booking_with_fallback,
    get_bookings,
    get_calendar_service,
)

__all__ = [
    "AuthExpiredError",
    "CalendarProvider",
    "CalendarService",
    "InvalidTransitionError",
    "NotFoundError",
    "PendingBookingService",
    "ProviderError",
    "SchedulingError",
    "SlotUnavailableError",
    "StorageError",
    "UnsupportedOperationError",
    "ValidationError",
    "cancel_booking",
    "check_availability",
    "create_booking_with_fallback",
    "get_bookings",
    "get_calendar_service",
    "pending_router",
    "router",
]
