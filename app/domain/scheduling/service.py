"""
Scheduling service - picks the tenant's calendar backend and routes bookings

A tenant with an active calendar integration is served by that provider's
adapter; everyone else uses the built-in ledger. When the chosen backend
cannot create a booking the request is recorded for manual review instead.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .base import CalendarProvider, CalendarService
from .builtin import BuiltinCalendarService
from .calendly import CalendlyCalendarService
from .errors import AuthExpiredError, ProviderError, StorageError, UnsupportedOperationError
from .google import GoogleCalendarService
from .outlook import OutlookCalendarService
from .pending import PendingBookingService
from .repository import IntegrationRepository, load
from .schemas import BookingConfirmation, BookingRequest, DateRange, TimeSlot

logger = logging.getLogger(__name__)

INTEGRATION_ADAPTERS = {
    CalendarProvider.GOOGLE_CALENDAR.value: GoogleCalendarService,
    CalendarProvider.OUTLOOK.value: OutlookCalendarService,
    CalendarProvider.CALENDLY.value: CalendlyCalendarService,
}

# Failures after which the booking is still worth recording for staff
FALLBACK_ERRORS = (UnsupportedOperationError, ProviderError, AuthExpiredError, StorageError)


def get_calendar_service(db: Session, tenant_id: str) -> CalendarService:
    """Calendar adapter for the tenant's newest active integration, or the built-in ledger"""
    integration = load(
        db, f"calendar integration for tenant {tenant_id}", IntegrationRepository.get_active_calendar_integration, tenant_id
    )
    if integration:
        adapter = INTEGRATION_ADAPTERS.get(integration.provider)
        if adapter:
            logger.debug(f"📅 Using {integration.provider} calendar for tenant {tenant_id}")
            return adapter(db, integration)

    return BuiltinCalendarService(db, tenant_id)


async def create_booking_with_fallback(
    db: Session, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
) -> BookingConfirmation:
    """
    Book through the tenant's calendar, falling back to a pending booking.

    ValidationError and SlotUnavailableError propagate: the caller has to
    pick another time rather than queue an impossible request.
    """
    service = get_calendar_service(db, tenant_id)

    if not service.supports_booking_creation:
        logger.info(f"ℹ️ {service.provider.value} cannot create bookings, recording pending booking")
        return await PendingBookingService(db).create_pending_booking(tenant_id, booking, call_id)

    try:
        return await service.create_booking(tenant_id, booking, call_id)
    except FALLBACK_ERRORS as e:
        logger.warning(
            f"⚠️ {service.provider.value} booking failed for tenant {tenant_id} ({e}), recording pending booking"
        )
        return await PendingBookingService(db).create_pending_booking(tenant_id, booking, call_id)


async def check_availability(db: Session, tenant_id: str, date_range: DateRange) -> list[TimeSlot]:
    return await get_calendar_service(db, tenant_id).check_availability(tenant_id, date_range)


async def get_bookings(db: Session, tenant_id: str, date_range: DateRange) -> list[BookingConfirmation]:
    return await get_calendar_service(db, tenant_id).get_bookings(tenant_id, date_range)


async def cancel_booking(db: Session, tenant_id: str, booking_id: str) -> bool:
    return await get_calendar_service(db, tenant_id).cancel_booking(tenant_id, booking_id)
