"""
Calendar service contract
Every scheduling backend (built-in ledger or external provider) implements this interface
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from .schemas import BookingConfirmation, BookingRequest, DateRange, TimeSlot


class CalendarProvider(str, Enum):
    BUILTIN = "builtin"
    CALENDLY = "calendly"
    OUTLOOK = "outlook"
    GOOGLE_CALENDAR = "google_calendar"


class CalendarService(ABC):
    """Unified scheduling contract"""

    provider: CalendarProvider

    # False for backends that cannot create bookings programmatically;
    # callers should send those requests to the pending-booking workflow
    supports_booking_creation: bool = True

    @abstractmethod
    async def check_availability(self, tenant_id: str, date_range: DateRange) -> list[TimeSlot]:
        """Slots inside the range with availability flags"""

    @abstractmethod
    async def create_booking(
        self, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
    ) -> BookingConfirmation:
        """Reserve a slot; call_id links the booking to the originating phone call"""

    @abstractmethod
    async def cancel_booking(self, tenant_id: str, booking_id: str) -> bool:
        """Cancel a booking; already-cancelled or missing bookings report True"""

    @abstractmethod
    async def get_bookings(self, tenant_id: str, date_range: DateRange) -> list[BookingConfirmation]:
        """Bookings in the range"""
