"""
Booking ledger writes shared by the built-in calendar and pending-booking conversion.

Nothing here commits: callers own the transaction so a conversion can create
the booking and close the pending request as one unit of work.
"""

import logging
import secrets
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import DEFAULT_BOOKING_DURATION_MINUTES
from ...models import Booking
from .errors import SlotUnavailableError, StorageError
from .repository import BookingRepository
from .slot_generator import overlaps

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read out over the phone
CONFIRMATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CONFIRMATION_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5


def generate_confirmation_code() -> str:
    return "".join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH))


def unique_confirmation_code(db: Session, tenant_id: str) -> str:
    """Generate a code not yet used by this tenant"""
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_confirmation_code()
        if not BookingRepository.confirmation_code_exists(db, tenant_id, code):
            return code
        logger.warning(f"⚠️ Confirmation code collision for tenant {tenant_id}, regenerating")

    raise StorageError("Could not generate a unique confirmation code")


def booking_window(booking: Booking, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """Aware start/end instants of a stored booking"""
    start_clock = datetime.strptime(booking.booking_time, "%H:%M").time()
    start = datetime.combine(booking.booking_date, start_clock, tzinfo=zone)
    duration = booking.duration_minutes or DEFAULT_BOOKING_DURATION_MINUTES
    return start, start + timedelta(minutes=duration)


def find_conflicting_booking(
    db: Session, tenant_id: str, start: datetime, end: datetime, zone: ZoneInfo
) -> Optional[Booking]:
    """First active booking overlapping [start, end)"""
    local_start = start.astimezone(zone)
    local_end = end.astimezone(zone)

    # Include the previous day for bookings that run past midnight
    candidates = BookingRepository.get_bookings_between(
        db, tenant_id, local_start.date() - timedelta(days=1), local_end.date()
    )

    for booking in candidates:
        booked_start, booked_end = booking_window(booking, zone)
        if overlaps(start, end, booked_start, booked_end):
            return booking
    return None


def stage_confirmed_booking(
    db: Session,
    tenant_id: str,
    zone: ZoneInfo,
    *,
    customer_name: str,
    customer_phone: str,
    customer_email: Optional[str],
    booking_date: date,
    booking_time: str,
    duration_minutes: int,
    service: Optional[str] = None,
    notes: Optional[str] = None,
    call_id: Optional[str] = None,
) -> Booking:
    """
    Add a confirmed booking to the session after checking for overlaps.

    Raises:
        SlotUnavailableError: The window overlaps an active booking
        StorageError: No unique confirmation code could be generated
    """
    start = datetime.combine(booking_date, datetime.strptime(booking_time, "%H:%M").time(), tzinfo=zone)
    end = start + timedelta(minutes=duration_minutes)

    conflict = find_conflicting_booking(db, tenant_id, start, end, zone)
    if conflict:
        logger.info(
            f"⛔ Requested {booking_date} {booking_time} overlaps booking {conflict.id} for tenant {tenant_id}"
        )
        raise SlotUnavailableError(f"{booking_date} {booking_time} is already booked")

    booking = Booking(
        tenant_id=tenant_id,
        call_id=call_id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_email=customer_email,
        booking_type=service or "appointment",
        booking_date=booking_date,
        booking_time=booking_time,
        duration_minutes=duration_minutes,
        notes=notes,
        status="confirmed",
        confirmation_code=unique_confirmation_code(db, tenant_id),
        source="call",
    )

    try:
        return BookingRepository.add_booking(db, booking)
    except IntegrityError as e:
        # Another request took the slot between the check and the insert
        logger.warning(f"⚠️ Booking insert rejected by unique index for tenant {tenant_id}: {e.orig}")
        raise SlotUnavailableError(f"{booking_date} {booking_time} is already booked") from e
