"""
Pending bookings - manual review workflow

Used whenever a booking cannot be confirmed directly (the calendar provider
cannot create bookings, or creation failed). Staff review each request and
either reject it or convert it into a confirmed booking in the ledger.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_BOOKING_DURATION_MINUTES
from ...models import PendingBooking
from ...shared.validators import validate_date_string, validate_time_string
from .errors import InvalidTransitionError, NotFoundError, SchedulingError, StorageError, ValidationError
from .ledger import booking_window, stage_confirmed_booking
from .repository import PendingBookingRepository, TenantRepository, load
from .schemas import BookingConfirmation, BookingRequest
from .slot_generator import get_zone

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def append_note(existing: Optional[str], addition: str) -> str:
    """Append to staff/customer notes without losing what is already there"""
    if existing:
        return f"{existing}\n\n{addition}"
    return addition


class PendingBookingService:
    """Service layer for the pending booking review workflow"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PendingBookingRepository()

    def _tenant_zone(self, tenant_id: str):
        tenant = load(self.db, f"tenant {tenant_id}", TenantRepository.get_tenant, tenant_id)
        return get_zone(tenant.timezone if tenant else None)

    def _find(self, booking_id: str, tenant_id: Optional[str]) -> PendingBooking:
        pending = load(self.db, f"pending booking {booking_id}", self.repo.get_by_id, booking_id, tenant_id)
        if not pending:
            raise NotFoundError(f"Pending booking {booking_id} not found")
        return pending

    def _get_open(self, booking_id: str, tenant_id: Optional[str]) -> PendingBooking:
        pending = self._find(booking_id, tenant_id)
        if pending.status != "pending":
            raise InvalidTransitionError(booking_id, pending.status)
        return pending

    def _close(self, pending: PendingBooking, staff_id: str, status: str) -> None:
        """Stamp the staff decision; the caller commits"""
        pending.status = status
        pending.confirmed_by = staff_id
        pending.confirmed_at = _utcnow()

    def _commit(self, action: str, booking_id: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to {action} pending booking {booking_id}: {e}")
            raise StorageError(f"Failed to {action} pending booking: {e}") from e

    async def create_pending_booking(
        self, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
    ) -> BookingConfirmation:
        """Record a booking request for manual review"""
        local_start = booking.start_time.astimezone(self._tenant_zone(tenant_id))

        pending = PendingBooking(
            tenant_id=tenant_id,
            call_id=call_id,
            customer_name=booking.customer_name,
            customer_phone=booking.customer_phone,
            customer_email=booking.customer_email,
            requested_date=local_start.date(),
            requested_time=local_start.strftime("%H:%M"),
            service=booking.service,
            notes=booking.notes,
            status="pending",
        )

        try:
            self.repo.add_pending_booking(self.db, pending)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Pending booking creation failed for tenant {tenant_id}: {e}")
            raise StorageError(f"Failed to create pending booking: {e}") from e

        logger.info(f"📝 Created pending booking {pending.id} for tenant {tenant_id}")

        return BookingConfirmation(
            id=pending.id,
            status="pending",
            start_time=booking.start_time,
            end_time=booking.end_time,
        )

    async def get_pending_bookings(self, tenant_id: str, status: Optional[str] = None) -> list[PendingBooking]:
        try:
            return self.repo.list_for_tenant(self.db, tenant_id, status)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to get pending bookings for tenant {tenant_id}: {e}")
            raise StorageError(f"Failed to get pending bookings: {e}") from e

    async def get_pending_booking(self, booking_id: str, tenant_id: str) -> PendingBooking:
        return self._find(booking_id, tenant_id)

    async def confirm_pending_booking(
        self, booking_id: str, staff_id: str, tenant_id: Optional[str] = None
    ) -> PendingBooking:
        """Mark a pending booking confirmed by a staff member"""
        pending = self._get_open(booking_id, tenant_id)
        self._close(pending, staff_id, "confirmed")

        self._commit("confirm", booking_id)
        logger.info(f"✅ Confirmed pending booking {booking_id} by {staff_id}")
        return pending

    async def reject_pending_booking(
        self, booking_id: str, staff_id: str, reason: Optional[str] = None, tenant_id: Optional[str] = None
    ) -> PendingBooking:
        """Reject a request staff cannot fulfil; the reason is appended to the notes"""
        pending = self._get_open(booking_id, tenant_id)

        self._close(pending, staff_id, "rejected")
        if reason:
            pending.notes = append_note(pending.notes, f"Rejected: {reason}")

        self._commit("reject", booking_id)
        logger.info(f"🚫 Rejected pending booking {booking_id} by {staff_id}")
        return pending

    async def convert_pending_to_confirmed(
        self,
        booking_id: str,
        tenant_id: str,
        staff_id: str,
        override_date: Optional[str] = None,
        override_time: Optional[str] = None,
    ) -> BookingConfirmation:
        """
        Turn a pending request into a confirmed booking.

        The booking insert and the pending status change commit together;
        on any failure neither is kept.

        Raises:
            NotFoundError: No such pending booking for this tenant
            InvalidTransitionError: Already confirmed or rejected
            ValidationError: No usable date/time (override or originally requested)
            SlotUnavailableError: The chosen time overlaps an active booking
            StorageError: Persistence failed
        """
        pending = self._get_open(booking_id, tenant_id)

        # The stored request time is checked as well as the overrides
        try:
            validate_date_string(override_date)
            booking_date: Optional[date] = (
                date.fromisoformat(override_date) if override_date else pending.requested_date
            )
            booking_time = validate_time_string(override_time or pending.requested_time)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if not booking_date or not booking_time:
            raise ValidationError("Booking date and time are required")

        zone = self._tenant_zone(tenant_id)

        try:
            booking = stage_confirmed_booking(
                self.db,
                tenant_id,
                zone,
                customer_name=pending.customer_name,
                customer_phone=pending.customer_phone,
                customer_email=pending.customer_email,
                booking_date=booking_date,
                booking_time=booking_time,
                duration_minutes=DEFAULT_BOOKING_DURATION_MINUTES,
                service=pending.service,
                notes=pending.notes,
                call_id=pending.call_id,
            )
            self._close(pending, staff_id, "confirmed")
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to convert pending booking {booking_id}: {e}")
            raise StorageError(f"Failed to convert pending booking: {e}") from e

        logger.info(f"✅ Converted pending {booking_id} to confirmed {booking.id} ({booking.confirmation_code})")

        start, end = booking_window(booking, zone)
        return BookingConfirmation(
            id=booking.id,
            status="confirmed",
            start_time=start.astimezone(timezone.utc),
            end_time=end.astimezone(timezone.utc),
            confirmation_code=booking.confirmation_code,
        )
