"""
Built-in Calendar Service
Implements the calendar contract on top of the tenant's own bookings table
"""

import logging
from datetime import date, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .base import CalendarProvider, CalendarService
from .errors import SchedulingError, StorageError, ValidationError
from .ledger import booking_window, stage_confirmed_booking
from .repository import BookingRepository, TenantRepository, load
from .schemas import BookingConfirmation, BookingRequest, BusyPeriod, DateRange, DayHours, TimeSlot
from .slot_generator import generate_slots, get_zone, localize, overlaps, parse_operating_hours

logger = logging.getLogger(__name__)


class BuiltinCalendarService(CalendarService):
    provider = CalendarProvider.BUILTIN

    def __init__(self, db: Session, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    def _tenant_settings(self) -> tuple[ZoneInfo, dict[str, DayHours], set[date]]:
        """Timezone, weekly hours and holidays from tenant configuration"""
        tenant = load(self.db, f"tenant {self.tenant_id}", TenantRepository.get_tenant, self.tenant_id)
        if not tenant:
            logger.warning(f"⚠️ Tenant {self.tenant_id} not found, using default hours")
            weekly, holidays = parse_operating_hours(None)
            return get_zone(None), weekly, holidays

        weekly, holidays = parse_operating_hours(tenant.operating_hours)
        return get_zone(tenant.timezone), weekly, holidays

    def _local_dates(self, date_range: DateRange, zone: ZoneInfo) -> tuple[date, date]:
        """Local dates whose bookings can reach into the range"""
        start = localize(date_range.start, zone).astimezone(zone).date()
        end = localize(date_range.end, zone).astimezone(zone).date()
        # A booking from the previous day may run past midnight
        return start - timedelta(days=1), end

    async def check_availability(self, tenant_id: str, date_range: DateRange) -> list[TimeSlot]:
        zone, weekly, holidays = self._tenant_settings()
        start_date, end_date = self._local_dates(date_range, zone)

        try:
            bookings = BookingRepository.get_bookings_between(self.db, self.tenant_id, start_date, end_date)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load bookings for tenant {self.tenant_id}: {e}")
            raise StorageError(f"Failed to load bookings: {e}") from e

        busy_periods = []
        for booking in bookings:
            start, end = booking_window(booking, zone)
            busy_periods.append(BusyPeriod(start=start, end=end))

        return generate_slots(
            date_range,
            busy_periods,
            weekly_hours=weekly,
            tz=zone.key,
            closed_dates=holidays,
        )

    async def create_booking(
        self, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
    ) -> BookingConfirmation:
        zone, _, _ = self._tenant_settings()

        start = localize(booking.start_time, zone)
        end = localize(booking.end_time, zone)
        duration_minutes = round((end - start).total_seconds() / 60)
        if duration_minutes <= 0:
            raise ValidationError("Booking end time must be after its start time")

        local_start = start.astimezone(zone)

        try:
            record = stage_confirmed_booking(
                self.db,
                self.tenant_id,
                zone,
                customer_name=booking.customer_name,
                customer_phone=booking.customer_phone,
                customer_email=booking.customer_email,
                booking_date=local_start.date(),
                booking_time=local_start.strftime("%H:%M"),
                duration_minutes=duration_minutes,
                service=booking.service,
                notes=booking.notes,
                call_id=call_id,
            )
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Booking creation failed for tenant {self.tenant_id}: {e}")
            raise StorageError(f"Failed to create booking: {e}") from e

        logger.info(f"✅ Booking {record.id} ({record.confirmation_code}) created for tenant {self.tenant_id}")

        booked_start, booked_end = booking_window(record, zone)
        return BookingConfirmation(
            id=record.id,
            status="confirmed",
            start_time=booked_start.astimezone(timezone.utc),
            end_time=booked_end.astimezone(timezone.utc),
            confirmation_code=record.confirmation_code,
        )

    async def cancel_booking(self, tenant_id: str, booking_id: str) -> bool:
        try:
            booking = BookingRepository.get_booking(self.db, booking_id, self.tenant_id)
            if not booking:
                logger.info(f"ℹ️ Booking {booking_id} not found for tenant {self.tenant_id}, nothing to cancel")
                return True

            if booking.status == "cancelled":
                return True

            booking.status = "cancelled"
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Booking cancellation failed for {booking_id}: {e}")
            raise StorageError(f"Failed to cancel booking: {e}") from e

        logger.info(f"🗑️ Booking {booking_id} cancelled for tenant {self.tenant_id}")
        return True

    async def get_bookings(self, tenant_id: str, date_range: DateRange) -> list[BookingConfirmation]:
        zone, _, _ = self._tenant_settings()
        start_date, end_date = self._local_dates(date_range, zone)
        range_start = localize(date_range.start, zone)
        range_end = localize(date_range.end, zone)

        try:
            bookings = BookingRepository.get_bookings_between(self.db, self.tenant_id, start_date, end_date)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to get bookings for tenant {self.tenant_id}: {e}")
            raise StorageError(f"Failed to get bookings: {e}") from e

        confirmations = []
        for booking in bookings:
            start, end = booking_window(booking, zone)
            if not overlaps(start, end, range_start, range_end):
                continue
            confirmations.append(
                BookingConfirmation(
                    id=booking.id,
                    status="pending" if booking.status == "pending" else "confirmed",
                    start_time=start.astimezone(timezone.utc),
                    end_time=end.astimezone(timezone.utc),
                    confirmation_code=booking.confirmation_code,
                )
            )
        return confirmations
