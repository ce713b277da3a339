"""
Google Calendar service
Full booking support through the Calendar v3 API
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models_integration import TenantIntegration
from ...services.google_calendar_service import GoogleCalendarClient
from .base import CalendarProvider
from .errors import ProviderError
from .oauth import OAuthCalendarService, parse_provider_datetime
from .schemas import BookingConfirmation, BookingRequest, BusyPeriod, DateRange, TimeSlot

logger = logging.getLogger(__name__)


def build_event(booking: BookingRequest) -> dict[str, Any]:
    event_data: dict[str, Any] = {
        "summary": f"{booking.service or 'Appointment'} - {booking.customer_name}",
        "description": f"Phone: {booking.customer_phone}\n{booking.notes or ''}",
        "start": {"dateTime": booking.start_time.isoformat()},
        "end": {"dateTime": booking.end_time.isoformat()},
    }

    if booking.customer_email:
        event_data["attendees"] = [{"email": booking.customer_email}]

    return event_data


def _event_time(value: dict) -> str:
    # All-day events only carry a date
    return value.get("dateTime") or f"{value['date']}T00:00:00+00:00"


class GoogleCalendarService(OAuthCalendarService):
    provider = CalendarProvider.GOOGLE_CALENDAR

    def __init__(
        self, db: Session, integration: TenantIntegration, client: Optional[GoogleCalendarClient] = None
    ):
        super().__init__(db, integration, client or GoogleCalendarClient())

    @property
    def calendar_id(self) -> str:
        return self.integration.external_account_id or "primary"

    async def _fetch_identity(self, access_token: str) -> str:
        # The configured calendar needs no lookup
        return self.calendar_id

    async def check_availability(self, tenant_id: str, date_range: DateRange) -> list[TimeSlot]:
        calendar_id = await self._get_identity()
        response = await self._call(
            lambda token: self.client.query_free_busy(token, calendar_id, date_range.start, date_range.end),
            "free/busy query",
        )

        calendar = (response.get("calendars") or {}).get(calendar_id, {})
        busy_periods = [
            BusyPeriod(start=parse_provider_datetime(b["start"]), end=parse_provider_datetime(b["end"]))
            for b in calendar.get("busy", [])
        ]

        return self._generic_slots(date_range, busy_periods)

    async def create_booking(
        self, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
    ) -> BookingConfirmation:
        event = await self._call(
            lambda token: self.client.insert_event(token, self.calendar_id, build_event(booking)),
            "event creation",
        )

        return BookingConfirmation(
            id=event["id"],
            external_id=event["id"],
            status="confirmed",
            start_time=booking.start_time,
            end_time=booking.end_time,
        )

    async def cancel_booking(self, tenant_id: str, booking_id: str) -> bool:
        try:
            await self._call(
                lambda token: self.client.delete_event(token, self.calendar_id, booking_id),
                "event deletion",
            )
        except ProviderError as e:
            # 410 Gone: already deleted
            if e.status_code in (404, 410):
                logger.info(f"ℹ️ Google Calendar event {booking_id} already gone, treating as cancelled")
                return True
            raise
        return True

    async def get_bookings(self, tenant_id: str, date_range: DateRange) -> list[BookingConfirmation]:
        response = await self._call(
            lambda token: self.client.list_events(token, self.calendar_id, date_range.start, date_range.end),
            "event listing",
        )

        return [
            BookingConfirmation(
                id=event["id"],
                external_id=event["id"],
                status="confirmed",
                start_time=parse_provider_datetime(_event_time(event["start"])),
                end_time=parse_provider_datetime(_event_time(event["end"])),
            )
            for event in response.get("items", [])
            if event.get("status") != "cancelled" and event.get("start") and event.get("end")
        ]
