"""
Calendly calendar service

Calendly has no API for creating bookings on someone's behalf; invitees book
through Calendly's own scheduling pages. This adapter reads busy time and
manages existing events, and reports booking creation as unsupported so the
caller records a pending booking instead.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models_integration import TenantIntegration
from ...services.calendly_service import CalendlyClient
from .base import CalendarProvider
from .errors import ProviderError, UnsupportedOperationError
from .oauth import OAuthCalendarService, parse_provider_datetime
from .schemas import BookingConfirmation, BookingRequest, BusyPeriod, DateRange, TimeSlot

logger = logging.getLogger(__name__)

CANCELLATION_REASON = "Cancelled by phone assistant"


def extract_event_uuid(booking_id: str) -> str:
    """Calendly identifies events by URI; accept either the URI or its trailing UUID"""
    return booking_id.rstrip("/").split("/")[-1]


class CalendlyCalendarService(OAuthCalendarService):
    provider = CalendarProvider.CALENDLY
    supports_booking_creation = False

    def __init__(self, db: Session, integration: TenantIntegration, client: Optional[CalendlyClient] = None):
        super().__init__(db, integration, client or CalendlyClient())

    async def _fetch_identity(self, access_token: str) -> str:
        user_info = await self.client.get_user_info(access_token)
        return user_info["resource"]["uri"]

    async def _scheduled_events(self, user_uri: str, date_range: DateRange) -> list[dict]:
        response = await self._call(
            lambda token: self.client.get_scheduled_events(
                token,
                user_uri,
                min_start_time=date_range.start,
                max_start_time=date_range.end,
                status="active",
            ),
            "scheduled events",
        )
        return response.get("collection", [])

    async def check_availability(self, tenant_id: str, date_range: DateRange) -> list[TimeSlot]:
        user_uri = await self._get_identity()

        event_types = await self._call(
            lambda token: self.client.list_event_types(token, user_uri, active=True),
            "event types",
        )
        if not event_types.get("collection"):
            logger.info(f"ℹ️ No active Calendly event types for tenant {self.integration.tenant_id}")
            return []

        busy_periods = [
            BusyPeriod(
                start=parse_provider_datetime(event["start_time"]),
                end=parse_provider_datetime(event["end_time"]),
            )
            for event in await self._scheduled_events(user_uri, date_range)
        ]

        return self._generic_slots(date_range, busy_periods)

    async def create_booking(
        self, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
    ) -> BookingConfirmation:
        raise UnsupportedOperationError(self.provider_name, "create_booking")

    async def cancel_booking(self, tenant_id: str, booking_id: str) -> bool:
        event_uuid = extract_event_uuid(booking_id)
        try:
            await self._call(
                lambda token: self.client.cancel_event(token, event_uuid, reason=CANCELLATION_REASON),
                "event cancellation",
            )
        except ProviderError as e:
            if e.status_code == 404:
                logger.info(f"ℹ️ Calendly event {event_uuid} already gone, treating as cancelled")
                return True
            raise
        return True

    async def get_bookings(self, tenant_id: str, date_range: DateRange) -> list[BookingConfirmation]:
        user_uri = await self._get_identity()

        return [
            BookingConfirmation(
                id=extract_event_uuid(event["uri"]),
                external_id=event["uri"],
                status="confirmed",
                start_time=parse_provider_datetime(event["start_time"]),
                end_time=parse_provider_datetime(event["end_time"]),
            )
            for event in await self._scheduled_events(user_uri, date_range)
        ]
