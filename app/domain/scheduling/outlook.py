"""
Microsoft Outlook calendar service
Full booking support through Microsoft Graph
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import SLOT_DURATION_MINUTES
from ...models_integration import TenantIntegration
from ...services.outlook_service import OutlookClient, to_graph_datetime
from .base import CalendarProvider
from .errors import ProviderError
from .oauth import OAuthCalendarService, parse_provider_datetime
from .schemas import BookingConfirmation, BookingRequest, BusyPeriod, DateRange, TimeSlot

logger = logging.getLogger(__name__)


def build_event(booking: BookingRequest) -> dict[str, Any]:
    """Graph event payload for a booking request"""
    event: dict[str, Any] = {
        "subject": f"{booking.service or 'Appointment'} - {booking.customer_name}",
        "body": {
            "contentType": "text",
            "content": f"Phone: {booking.customer_phone}\n{booking.notes or ''}",
        },
        "start": to_graph_datetime(booking.start_time),
        "end": to_graph_datetime(booking.end_time),
    }

    if booking.customer_email:
        event["attendees"] = [
            {
                "emailAddress": {"address": booking.customer_email, "name": booking.customer_name},
                "type": "required",
            }
        ]

    return event


class OutlookCalendarService(OAuthCalendarService):
    provider = CalendarProvider.OUTLOOK

    def __init__(self, db: Session, integration: TenantIntegration, client: Optional[OutlookClient] = None):
        super().__init__(db, integration, client or OutlookClient())

    async def _fetch_identity(self, access_token: str) -> str:
        if self.integration.external_account_id:
            return self.integration.external_account_id
        profile = await self.client.get_me(access_token)
        return profile.get("mail") or profile["userPrincipalName"]

    async def check_availability(self, tenant_id: str, date_range: DateRange) -> list[TimeSlot]:
        mailbox = await self._get_identity()

        response = await self._call(
            lambda token: self.client.get_schedule(
                token, mailbox, date_range.start, date_range.end, interval_minutes=SLOT_DURATION_MINUTES
            ),
            "schedule query",
        )

        schedules = response.get("value") or []
        items = schedules[0].get("scheduleItems", []) if schedules else []

        # Anything other than "free" (busy, tentative, oof, workingElsewhere) blocks the slot
        busy_periods = [
            BusyPeriod(
                start=parse_provider_datetime(item["start"]["dateTime"]),
                end=parse_provider_datetime(item["end"]["dateTime"]),
            )
            for item in items
            if item.get("status") != "free"
        ]

        return self._generic_slots(date_range, busy_periods)

    async def create_booking(
        self, tenant_id: str, booking: BookingRequest, call_id: Optional[str] = None
    ) -> BookingConfirmation:
        event = await self._call(
            lambda token: self.client.create_event(token, build_event(booking)),
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
            await self._call(lambda token: self.client.delete_event(token, booking_id), "event deletion")
        except ProviderError as e:
            if e.status_code == 404:
                logger.info(f"ℹ️ Outlook event {booking_id} already gone, treating as cancelled")
                return True
            raise
        return True

    async def get_bookings(self, tenant_id: str, date_range: DateRange) -> list[BookingConfirmation]:
        response = await self._call(
            lambda token: self.client.list_calendar_view(token, date_range.start, date_range.end),
            "calendar view",
        )

        return [
            BookingConfirmation(
                id=event["id"],
                external_id=event["id"],
                status="confirmed",
                start_time=parse_provider_datetime(event["start"]["dateTime"]),
                end_time=parse_provider_datetime(event["end"]["dateTime"]),
            )
            for event in response.get("value", [])
            if event.get("start") and event.get("end")
        ]
