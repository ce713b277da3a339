"""
Microsoft Graph (Outlook) calendar client
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from ..config import (
    MICROSOFT_CLIENT_ID,
    MICROSOFT_CLIENT_SECRET,
    MICROSOFT_TENANT,
    PROVIDER_HTTP_TIMEOUT,
)

logger = logging.getLogger(__name__)

GRAPH_API = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPES = "https://graph.microsoft.com/Calendars.ReadWrite offline_access"


def to_graph_datetime(value: datetime) -> dict[str, str]:
    """Graph dateTimeTimeZone resource in UTC"""
    utc_value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return {"dateTime": utc_value.isoformat(timespec="seconds"), "timeZone": "UTC"}


class OutlookClient:
    """Client for the Microsoft Graph calendar endpoints"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = MICROSOFT_CLIENT_ID
        self.client_secret = MICROSOFT_CLIENT_SECRET
        self.token_url = f"https://login.microsoftonline.com/{MICROSOFT_TENANT}/oauth2/v2.0/token"
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=PROVIDER_HTTP_TIMEOUT)

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            # Return event times in UTC regardless of mailbox settings
            "Prefer": 'outlook.timezone="UTC"',
        }

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                self.token_url,
                data={
                    "client_id": self.client_id or "",
                    "client_secret": self.client_secret or "",
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                    "scope": GRAPH_SCOPES,
                },
            )
            response.raise_for_status()
            return response.json()

    async def get_me(self, access_token: str) -> dict[str, Any]:
        """Signed-in user's profile"""
        async with self._client() as client:
            response = await client.get(f"{GRAPH_API}/me", headers=self._headers(access_token))
            response.raise_for_status()
            return response.json()

    async def get_schedule(
        self, access_token: str, mailbox: str, start: datetime, end: datetime, interval_minutes: int = 30
    ) -> dict[str, Any]:
        """Free/busy schedule items for a mailbox"""
        async with self._client() as client:
            response = await client.post(
                f"{GRAPH_API}/me/calendar/getSchedule",
                headers=self._headers(access_token),
                json={
                    "schedules": [mailbox],
                    "startTime": to_graph_datetime(start),
                    "endTime": to_graph_datetime(end),
                    "availabilityViewInterval": interval_minutes,
                },
            )
            response.raise_for_status()
            return response.json()

    async def create_event(self, access_token: str, event_data: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                f"{GRAPH_API}/me/events", headers=self._headers(access_token), json=event_data
            )
            response.raise_for_status()
            event = response.json()
            logger.info(f"✅ Outlook event created: {event.get('id')}")
            return event

    async def delete_event(self, access_token: str, event_id: str) -> None:
        async with self._client() as client:
            response = await client.delete(f"{GRAPH_API}/me/events/{event_id}", headers=self._headers(access_token))
            response.raise_for_status()
            logger.info(f"✅ Outlook event deleted: {event_id}")

    async def list_calendar_view(
        self, access_token: str, start: datetime, end: datetime, top: int = 100
    ) -> dict[str, Any]:
        """Events (with recurrences expanded) in the window"""
        async with self._client() as client:
            response = await client.get(
                f"{GRAPH_API}/me/calendarView",
                headers=self._headers(access_token),
                params={
                    "startDateTime": start.astimezone(timezone.utc).isoformat(),
                    "endDateTime": end.astimezone(timezone.utc).isoformat(),
                    "$orderby": "start/dateTime",
                    "$top": top,
                },
            )
            response.raise_for_status()
            return response.json()
