"""
Google Calendar API client
Free/busy queries and event creation, listing and deletion
"""
import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, PROVIDER_HTTP_TIMEOUT

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class GoogleCalendarClient:
    """Client for the Google Calendar v3 REST API"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = GOOGLE_CLIENT_ID
        self.client_secret = GOOGLE_CLIENT_SECRET
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=PROVIDER_HTTP_TIMEOUT)

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new access token"""
        async with self._client() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id or "",
                    "client_secret": self.client_secret or "",
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            return response.json()

    async def query_free_busy(
        self, access_token: str, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> dict[str, Any]:
        """Busy intervals for one calendar"""
        async with self._client() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/freeBusy",
                headers={"Authorization": f"Bearer {access_token}"},
                json={
                    "timeMin": time_min.isoformat(),
                    "timeMax": time_max.isoformat(),
                    "items": [{"id": calendar_id}],
                },
            )
            response.raise_for_status()
            return response.json()

    async def insert_event(self, access_token: str, calendar_id: str, event_data: dict[str, Any]) -> dict[str, Any]:
        """Create an event and email attendees"""
        async with self._client() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                params={"sendUpdates": "all"},
                json=event_data,
            )
            response.raise_for_status()
            event = response.json()
            logger.info(f"✅ Google Calendar event created: {event.get('id')}")
            return event

    async def delete_event(self, access_token: str, calendar_id: str, event_id: str) -> None:
        async with self._client() as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                params={"sendUpdates": "all"},
            )
            response.raise_for_status()
            logger.info(f"✅ Google Calendar event deleted: {event_id}")

    async def list_events(
        self, access_token: str, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> dict[str, Any]:
        """Single (expanded) events in the window ordered by start"""
        async with self._client() as client:
            response = await client.get(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                params={
                    "timeMin": time_min.isoformat(),
                    "timeMax": time_max.isoformat(),
                    "singleEvents": "true",
                    "orderBy": "startTime",
                },
            )
            response.raise_for_status()
            return response.json()
