import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from ..config import CALENDLY_CLIENT_ID, CALENDLY_CLIENT_SECRET, PROVIDER_HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class CalendlyClient:
    """Client for the Calendly REST API"""

    BASE_URL = "https://api.calendly.com"
    TOKEN_URL = "https://auth.calendly.com/oauth/token"  # noqa: S105 - OAuth endpoint URL

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = CALENDLY_CLIENT_ID
        self.client_secret = CALENDLY_CLIENT_SECRET
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=PROVIDER_HTTP_TIMEOUT)

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        """Refresh expired access token"""
        async with self._client() as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.client_id or "",
                    "client_secret": self.client_secret or "",
                },
            )
            response.raise_for_status()
            return response.json()

    async def get_user_info(self, access_token: str) -> dict[str, Any]:
        """Get current user information"""
        async with self._client() as client:
            response = await client.get(f"{self.BASE_URL}/users/me", headers=self._headers(access_token))
            response.raise_for_status()
            return response.json()

    async def list_event_types(self, access_token: str, user_uri: str, active: bool = True) -> dict[str, Any]:
        """List user's bookable event types"""
        async with self._client() as client:
            response = await client.get(
                f"{self.BASE_URL}/event_types",
                headers=self._headers(access_token),
                params={"user": user_uri, "active": str(active).lower()},
            )
            response.raise_for_status()
            return response.json()

    async def get_scheduled_events(
        self,
        access_token: str,
        user_uri: str,
        min_start_time: Optional[datetime] = None,
        max_start_time: Optional[datetime] = None,
        status: Optional[str] = "active",
        count: int = 100,
    ) -> dict[str, Any]:
        """Get scheduled events for a user"""
        params = {"user": user_uri, "count": count}

        if min_start_time:
            params["min_start_time"] = min_start_time.isoformat()
        if max_start_time:
            params["max_start_time"] = max_start_time.isoformat()
        if status:
            params["status"] = status

        async with self._client() as client:
            response = await client.get(
                f"{self.BASE_URL}/scheduled_events",
                headers=self._headers(access_token),
                params=params,
            )
            response.raise_for_status()
            return response.json()

    async def cancel_event(self, access_token: str, event_uuid: str, reason: Optional[str] = None) -> None:
        """Cancel a scheduled event"""
        data = {}
        if reason:
            data["reason"] = reason

        async with self._client() as client:
            logger.info(f"🗑️ Attempting to cancel Calendly event {event_uuid}")
            response = await client.post(
                f"{self.BASE_URL}/scheduled_events/{event_uuid}/cancellation",
                headers=self._headers(access_token),
                json=data,
            )

            if response.status_code == 403:
                logger.error(
                    f"❌ 403 Forbidden when cancelling event {event_uuid}. "
                    "The token may lack permissions or the user does not own this event"
                )
            elif response.status_code == 404:
                logger.warning(f"⚠️ 404 Not Found when cancelling event {event_uuid}")

            response.raise_for_status()
            logger.info(f"✅ Successfully cancelled Calendly event {event_uuid}")
