"""Google Calendar adapter"""

import json

import httpx
import pytest

from app.domain.scheduling.errors import AuthExpiredError
from app.domain.scheduling.google import GoogleCalendarService
from app.domain.scheduling.oauth import OAuthCalendarService
from app.domain.scheduling.schemas import DateRange
from app.services.google_calendar_service import GoogleCalendarClient
from helpers import booking_request, make_integration, utc


class FakeGoogle:
    def __init__(self, delete_status=204, token_status=200):
        self.delete_status = delete_status
        self.token_status = token_status
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == "oauth2.googleapis.com":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "new-token", "expires_in": 3599})

        if request.headers["Authorization"] != "Bearer new-token":
            return httpx.Response(401, json={"error": {"code": 401}})

        if path.endswith("/freeBusy"):
            body = json.loads(request.content)
            calendar_id = body["items"][0]["id"]
            return httpx.Response(
                200,
                json={
                    "calendars": {
                        calendar_id: {"busy": [{"start": "2026-03-03T09:30:00Z", "end": "2026-03-03T10:00:00Z"}]}
                    }
                },
            )
        if request.method == "POST" and path.endswith("/events"):
            return httpx.Response(200, json={"id": "gcal-evt-1", "status": "confirmed"})
        if request.method == "GET" and path.endswith("/events"):
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "id": "gcal-evt-1",
                            "status": "confirmed",
                            "start": {"dateTime": "2026-03-03T10:00:00-05:00"},
                            "end": {"dateTime": "2026-03-03T11:00:00-05:00"},
                        },
                        {
                            "id": "gcal-evt-2",
                            "status": "cancelled",
                            "start": {"dateTime": "2026-03-03T12:00:00Z"},
                            "end": {"dateTime": "2026-03-03T13:00:00Z"},
                        },
                        {
                            "id": "gcal-holiday",
                            "status": "confirmed",
                            "start": {"date": "2026-03-04"},
                            "end": {"date": "2026-03-05"},
                        },
                    ]
                },
            )
        if request.method == "DELETE":
            return httpx.Response(self.delete_status)
        return httpx.Response(404)


def make_google(db, tenant, fake, **kwargs) -> GoogleCalendarService:
    integration = make_integration(db, tenant, "google_calendar", **kwargs)
    return GoogleCalendarService(db, integration, GoogleCalendarClient(transport=httpx.MockTransport(fake.handler)))


class TestGoogleCalendar:
    @pytest.mark.asyncio
    async def test_busy_intervals_after_refresh(self, db, tenant):
        fake = FakeGoogle()
        google = make_google(db, tenant, fake)

        slots = await google.check_availability(tenant.id, DateRange(start=utc(9), end=utc(10)))

        assert [s.available for s in slots] == [True, False]
        # Google does not rotate refresh tokens; the stored one is kept
        assert google.integration.refresh_token is not None

    @pytest.mark.asyncio
    async def test_uses_configured_calendar(self, db, tenant):
        fake = FakeGoogle()
        google = make_google(db, tenant, fake, access_token="new-token", external_account_id="team@example.com")

        await google.create_booking(tenant.id, booking_request(utc(9), utc(9, 30)))

        assert fake.requests[-1].url.path == "/calendar/v3/calendars/team@example.com/events"
        assert fake.requests[-1].url.params["sendUpdates"] == "all"

    @pytest.mark.asyncio
    async def test_create_booking(self, db, tenant):
        fake = FakeGoogle()
        google = make_google(db, tenant, fake, access_token="new-token")

        confirmation = await google.create_booking(tenant.id, booking_request(utc(9), utc(9, 30)))

        assert confirmation.id == "gcal-evt-1"
        assert confirmation.status == "confirmed"
        payload = json.loads(fake.requests[-1].content)
        assert payload["attendees"] == [{"email": "jane@example.com"}]
        assert "+15551234567" in payload["description"]

    @pytest.mark.asyncio
    async def test_get_bookings_skips_cancelled(self, db, tenant):
        google = make_google(db, tenant, FakeGoogle(), access_token="new-token")

        bookings = await google.get_bookings(tenant.id, DateRange(start=utc(0), end=utc(0, day=6)))

        assert [b.id for b in bookings] == ["gcal-evt-1", "gcal-holiday"]
        assert bookings[0].start_time == utc(15)
        assert bookings[1].start_time == utc(0, day=4)

    @pytest.mark.asyncio
    async def test_cancel_already_deleted_event(self, db, tenant):
        google = make_google(db, tenant, FakeGoogle(delete_status=410), access_token="new-token")

        assert await google.cancel_booking(tenant.id, "gcal-evt-1") is True

    @pytest.mark.asyncio
    async def test_refresh_failure(self, db, tenant):
        google = make_google(db, tenant, FakeGoogle(token_status=401))

        with pytest.raises(AuthExpiredError):
            await google.check_availability(tenant.id, DateRange(start=utc(9), end=utc(10)))

        assert google.integration.status == "expired"

    @pytest.mark.asyncio
    async def test_free_busy_reads_configured_calendar(self, db, tenant):
        fake = FakeGoogle()
        google = make_google(db, tenant, fake, access_token="new-token", external_account_id="team@example.com")

        slots = await google.check_availability(tenant.id, DateRange(start=utc(9), end=utc(10)))

        assert await google._get_identity() == "team@example.com"
        assert json.loads(fake.requests[-1].content)["items"] == [{"id": "team@example.com"}]
        assert [s.available for s in slots] == [True, False]


def test_oauth_adapters_must_define_identity(db, tenant):
    class NoIdentity(OAuthCalendarService):
        async def check_availability(self, tenant_id, date_range):
            return []

        async def create_booking(self, tenant_id, booking, call_id=None):
            raise NotImplementedError

        async def cancel_booking(self, tenant_id, booking_id):
            return True

        async def get_bookings(self, tenant_id, date_range):
            return []

    with pytest.raises(TypeError):
        NoIdentity(db, make_integration(db, tenant, "google_calendar"), client=None)
