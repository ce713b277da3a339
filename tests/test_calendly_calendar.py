"""Calendly adapter: read-mostly, booking creation always unsupported"""

import httpx
import pytest

from app.domain.scheduling.calendly import CalendlyCalendarService, extract_event_uuid
from app.domain.scheduling.errors import ProviderError, UnsupportedOperationError
from app.domain.scheduling.schemas import DateRange
from app.services.calendly_service import CalendlyClient
from helpers import booking_request, make_integration, utc

USER_URI = "https://api.calendly.com/users/USER123"
EVENT_URI = "https://api.calendly.com/scheduled_events/EVT456"


class FakeCalendly:
    """Routes Calendly API requests and records them"""

    def __init__(self, event_types=None, cancel_status=201):
        self.requests: list[httpx.Request] = []
        self.event_types = [{"uri": "https://api.calendly.com/event_types/ET1"}] if event_types is None else event_types
        self.cancel_status = cancel_status

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/users/me":
            return httpx.Response(200, json={"resource": {"uri": USER_URI}})
        if path == "/event_types":
            return httpx.Response(200, json={"collection": self.event_types})
        if path == "/scheduled_events":
            return httpx.Response(
                200,
                json={
                    "collection": [
                        {
                            "uri": EVENT_URI,
                            "start_time": "2026-03-03T09:00:00.000000Z",
                            "end_time": "2026-03-03T09:30:00.000000Z",
                        }
                    ]
                },
            )
        if path.endswith("/cancellation"):
            return httpx.Response(self.cancel_status, json={})
        return httpx.Response(404, json={"message": "Not found"})


@pytest.fixture
def fake():
    return FakeCalendly()


@pytest.fixture
def calendly(db, tenant, fake):
    integration = make_integration(db, tenant, "calendly")
    client = CalendlyClient(transport=httpx.MockTransport(fake.handler))
    return CalendlyCalendarService(db, integration, client)


class TestCalendly:
    def test_cannot_create_bookings(self, calendly):
        assert calendly.supports_booking_creation is False

    @pytest.mark.asyncio
    async def test_create_booking_always_unsupported(self, calendly, tenant, fake):
        for start, end in [(utc(9), utc(9, 30)), (utc(13), utc(14))]:
            with pytest.raises(UnsupportedOperationError):
                await calendly.create_booking(tenant.id, booking_request(start, end))

        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_scheduled_events_are_busy(self, calendly, tenant):
        slots = await calendly.check_availability(tenant.id, DateRange(start=utc(9), end=utc(10)))

        assert [s.available for s in slots] == [False, True]

    @pytest.mark.asyncio
    async def test_user_lookup_cached(self, calendly, tenant, fake):
        date_range = DateRange(start=utc(9), end=utc(10))

        await calendly.check_availability(tenant.id, date_range)
        await calendly.check_availability(tenant.id, date_range)
        await calendly.get_bookings(tenant.id, date_range)

        assert fake.paths().count("/users/me") == 1
        assert fake.requests[-1].url.params["user"] == USER_URI

    @pytest.mark.asyncio
    async def test_no_event_types_means_no_slots(self, db, tenant):
        fake = FakeCalendly(event_types=[])
        integration = make_integration(db, tenant, "calendly")
        calendly = CalendlyCalendarService(db, integration, CalendlyClient(transport=httpx.MockTransport(fake.handler)))

        assert await calendly.check_availability(tenant.id, DateRange(start=utc(9), end=utc(10))) == []
        assert "/scheduled_events" not in fake.paths()

    @pytest.mark.asyncio
    async def test_get_bookings(self, calendly, tenant):
        bookings = await calendly.get_bookings(tenant.id, DateRange(start=utc(0), end=utc(23)))

        assert len(bookings) == 1
        assert bookings[0].id == "EVT456"
        assert bookings[0].external_id == EVENT_URI
        assert bookings[0].start_time == utc(9)

    @pytest.mark.asyncio
    async def test_cancel_by_uri(self, calendly, tenant, fake):
        assert await calendly.cancel_booking(tenant.id, EVENT_URI) is True
        assert fake.paths() == ["/scheduled_events/EVT456/cancellation"]

    @pytest.mark.asyncio
    async def test_cancel_missing_event_reports_success(self, db, tenant):
        fake = FakeCalendly(cancel_status=404)
        integration = make_integration(db, tenant, "calendly")
        calendly = CalendlyCalendarService(db, integration, CalendlyClient(transport=httpx.MockTransport(fake.handler)))

        assert await calendly.cancel_booking(tenant.id, "EVT456") is True

    @pytest.mark.asyncio
    async def test_cancel_forbidden_raises(self, db, tenant):
        fake = FakeCalendly(cancel_status=403)
        integration = make_integration(db, tenant, "calendly")
        calendly = CalendlyCalendarService(db, integration, CalendlyClient(transport=httpx.MockTransport(fake.handler)))

        with pytest.raises(ProviderError) as exc_info:
            await calendly.cancel_booking(tenant.id, "EVT456")

        assert exc_info.value.status_code == 403


def test_extract_event_uuid():
    assert extract_event_uuid(EVENT_URI) == "EVT456"
    assert extract_event_uuid(EVENT_URI + "/") == "EVT456"
    assert extract_event_uuid("EVT456") == "EVT456"
