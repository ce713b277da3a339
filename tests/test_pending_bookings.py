"""Pending booking review workflow"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.scheduling.builtin import BuiltinCalendarService
from app.domain.scheduling.errors import (
    InvalidTransitionError,
    NotFoundError,
    SlotUnavailableError,
    StorageError,
    ValidationError,
)
from app.domain.scheduling.pending import PendingBookingService, append_note
from app.domain.scheduling.repository import PendingBookingRepository
from app.models import Booking, Call, PendingBooking
from helpers import booking_request, make_tenant, utc


@pytest.fixture
def service(db):
    return PendingBookingService(db)


def add_pending(db, tenant, **overrides) -> PendingBooking:
    data = {
        "tenant_id": tenant.id,
        "customer_name": "Jane Doe",
        "customer_phone": "+15551234567",
        "customer_email": "jane@example.com",
        "requested_date": date(2026, 3, 3),
        "requested_time": "10:00",
        "service": "Boiler service",
        "notes": "Prefers mornings",
    }
    data.update(overrides)
    pending = PendingBooking(**data)
    db.add(pending)
    db.commit()
    return pending


class TestCreatePending:
    @pytest.mark.asyncio
    async def test_records_tenant_local_request(self, db, service, ny_tenant):
        confirmation = await service.create_pending_booking(ny_tenant.id, booking_request(utc(14), utc(14, 30)))

        pending = db.query(PendingBooking).one()
        assert confirmation.status == "pending"
        assert confirmation.id == pending.id
        assert confirmation.confirmation_code is None
        assert pending.requested_date == date(2026, 3, 3)
        assert pending.requested_time == "09:00"
        assert pending.status == "pending"
        assert pending.service == "Drain cleaning"

    @pytest.mark.asyncio
    async def test_links_call(self, db, service, tenant):
        call = Call(tenant_id=tenant.id, caller_phone="+15551234567", transcript="I need a plumber")
        db.add(call)
        db.commit()

        confirmation = await service.create_pending_booking(
            tenant.id, booking_request(utc(9), utc(9, 30)), call_id=call.id
        )

        pending = await service.get_pending_booking(confirmation.id, tenant.id)
        assert pending.call.transcript == "I need a plumber"


class TestListPending:
    @pytest.mark.asyncio
    async def test_status_filter(self, db, service, tenant):
        add_pending(db, tenant)
        add_pending(db, tenant, status="rejected")
        add_pending(db, make_tenant(db))

        assert len(await service.get_pending_bookings(tenant.id)) == 2
        assert [p.status for p in await service.get_pending_bookings(tenant.id, "rejected")] == ["rejected"]

    @pytest.mark.asyncio
    async def test_other_tenant_not_found(self, db, service, tenant):
        pending = add_pending(db, tenant)

        with pytest.raises(NotFoundError):
            await service.get_pending_booking(pending.id, make_tenant(db).id)


class TestConfirmAndReject:
    @pytest.mark.asyncio
    async def test_confirm_stamps_staff(self, db, service, tenant):
        pending = add_pending(db, tenant)

        result = await service.confirm_pending_booking(pending.id, "staff-1", tenant_id=tenant.id)

        assert result.status == "confirmed"
        assert result.confirmed_by == "staff-1"
        assert result.confirmed_at is not None

    @pytest.mark.asyncio
    async def test_reject_appends_reason(self, db, service, tenant):
        pending = add_pending(db, tenant)

        result = await service.reject_pending_booking(pending.id, "staff-1", reason="Fully booked")

        assert result.status == "rejected"
        assert result.notes == "Prefers mornings\n\nRejected: Fully booked"
        assert result.confirmed_by == "staff-1"

    @pytest.mark.asyncio
    async def test_reject_without_prior_notes(self, db, service, tenant):
        pending = add_pending(db, tenant, notes=None)

        result = await service.reject_pending_booking(pending.id, "staff-1", reason="Out of area")

        assert result.notes == "Rejected: Out of area"

    @pytest.mark.asyncio
    async def test_reject_without_reason_keeps_notes(self, db, service, tenant):
        pending = add_pending(db, tenant)

        result = await service.reject_pending_booking(pending.id, "staff-1")

        assert result.notes == "Prefers mornings"

    @pytest.mark.asyncio
    async def test_closed_request_cannot_change_again(self, db, service, tenant):
        pending = add_pending(db, tenant)
        await service.reject_pending_booking(pending.id, "staff-1", reason="No")

        with pytest.raises(InvalidTransitionError):
            await service.confirm_pending_booking(pending.id, "staff-2")
        with pytest.raises(InvalidTransitionError):
            await service.reject_pending_booking(pending.id, "staff-2")

    @pytest.mark.asyncio
    async def test_unknown_id(self, service, tenant):
        with pytest.raises(NotFoundError):
            await service.confirm_pending_booking("missing", "staff-1", tenant_id=tenant.id)

    @pytest.mark.asyncio
    async def test_lookup_failure_is_storage_error(self, db, service, tenant, monkeypatch):
        pending = add_pending(db, tenant)

        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("db down"))

        monkeypatch.setattr(PendingBookingRepository, "get_by_id", unavailable)

        with pytest.raises(StorageError):
            await service.confirm_pending_booking(pending.id, "staff-1", tenant_id=tenant.id)
        with pytest.raises(StorageError):
            await service.get_pending_booking(pending.id, tenant.id)


def test_append_note():
    assert append_note(None, "Rejected: x") == "Rejected: x"
    assert append_note("", "Rejected: x") == "Rejected: x"
    assert append_note("a", "Rejected: x") == "a\n\nRejected: x"


class TestConvert:
    @pytest.mark.asyncio
    async def test_copies_customer_fields_verbatim(self, db, service, tenant):
        call = Call(tenant_id=tenant.id)
        db.add(call)
        db.commit()
        pending = add_pending(db, tenant, call_id=call.id, customer_phone="555 0100", customer_email=None)

        confirmation = await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1")

        booking = db.query(Booking).one()
        assert booking.customer_name == "Jane Doe"
        assert booking.customer_phone == "555 0100"
        assert booking.customer_email is None
        assert booking.call_id == call.id
        assert booking.notes == "Prefers mornings"
        assert booking.booking_type == "Boiler service"
        assert booking.source == "call"
        assert booking.status == "confirmed"
        assert booking.duration_minutes == 30
        assert (booking.booking_date, booking.booking_time) == (date(2026, 3, 3), "10:00")

        assert confirmation.status == "confirmed"
        assert confirmation.id == booking.id
        assert confirmation.confirmation_code == booking.confirmation_code
        assert confirmation.start_time == utc(10)
        assert confirmation.end_time == utc(10, 30)

        db.refresh(pending)
        assert pending.status == "confirmed"
        assert pending.confirmed_by == "staff-1"
        assert pending.confirmed_at is not None

    @pytest.mark.asyncio
    async def test_override_date_and_time(self, db, service, ny_tenant):
        pending = add_pending(db, ny_tenant)

        confirmation = await service.convert_pending_to_confirmed(
            pending.id, ny_tenant.id, "staff-1", override_date="2026-03-04", override_time="13:30"
        )

        booking = db.query(Booking).one()
        assert (booking.booking_date, booking.booking_time) == (date(2026, 3, 4), "13:30")
        assert confirmation.start_time == utc(18, 30, day=4)

    @pytest.mark.asyncio
    async def test_override_time_only(self, db, service, tenant):
        pending = add_pending(db, tenant)

        await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1", override_time="15:00")

        booking = db.query(Booking).one()
        assert (booking.booking_date, booking.booking_time) == (date(2026, 3, 3), "15:00")

    @pytest.mark.asyncio
    async def test_no_date_or_time_anywhere(self, db, service, tenant):
        pending = add_pending(db, tenant, requested_date=None, requested_time=None)

        with pytest.raises(ValidationError):
            await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1")

        assert db.query(Booking).count() == 0
        db.refresh(pending)
        assert pending.status == "pending"

    @pytest.mark.asyncio
    async def test_malformed_override(self, db, service, tenant):
        pending = add_pending(db, tenant)

        with pytest.raises(ValidationError):
            await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1", override_time="9am")

        assert db.query(Booking).count() == 0

    @pytest.mark.asyncio
    async def test_malformed_stored_time(self, db, service, tenant):
        pending = add_pending(db, tenant, requested_time="25:00")

        with pytest.raises(ValidationError):
            await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1")

        assert db.query(Booking).count() == 0
        db.refresh(pending)
        assert pending.status == "pending"

    @pytest.mark.asyncio
    async def test_override_replaces_malformed_stored_time(self, db, service, tenant):
        pending = add_pending(db, tenant, requested_time="25:00")

        confirmation = await service.convert_pending_to_confirmed(
            pending.id, tenant.id, "staff-1", override_time="11:00"
        )

        assert confirmation.start_time == utc(11)

    @pytest.mark.asyncio
    async def test_taken_slot_leaves_request_pending(self, db, service, tenant):
        await BuiltinCalendarService(db, tenant.id).create_booking(tenant.id, booking_request(utc(10), utc(11)))
        pending = add_pending(db, tenant)

        with pytest.raises(SlotUnavailableError):
            await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1")

        assert db.query(Booking).count() == 1
        db.refresh(pending)
        assert pending.status == "pending"
        assert pending.confirmed_by is None

    @pytest.mark.asyncio
    async def test_already_converted(self, db, service, tenant):
        pending = add_pending(db, tenant)
        await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1")

        with pytest.raises(InvalidTransitionError):
            await service.convert_pending_to_confirmed(pending.id, tenant.id, "staff-1")

        assert db.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_convert(self, db, service, tenant):
        pending = add_pending(db, tenant)

        with pytest.raises(NotFoundError):
            await service.convert_pending_to_confirmed(pending.id, make_tenant(db).id, "staff-1")
