"""Scheduling router - FastAPI endpoints for availability, bookings and pending review"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from ...config import MAX_QUERY_RANGE_DAYS
from ...database import get_db
from ...shared.validators import validate_uuid
from . import service as scheduling_service
from .errors import ValidationError
from .pending import PendingBookingService
from .schemas import (
    BookingConfirmation,
    ConvertPendingRequest,
    CreateBookingRequest,
    DateRange,
    PendingBookingResponse,
    RejectPendingRequest,
    TimeSlot,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])
pending_router = APIRouter(prefix="/pending-bookings", tags=["Pending Bookings"])


def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID")) -> str:
    """Tenant resolved upstream (phone number routing or staff session)"""
    if not validate_uuid(x_tenant_id):
        raise HTTPException(status_code=400, detail="Invalid tenant ID")
    return x_tenant_id


def get_staff_id(x_staff_id: str = Header(..., alias="X-Staff-ID")) -> str:
    return x_staff_id


def get_pending_service(db: Session = Depends(get_db)) -> PendingBookingService:
    """Dependency injection for PendingBookingService"""
    return PendingBookingService(db)


def _date_range(start: datetime, end: datetime) -> DateRange:
    try:
        date_range = DateRange(start=start, end=end)
    except ValueError as e:
        raise ValidationError("Date range end must be after start") from e

    if date_range.end - date_range.start > timedelta(days=MAX_QUERY_RANGE_DAYS):
        raise ValidationError(f"Date range cannot exceed {MAX_QUERY_RANGE_DAYS} days")
    return date_range


# ============================================================================
# AVAILABILITY AND BOOKINGS
# ============================================================================


@router.get("/availability", response_model=list[TimeSlot])
async def get_availability(
    start: datetime = Query(...),
    end: datetime = Query(...),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Slots in [start, end) with availability flags"""
    return await scheduling_service.check_availability(db, tenant_id, _date_range(start, end))


@router.get("/bookings", response_model=list[BookingConfirmation])
async def list_bookings(
    start: datetime = Query(...),
    end: datetime = Query(...),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return await scheduling_service.get_bookings(db, tenant_id, _date_range(start, end))


@router.post("/bookings", response_model=BookingConfirmation, status_code=201)
async def create_booking(
    data: CreateBookingRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Book through the tenant's calendar; falls back to a pending booking"""
    logger.info(f"📥 Booking request for tenant {tenant_id} (call {data.call_id})")
    return await scheduling_service.create_booking_with_fallback(db, tenant_id, data, call_id=data.call_id)


@router.delete("/bookings/{booking_id}")
async def cancel_booking(
    booking_id: str,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    cancelled = await scheduling_service.cancel_booking(db, tenant_id, booking_id)
    return {"cancelled": cancelled}


# ============================================================================
# PENDING BOOKING REVIEW
# ============================================================================


@pending_router.get("", response_model=list[PendingBookingResponse])
async def list_pending_bookings(
    status: Optional[str] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    service: PendingBookingService = Depends(get_pending_service),
):
    """Pending bookings for staff review, newest first"""
    return await service.get_pending_bookings(tenant_id, status)


@pending_router.get("/{booking_id}", response_model=PendingBookingResponse)
async def get_pending_booking(
    booking_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: PendingBookingService = Depends(get_pending_service),
):
    return await service.get_pending_booking(booking_id, tenant_id)


@pending_router.post("/{booking_id}/confirm", response_model=PendingBookingResponse)
async def confirm_pending_booking(
    booking_id: str,
    tenant_id: str = Depends(get_tenant_id),
    staff_id: str = Depends(get_staff_id),
    service: PendingBookingService = Depends(get_pending_service),
):
    return await service.confirm_pending_booking(booking_id, staff_id, tenant_id=tenant_id)


@pending_router.post("/{booking_id}/reject", response_model=PendingBookingResponse)
async def reject_pending_booking(
    booking_id: str,
    data: RejectPendingRequest,
    tenant_id: str = Depends(get_tenant_id),
    staff_id: str = Depends(get_staff_id),
    service: PendingBookingService = Depends(get_pending_service),
):
    return await service.reject_pending_booking(booking_id, staff_id, reason=data.reason, tenant_id=tenant_id)


@pending_router.post("/{booking_id}/convert", response_model=BookingConfirmation)
async def convert_pending_booking(
    booking_id: str,
    data: ConvertPendingRequest,
    tenant_id: str = Depends(get_tenant_id),
    staff_id: str = Depends(get_staff_id),
    service: PendingBookingService = Depends(get_pending_service),
):
    """Turn a pending request into a confirmed booking, optionally at another date/time"""
    return await service.convert_pending_to_confirmed(
        booking_id,
        tenant_id,
        staff_id,
        override_date=data.confirmed_date,
        override_time=data.confirmed_time,
    )
