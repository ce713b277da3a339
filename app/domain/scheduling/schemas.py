"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ...shared.validators import (
    normalize_phone,
    validate_date_string,
    validate_email,
    validate_time_string,
)


def as_utc_if_naive(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DateRange(BaseModel):
    """Half-open instant range [start, end)"""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def validate_instant(cls, v):
        return as_utc_if_naive(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.end <= self.start:
            raise ValueError("Date range end must be after start")
        return self


class TimeSlot(BaseModel):
    start: datetime
    end: datetime
    available: bool


class BusyPeriod(BaseModel):
    start: datetime
    end: datetime


class DayHours(BaseModel):
    """Opening hours for one weekday"""

    open: str = "09:00"
    close: str = "17:00"
    closed: bool = False

    @field_validator("open", "close")
    @classmethod
    def validate_clock(cls, v):
        return validate_time_string(v)


class BookingRequest(BaseModel):
    """Booking details collected by the phone assistant"""

    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    service: Optional[str] = None
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_instant(cls, v):
        return as_utc_if_naive(v)

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v)

    @field_validator("customer_email")
    @classmethod
    def validate_customer_email(cls, v):
        if v:
            return validate_email(v)
        return v


class BookingConfirmation(BaseModel):
    id: str
    external_id: Optional[str] = None
    status: Literal["pending", "confirmed"]
    start_time: datetime
    end_time: datetime
    confirmation_code: Optional[str] = None


class CreateBookingRequest(BookingRequest):
    """Booking request coming from the call flow"""

    call_id: Optional[str] = None


class RejectPendingRequest(BaseModel):
    reason: Optional[str] = None


class ConvertPendingRequest(BaseModel):
    confirmed_date: Optional[str] = None
    confirmed_time: Optional[str] = None

    @field_validator("confirmed_date")
    @classmethod
    def validate_confirmed_date(cls, v):
        return validate_date_string(v)

    @field_validator("confirmed_time")
    @classmethod
    def validate_confirmed_time(cls, v):
        return validate_time_string(v)


class CallSummary(BaseModel):
    id: str
    started_at: Optional[datetime] = None
    transcript: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PendingBookingResponse(BaseModel):
    """Pending booking as shown to staff for review"""

    id: str
    tenant_id: str
    call_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    requested_date: Optional[date] = None
    requested_time: Optional[str] = None
    service: Optional[str] = None
    notes: Optional[str] = None
    status: str
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    call: Optional[CallSummary] = None

    model_config = ConfigDict(from_attributes=True)
