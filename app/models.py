import uuid

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed", "no_show")
PENDING_BOOKING_STATUSES = ("pending", "confirmed", "rejected")


def generate_uuid():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    # Either {"monday": {"open": "09:00", "close": "17:00", "closed": false}, ...}
    # or {"schedule": [{"day": 1, "enabled": true, "slots": [...]}], "holidays": [...]}
    operating_hours = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Call(Base):
    """Phone call handled by the assistant (joined into staff review screens)"""

    __tablename__ = "calls"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    caller_phone = Column(String(50), nullable=True)
    started_at = Column(DateTime, server_default=func.now())
    transcript = Column(Text, nullable=True)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("tenant_id", "confirmation_code", name="uq_bookings_tenant_confirmation_code"),
        # One active booking per tenant slot start; cancelled rows free the slot again
        Index(
            "uq_bookings_active_slot",
            "tenant_id",
            "booking_date",
            "booking_time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
        Index("idx_bookings_tenant_date", "tenant_id", "booking_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    call_id = Column(String(36), ForeignKey("calls.id", ondelete="SET NULL"), nullable=True)

    # Customer
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    customer_email = Column(String(255), nullable=True)

    # Booking details (tenant-local wall clock)
    booking_type = Column(String(100), nullable=False, default="appointment")
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(5), nullable=False)  # HH:MM
    duration_minutes = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # Status: pending, confirmed, cancelled, completed, no_show
    status = Column(String(20), nullable=False, default="pending")
    confirmation_code = Column(String(6), nullable=False)
    source = Column(String(20), nullable=False, default="call")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    call = relationship("Call")


class PendingBooking(Base):
    """Booking request awaiting manual review when direct booking is impossible"""

    __tablename__ = "pending_bookings"
    __table_args__ = (Index("idx_pending_bookings_status", "tenant_id", "status"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    call_id = Column(String(36), ForeignKey("calls.id", ondelete="SET NULL"), nullable=True, index=True)

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    customer_email = Column(String(255), nullable=True)

    # Requested appointment details (tenant-local wall clock)
    requested_date = Column(Date, nullable=True)
    requested_time = Column(String(5), nullable=True)  # HH:MM
    service = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    # Status: pending, confirmed, rejected
    status = Column(String(20), nullable=False, default="pending")
    confirmed_by = Column(String(36), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)

    call = relationship("Call")
