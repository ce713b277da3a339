"""Scheduling repository - Database operations for bookings, pending bookings and integrations"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ...models import Booking, PendingBooking, Tenant
from ...models_integration import CALENDAR_PROVIDERS, TenantIntegration
from .errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def load(db: Session, what: str, query: Callable[..., T], *args: Any) -> T:
    """Run a repository read, reporting database failures as StorageError"""
    try:
        return query(db, *args)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to load {what}: {e}")
        raise StorageError(f"Failed to load {what}: {e}") from e


class TenantRepository:
    """Read access to tenant configuration"""

    @staticmethod
    def get_tenant(db: Session, tenant_id: str) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()


class BookingRepository:
    """Repository for booking ledger operations"""

    @staticmethod
    def get_bookings_between(
        db: Session, tenant_id: str, start_date: date, end_date: date, include_cancelled: bool = False
    ) -> list[Booking]:
        """Bookings whose local date falls in [start_date, end_date]"""
        query = db.query(Booking).filter(
            Booking.tenant_id == tenant_id,
            Booking.booking_date >= start_date,
            Booking.booking_date <= end_date,
        )

        if not include_cancelled:
            query = query.filter(Booking.status != "cancelled")

        return query.order_by(Booking.booking_date, Booking.booking_time).all()

    @staticmethod
    def get_booking(db: Session, booking_id: str, tenant_id: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def confirmation_code_exists(db: Session, tenant_id: str, code: str) -> bool:
        return (
            db.query(Booking.id)
            .filter(Booking.tenant_id == tenant_id, Booking.confirmation_code == code)
            .first()
            is not None
        )

    @staticmethod
    def add_booking(db: Session, booking: Booking) -> Booking:
        """Stage a booking in the current transaction (caller commits)"""
        db.add(booking)
        db.flush()
        return booking


class PendingBookingRepository:
    """Repository for pending (manual review) bookings"""

    @staticmethod
    def get_by_id(db: Session, booking_id: str, tenant_id: Optional[str] = None) -> Optional[PendingBooking]:
        query = (
            db.query(PendingBooking)
            .options(joinedload(PendingBooking.call))
            .filter(PendingBooking.id == booking_id)
        )

        if tenant_id is not None:
            query = query.filter(PendingBooking.tenant_id == tenant_id)

        return query.first()

    @staticmethod
    def list_for_tenant(db: Session, tenant_id: str, status: Optional[str] = None) -> list[PendingBooking]:
        """Get pending bookings with optional status filter, newest first"""
        query = (
            db.query(PendingBooking)
            .options(joinedload(PendingBooking.call))
            .filter(PendingBooking.tenant_id == tenant_id)
        )

        if status:
            query = query.filter(PendingBooking.status == status)

        return query.order_by(PendingBooking.created_at.desc()).all()

    @staticmethod
    def add_pending_booking(db: Session, pending: PendingBooking) -> PendingBooking:
        db.add(pending)
        db.flush()
        return pending


class IntegrationRepository:
    """Repository for stored calendar OAuth credentials"""

    @staticmethod
    def get_active_calendar_integration(db: Session, tenant_id: str) -> Optional[TenantIntegration]:
        """Most recently updated active calendar integration for a tenant"""
        return (
            db.query(TenantIntegration)
            .filter(
                TenantIntegration.tenant_id == tenant_id,
                TenantIntegration.status == "active",
                TenantIntegration.provider.in_(CALENDAR_PROVIDERS),
            )
            .order_by(TenantIntegration.updated_at.desc())
            .first()
        )

    @staticmethod
    def save_refreshed_tokens(
        db: Session,
        integration: TenantIntegration,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
    ) -> TenantIntegration:
        """Persist refreshed (already encrypted) tokens and reactivate the integration"""
        integration.access_token = access_token
        if refresh_token:
            integration.refresh_token = refresh_token
        integration.token_expires_at = expires_at
        integration.status = "active"
        integration.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        db.commit()
        db.refresh(integration)
        return integration

    @staticmethod
    def mark_expired(db: Session, integration: TenantIntegration) -> TenantIntegration:
        integration.status = "expired"
        integration.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        db.commit()
        db.refresh(integration)
        return integration
