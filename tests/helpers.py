"""Factories shared by the scheduling tests"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.domain.scheduling.schemas import BookingRequest
from app.models import Tenant
from app.models_integration import TenantIntegration
from app.security_utils import encrypt_token


def utc(hour: int, minute: int = 0, day: int = 3) -> datetime:
    """Instant in March 2026 (the 3rd is a Tuesday)"""
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def make_tenant(db: Session, tz: str = "UTC", operating_hours: Optional[dict] = None) -> Tenant:
    tenant = Tenant(
        id=str(uuid.uuid4()),
        name="Acme Plumbing",
        timezone=tz,
        operating_hours=operating_hours,
    )
    db.add(tenant)
    db.commit()
    return tenant


def make_integration(
    db: Session,
    tenant: Tenant,
    provider: str,
    access_token: str = "old-token",
    refresh_token: Optional[str] = "refresh-token",
    external_account_id: Optional[str] = None,
    status: str = "active",
) -> TenantIntegration:
    integration = TenantIntegration(
        tenant_id=tenant.id,
        provider=provider,
        access_token=encrypt_token(access_token),
        refresh_token=encrypt_token(refresh_token),
        external_account_id=external_account_id,
        status=status,
    )
    db.add(integration)
    db.commit()
    return integration


def booking_request(start: datetime, end: datetime, **overrides) -> BookingRequest:
    data = {
        "customer_name": "Jane Doe",
        "customer_phone": "(555) 123-4567",
        "customer_email": "Jane@Example.com",
        "service": "Drain cleaning",
        "start_time": start,
        "end_time": end,
        "notes": "Side door",
    }
    data.update(overrides)
    return BookingRequest(**data)
