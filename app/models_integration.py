"""
Calendar Integration Models
"""
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from .database import Base
from .models import generate_uuid

CALENDAR_PROVIDERS = ("google_calendar", "outlook", "calendly")
INTEGRATION_STATUSES = ("active", "expired", "revoked", "error")


class TenantIntegration(Base):
    __tablename__ = "tenant_integrations"
    __table_args__ = (UniqueConstraint("tenant_id", "provider", name="uq_tenant_integrations_provider"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    # google_calendar, outlook, calendly
    provider = Column(String(50), nullable=False)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    scopes = Column(Text, nullable=True)

    # Provider account (calendar id for Google, mailbox for Outlook)
    external_account_id = Column(String(500), nullable=True)

    # Status: active, expired, revoked, error
    status = Column(String(20), nullable=False, default="active")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
