"""
OAuth-backed calendar services

Shared credential handling for external providers: the stored access token
is decrypted for every outbound call, a 401 triggers exactly one token
refresh followed by exactly one retry, and a failed refresh marks the
integration expired.
"""

import logging
import re
from abc import abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models_integration import TenantIntegration
from ...security_utils import decrypt_token, encrypt_token
from .base import CalendarService
from .errors import AuthExpiredError, ProviderError, StorageError
from .repository import IntegrationRepository, TenantRepository, load
from .schemas import BusyPeriod, DateRange, TimeSlot
from .slot_generator import default_weekly_hours, generate_slots

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retries allowed after a 401; each retry is preceded by one token refresh
MAX_AUTH_RETRIES = 1

_FRACTION = re.compile(r"\.(\d{6})\d+")


def parse_provider_datetime(value: str) -> datetime:
    """
    Parse a provider timestamp into an aware UTC datetime.

    Handles a trailing "Z", 7-digit fractional seconds (Graph) and naive
    values, which providers here always report in UTC.
    """
    cleaned = _FRACTION.sub(r".\1", value.strip())
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class OAuthCalendarService(CalendarService):
    """Base class for calendar providers reached with a stored OAuth credential"""

    def __init__(self, db: Session, integration: TenantIntegration, client: Any):
        self.db = db
        self.integration = integration
        self.client = client
        # Remote account identity, resolved lazily and dropped on token refresh
        self._identity: Optional[str] = None

    @property
    def provider_name(self) -> str:
        return self.provider.value

    def _access_token(self) -> str:
        # An unreadable token is sent empty; the provider's 401 then drives a refresh
        try:
            return decrypt_token(self.integration.access_token) or ""
        except ValueError:
            return ""

    @abstractmethod
    async def _fetch_identity(self, access_token: str) -> str:
        """Remote account or calendar that requests are made against"""

    async def _get_identity(self) -> str:
        if self._identity is None:
            self._identity = await self._call(self._fetch_identity, "identity lookup")
        return self._identity

    async def _call(self, operation: Callable[[str], Awaitable[T]], description: str) -> T:
        """
        Run a provider request with the current access token.

        Raises:
            AuthExpiredError: Refresh failed, or the provider still answers 401 after a refresh
            ProviderError: Any other HTTP or transport failure
        """
        for attempt in range(MAX_AUTH_RETRIES + 1):
            try:
                return await operation(self._access_token())
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code != 401:
                    logger.error(f"❌ {self.provider_name} {description} failed: {status_code} {e.response.text}")
                    raise ProviderError(
                        self.provider_name, f"{description} failed with {status_code}", status_code=status_code
                    ) from e
                if attempt == MAX_AUTH_RETRIES:
                    logger.error(f"❌ {self.provider_name} still unauthorized after token refresh ({description})")
                    raise AuthExpiredError(self.provider_name, self.integration.id) from e

                logger.info(f"🔄 {self.provider_name} returned 401 on {description}, refreshing token")
                await self._refresh_token()
            except httpx.RequestError as e:
                logger.error(f"❌ {self.provider_name} {description} transport error: {e}")
                raise ProviderError(self.provider_name, f"{description} failed: {e}") from e

        # Every iteration returns or raises
        raise AuthExpiredError(self.provider_name, self.integration.id)

    async def _refresh_token(self) -> None:
        """Refresh the access token once; mark the integration expired if that fails"""
        try:
            refresh_token = decrypt_token(self.integration.refresh_token)
        except ValueError:
            refresh_token = None

        if not refresh_token:
            logger.error(f"❌ No usable refresh token for {self.provider_name} integration {self.integration.id}")
            self._mark_expired()
            raise AuthExpiredError(self.provider_name, self.integration.id)

        try:
            tokens = await self.client.refresh_access_token(refresh_token)
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"❌ {self.provider_name} token refresh failed: {e}")
            self._mark_expired()
            raise AuthExpiredError(self.provider_name, self.integration.id) from e

        new_access_token = tokens.get("access_token")
        if not new_access_token:
            logger.error(f"❌ No access token in {self.provider_name} refresh response")
            self._mark_expired()
            raise AuthExpiredError(self.provider_name, self.integration.id)

        expires_in = tokens.get("expires_in")
        expires_at = (
            datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=int(expires_in))
            if expires_in
            else None
        )

        try:
            IntegrationRepository.save_refreshed_tokens(
                self.db,
                self.integration,
                encrypt_token(new_access_token),
                encrypt_token(tokens.get("refresh_token")),
                expires_at,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store refreshed {self.provider_name} token: {e}")
            raise StorageError(f"Failed to store refreshed token: {e}") from e

        self._identity = None
        logger.info(f"✅ {self.provider_name} token refreshed for tenant {self.integration.tenant_id}")

    def _mark_expired(self) -> None:
        try:
            IntegrationRepository.mark_expired(self.db, self.integration)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to mark {self.provider_name} integration expired: {e}")
            raise StorageError(f"Failed to mark integration expired: {e}") from e
        logger.warning(f"⚠️ {self.provider_name} integration {self.integration.id} marked expired")

    def _tenant_timezone(self) -> Optional[str]:
        tenant = load(self.db, "tenant timezone", TenantRepository.get_tenant, self.integration.tenant_id)
        return tenant.timezone if tenant else None

    def _generic_slots(self, date_range: DateRange, busy_periods: list[BusyPeriod]) -> list[TimeSlot]:
        """Providers expose no opening hours; use the weekday 09:00-17:00 template"""
        return generate_slots(
            date_range,
            busy_periods,
            weekly_hours=default_weekly_hours(),
            tz=self._tenant_timezone(),
        )
