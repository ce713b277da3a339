"""Scheduling error taxonomy

Every scheduling operation either returns its result or raises one of these.
Retry and backoff policy belongs to the caller; the only retry performed
inside the engine is the single refresh-and-retry on an expired OAuth token.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling failures"""


class ValidationError(SchedulingError):
    """Booking date/time (or other input) cannot be resolved"""


class InvalidTransitionError(ValidationError):
    """Pending booking is no longer pending"""

    def __init__(self, booking_id: str, status: str):
        self.booking_id = booking_id
        self.status = status
        super().__init__(f"Pending booking {booking_id} is already {status}")


class SlotUnavailableError(SchedulingError):
    """Requested window overlaps an active booking"""


class UnsupportedOperationError(SchedulingError):
    """Adapter structurally cannot perform the action. Never retry; fall back instead."""

    def __init__(self, provider: str, operation: str):
        self.provider = provider
        self.operation = operation
        super().__init__(f"{operation} is not supported by the {provider} calendar")


class AuthExpiredError(SchedulingError):
    """Token refresh failed; the integration needs to be reconnected"""

    def __init__(self, provider: str, integration_id: Optional[str] = None):
        self.provider = provider
        self.integration_id = integration_id
        super().__init__(f"{provider} authorization expired. Please reconnect the integration.")


class ProviderError(SchedulingError):
    """Remote calendar provider failed for a reason other than authorization"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} API error: {message}")


class StorageError(SchedulingError):
    """Local persistence failed"""


class NotFoundError(SchedulingError):
    """Referenced record does not exist in the tenant's scope"""
