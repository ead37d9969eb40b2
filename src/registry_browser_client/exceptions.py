"""Custom exceptions for the registry browser client."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RateLimit


class RegistryError(Exception):
    """Base exception for all registry-related errors."""

    pass


class ValidationError(RegistryError):
    """Raised when caller input (host, auth, image name) is invalid."""

    pass


class UnsupportedOperationError(RegistryError):
    """Raised when a backend does not support the requested operation."""

    pass


class RegistryConnectionError(RegistryError):
    """Raised when unable to connect to the registry."""

    pass


class RegistryTimeoutError(RegistryConnectionError):
    """Raised when a call exceeds its deadline."""

    pass


class RegistryStatusError(RegistryError):
    """Raised when the registry answers with an unexpected HTTP status."""

    def __init__(self, message: str, status: int = 0, reason: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason


class RateLimitError(RegistryStatusError):
    """Raised when Docker Hub rejects a request with HTTP 429."""

    def __init__(
        self,
        message: str,
        retry_after: timedelta | None = None,
        rate_limit: RateLimit | None = None,
    ) -> None:
        super().__init__(message, status=429, reason="Too Many Requests")
        self.retry_after = retry_after
        self.rate_limit = rate_limit


class MalformedResponseError(RegistryError):
    """Raised when a response body cannot be decoded."""

    pass


class AuthenticationError(RegistryError):
    """Raised when a token cannot be obtained or a challenge is unusable."""

    pass


class ManifestError(RegistryError):
    """Raised when manifest operations fail."""

    pass
