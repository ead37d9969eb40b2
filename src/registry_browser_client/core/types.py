"""Core configuration and request types."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

DEFAULT_TIMEOUT = 10
EXTENDED_TIMEOUT = 15


@dataclass
class RegistryConfig:
    """Connection settings for a single registry."""

    url: str
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


@dataclass
class RequestResult:
    """Status, headers and raw body of a completed request."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: bytes = b""
    reason: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class RequestLog:
    """Diagnostic record of one outbound request attempt."""

    method: str
    url: str
    headers: dict[str, list[str]] | None
    status: int


RequestLogger = Callable[[RequestLog], None]
