"""Bearer-token challenge/response shared by the token-authenticated backends.

A client sends its request with the cached token (if still valid). On a 401
it parses the ``WWW-Authenticate`` challenge, exchanges it for a token and
retries the original request exactly once.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import aiohttp
from yarl import URL

from ..exceptions import AuthenticationError, MalformedResponseError
from .session import decode_json, send_request
from .types import RequestLogger, RequestResult

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = timedelta(seconds=300)
EXPIRY_BUFFER = timedelta(seconds=30)
CATALOG_SCOPE = "registry:catalog:*"

_PARAM_PATTERN = re.compile(r'([A-Za-z_][A-Za-z0-9_-]*)\s*=\s*(?:"([^"]*)"|([^,\s]*))')

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BearerChallenge:
    """Parsed ``WWW-Authenticate: Bearer`` challenge."""

    realm: str
    service: str = ""
    scope: str = ""


@dataclass
class TokenGrant:
    """Token returned by a token endpoint."""

    token: str
    expires_at: datetime
    refresh_token: str = ""


TokenFetcher = Callable[[BearerChallenge], Awaitable[TokenGrant]]


def parse_bearer_challenge(value: str | None) -> BearerChallenge:
    """Parse ``Bearer realm="R"[,service="S"][,scope="Sc"]``.

    Raises:
        AuthenticationError: If the scheme is not Bearer or realm is missing
    """
    scheme, _, params = (value or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not params.strip():
        raise AuthenticationError(f"registry requires bearer auth (got {value!r})")

    values: dict[str, str] = {}
    for match in _PARAM_PATTERN.finditer(params):
        key = match.group(1).lower()
        quoted, bare = match.group(2), match.group(3)
        values[key] = (quoted if quoted is not None else bare or "").strip()

    realm = values.get("realm", "")
    if not realm:
        raise AuthenticationError("bearer challenge is missing a realm")
    return BearerChallenge(
        realm=realm,
        service=values.get("service", ""),
        scope=values.get("scope", ""),
    )


def default_scope(image: str) -> str:
    image = image.strip().strip("/")
    if not image:
        return CATALOG_SCOPE
    return f"repository:{image}:pull"


def decode_token_response(payload: Any, now: datetime | None = None) -> TokenGrant:
    """Extract the token, refresh token and expiry from a token response.

    The first non-empty of ``id_token``, ``access_token`` and ``token`` wins;
    ``expires_in`` defaults to 300 seconds.

    Raises:
        AuthenticationError: If no usable token is present
    """
    now = now or utcnow()
    if not isinstance(payload, dict):
        raise MalformedResponseError("token response is not a JSON object")

    token = ""
    for key in ("id_token", "access_token", "token"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            token = value
            break
    if not token:
        raise AuthenticationError("token response missing token")

    try:
        expires_in = int(payload.get("expires_in") or 0)
    except (TypeError, ValueError):
        expires_in = 0
    lifetime = timedelta(seconds=expires_in) if expires_in > 0 else DEFAULT_TOKEN_LIFETIME

    refresh_token = payload.get("refresh_token") or ""
    return TokenGrant(
        token=token,
        expires_at=now + lifetime,
        refresh_token=refresh_token if isinstance(refresh_token, str) else "",
    )


class TokenStore:
    """Lock-guarded in-memory bearer token owned by one client instance."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow
        self._lock = asyncio.Lock()
        self._token = ""
        self._expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once ``now`` is within the 30 second buffer of the expiry."""
        if not self._token or self._expires_at is None:
            return True
        now = now or self._clock()
        return now >= self._expires_at - EXPIRY_BUFFER

    async def get(self) -> str | None:
        """Return the cached token, or None when absent or about to expire."""
        async with self._lock:
            if self.is_expired():
                self._token = ""
                self._expires_at = None
                return None
            return self._token

    async def set(self, grant: TokenGrant) -> None:
        async with self._lock:
            self._token = grant.token
            self._expires_at = grant.expires_at

    async def clear(self) -> None:
        async with self._lock:
            self._token = ""
            self._expires_at = None

    def now(self) -> datetime:
        return self._clock()


async def request_token(
    session: aiohttp.ClientSession,
    method: str,
    url: URL | str,
    *,
    data: Mapping[str, str] | None = None,
    request_logger: RequestLogger | None = None,
    now: datetime | None = None,
    what: str = "token",
) -> TokenGrant:
    """Call a token endpoint and decode its response.

    Raises:
        AuthenticationError: On a non-2xx status or a response without token
    """
    headers = {"Accept": "application/json"}
    if data is not None:
        headers["Content-Type"] = "application/x-www-form-urlencoded"
    result = await send_request(
        session,
        method,
        url,
        headers=headers,
        data=dict(data) if data is not None else None,
        request_logger=request_logger,
    )
    if not result.ok:
        raise AuthenticationError(
            f"{what} request failed: {result.status_code} {result.reason}".strip()
        )
    grant = decode_token_response(decode_json(result, what), now)
    logger.debug("obtained %s valid until %s", what, grant.expires_at.isoformat())
    return grant


async def fetch_bearer_token(
    session: aiohttp.ClientSession,
    challenge: BearerChallenge,
    *,
    request_logger: RequestLogger | None = None,
    now: datetime | None = None,
) -> TokenGrant:
    """Exchange a bearer challenge for an (anonymous) token via GET."""
    try:
        token_url = URL(challenge.realm)
    except ValueError as e:
        raise AuthenticationError(f"invalid token realm: {e}") from e
    query = dict(token_url.query)
    if challenge.service:
        query["service"] = challenge.service
    if challenge.scope:
        query["scope"] = challenge.scope
    return await request_token(
        session,
        "GET",
        token_url.with_query(query),
        request_logger=request_logger,
        now=now,
    )


async def execute_with_auth(
    session: aiohttp.ClientSession,
    method: str,
    url: URL,
    *,
    image: str,
    token_store: TokenStore,
    fetch_token: TokenFetcher,
    headers: Mapping[str, str] | None = None,
    default_service: str = "",
    request_logger: RequestLogger | None = None,
) -> RequestResult:
    """Send a request with bearer auth, retrying once after a 401.

    Args:
        session: Client session to use
        method: HTTP method
        url: Target URL
        image: Repository the request targets ("" for catalog requests)
        token_store: Token cache of the calling client
        fetch_token: Strategy exchanging a challenge for a token
        headers: Extra request headers
        default_service: Service used when the challenge names none
        request_logger: Optional per-attempt logger

    Returns:
        The response of the first attempt, or of the single retry

    Raises:
        AuthenticationError: If the challenge is unusable or no token is issued
    """
    request_headers = dict(headers or {})
    token = await token_store.get()
    if token:
        request_headers["Authorization"] = f"Bearer {token}"

    result = await send_request(
        session, method, url, headers=request_headers, request_logger=request_logger
    )
    if result.status_code != 401:
        return result

    challenge = parse_bearer_challenge(result.headers.get("WWW-Authenticate"))
    if not challenge.service:
        challenge.service = default_service or (url.host or "")
    if not challenge.scope:
        challenge.scope = default_scope(image)

    logger.debug(
        "refreshing bearer token for %s (service=%s scope=%s)",
        url.host,
        challenge.service,
        challenge.scope,
    )
    grant = await fetch_token(challenge)
    await token_store.set(grant)

    request_headers["Authorization"] = f"Bearer {grant.token}"
    return await send_request(
        session, method, url, headers=request_headers, request_logger=request_logger
    )
