"""HTTP session and request helpers shared by every backend."""

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp
from yarl import URL

from ..exceptions import (
    MalformedResponseError,
    RegistryConnectionError,
    RegistryStatusError,
    RegistryTimeoutError,
)
from .types import DEFAULT_TIMEOUT, RequestLog, RequestLogger, RequestResult

logger = logging.getLogger(__name__)

USER_AGENT = "registry-browser-client/0.1.0"


async def create_session(timeout: float = DEFAULT_TIMEOUT) -> aiohttp.ClientSession:
    """Create an aiohttp session with the client defaults.

    Args:
        timeout: Total timeout for a single HTTP request in seconds

    Returns:
        Configured client session
    """
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers={"User-Agent": USER_AGENT},
    )


def decode_json(result: RequestResult, what: str) -> Any:
    """Decode the body of a successful response.

    Raises:
        MalformedResponseError: If the body is not valid JSON
    """
    try:
        return json.loads(result.data.decode("utf-8") or "null")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedResponseError(f"invalid {what} response: {e}") from e


def ensure_ok(result: RequestResult, what: str) -> None:
    """Raise RegistryStatusError for any non-2xx response."""
    if result.ok:
        return
    status_text = f"{result.status_code} {result.reason}".strip()
    raise RegistryStatusError(
        f"{what} request failed: {status_text}",
        status=result.status_code,
        reason=result.reason,
    )


def resolve_url(base: URL, path: str, query: Mapping[str, str] | None = None) -> URL:
    """Append an already-encoded path (and optional query) to a base URL."""
    resolved = base.with_path(base.raw_path.rstrip("/") + path, encoded=True)
    if query:
        resolved = resolved.with_query(dict(query))
    return resolved


def resolve_next_url(base: URL | None, next_url: str) -> str:
    """Resolve a pagination cursor against the base URL when it is relative.

    A relative cursor's path is appended to the base path, so registries
    served under a path prefix keep it.
    """
    next_url = next_url.strip()
    if not next_url:
        return ""
    try:
        parsed = URL(next_url)
    except ValueError:
        return next_url
    if parsed.is_absolute() or base is None:
        return next_url
    path = base.raw_path.rstrip("/") + "/" + parsed.raw_path.lstrip("/")
    resolved = str(base.with_path(path, encoded=True))
    if parsed.raw_query_string:
        resolved += "?" + parsed.raw_query_string
    return resolved


def clone_headers(headers: Mapping[str, str] | None) -> dict[str, list[str]] | None:
    """Snapshot request headers as ``name -> [values]``."""
    if not headers:
        return None
    snapshot: dict[str, list[str]] = {}
    for key, value in headers.items():
        snapshot.setdefault(key, []).append(value)
    return snapshot


def log_request(
    request_logger: RequestLogger | None,
    method: str,
    url: URL | str,
    headers: Mapping[str, str] | None,
    status: int,
) -> None:
    """Forward one request attempt to the optional request logger."""
    logger.debug("%s %s -> %s", method, url, status)
    if request_logger is None:
        return
    entry = RequestLog(
        method=method,
        url=str(url),
        headers=clone_headers(headers),
        status=status,
    )
    try:
        request_logger(entry)
    except Exception:
        logger.debug("request logger raised", exc_info=True)


async def send_request(
    session: aiohttp.ClientSession,
    method: str,
    url: URL | str,
    *,
    headers: Mapping[str, str] | None = None,
    data: Any = None,
    authorization: str | None = None,
    request_logger: RequestLogger | None = None,
) -> RequestResult:
    """Send a request and read the full response body.

    Args:
        session: Client session to use
        method: HTTP method
        url: Target URL
        headers: Request headers
        data: Optional body (a dict is form-encoded)
        authorization: Optional Authorization header value
        request_logger: Optional per-attempt logger

    Returns:
        RequestResult with status, headers and body

    Raises:
        RegistryConnectionError: On transport failures
        RegistryTimeoutError: When the session timeout expires
    """
    request_headers = dict(headers or {})
    if authorization is not None:
        request_headers["Authorization"] = authorization
    try:
        async with session.request(
            method, url, headers=request_headers, data=data
        ) as resp:
            body = await resp.read()
            result = RequestResult(
                status_code=resp.status,
                headers=resp.headers,
                data=body,
                reason=resp.reason or "",
                url=str(resp.url),
            )
    except asyncio.TimeoutError as e:
        log_request(request_logger, method, url, request_headers, 0)
        raise RegistryTimeoutError(f"{method} {url} timed out") from e
    except aiohttp.ClientError as e:
        log_request(request_logger, method, url, request_headers, 0)
        raise RegistryConnectionError(f"{method} {url} failed: {e}") from e

    log_request(request_logger, method, url, request_headers, result.status_code)
    return result
