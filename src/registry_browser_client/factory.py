"""Client construction from a registry host and credentials."""

import copy
import logging

from yarl import URL

from .clients.base import RegistryClient
from .core.auth import KIND_NONE, KIND_REGISTRY_V2, Auth
from .core.auth_cache import AuthCache
from .core.types import RequestLogger
from .exceptions import ValidationError
from .providers import provider_for_auth

logger = logging.getLogger(__name__)


def parse_registry_host(host: str) -> URL:
    """Parse a registry host into a base URL.

    The scheme defaults to ``https`` and a trailing slash is dropped.

    Raises:
        ValidationError: If the host is empty or has no host name
    """
    trimmed = (host or "").strip()
    if not trimmed:
        raise ValidationError("registry host is required")
    if "://" not in trimmed:
        trimmed = f"https://{trimmed}"
    try:
        parsed = URL(trimmed)
    except ValueError as e:
        raise ValidationError(f"invalid registry host: {e}") from e
    if not parsed.host:
        raise ValidationError("registry host must include a host name")
    return parsed.with_path(parsed.raw_path.rstrip("/"), encoded=True)


async def new_client(
    host: str,
    auth: Auth | None = None,
    request_logger: RequestLogger | None = None,
    auth_cache: AuthCache | None = None,
) -> RegistryClient:
    """Build the client matching ``host`` and ``auth``.

    The caller's ``auth`` is copied, never modified.

    Args:
        host: Registry host or URL (e.g., "registry.example.com:5000")
        auth: Credentials; anonymous Registry V2 access when omitted
        request_logger: Optional callback invoked once per request attempt
        auth_cache: Cache used to fill remembered usernames and refresh tokens

    Returns:
        RegistryV2Client or HarborClient

    Raises:
        ValidationError: If the host or the credentials are invalid
        UnsupportedOperationError: If the auth kind is unknown

    Examples:
        client = await new_client("registry.example.com")
        async with client:
            images = await client.list_images()
    """
    base_url = parse_registry_host(host)
    auth = copy.deepcopy(auth) if auth is not None else Auth()
    auth.normalize()

    provider = provider_for_auth(auth)
    if auth.kind == KIND_NONE:
        auth.kind = provider.kind
        if auth.kind == KIND_REGISTRY_V2:
            auth.registry_v2.anonymous = True

    if auth_cache is not None:
        await auth_cache.apply(auth, base_url.host or "")
    provider.prepare_auth(base_url, auth)
    auth.validate()

    logger.debug("creating %s client for %s", provider.kind, base_url)
    return provider.new_client(
        base_url, auth, request_logger=request_logger, auth_cache=auth_cache
    )
