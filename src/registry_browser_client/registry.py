"""Async functional registry operations.

Each function opens a client for one call and closes it afterwards. Keep a
client from :func:`new_client` instead when issuing several calls.
"""

from .clients.base import ProjectClient, RegistryClient
from .core.auth import Auth
from .core.auth_cache import AuthCache
from .core.types import DEFAULT_TIMEOUT, RegistryConfig, RequestLogger
from .exceptions import UnsupportedOperationError
from .factory import new_client
from .models import HistoryEntry, Image, Project, Tag


async def _open(
    config: RegistryConfig,
    auth: Auth | None,
    request_logger: RequestLogger | None,
    auth_cache: AuthCache | None,
) -> RegistryClient:
    client = await new_client(
        config.base_url, auth, request_logger=request_logger, auth_cache=auth_cache
    )
    client.timeout = config.timeout
    return client


async def list_images(
    registry_url: str,
    auth: Auth | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    request_logger: RequestLogger | None = None,
    auth_cache: AuthCache | None = None,
) -> list[Image]:
    """List the repositories of a registry.

    Args:
        registry_url: Registry URL (e.g., "https://registry.example.com")
        auth: Credentials; anonymous when omitted
        timeout: Per-call deadline in seconds
        request_logger: Optional callback invoked once per request attempt
        auth_cache: Cache of remembered usernames and refresh tokens

    Returns:
        list[Image]: Repositories sorted by name

    Raises:
        RegistryError: If the request fails

    Examples:
        images = await list_images("https://registry.example.com")
        print([image.name for image in images])
    """
    config = RegistryConfig(url=registry_url, timeout=timeout)
    async with await _open(config, auth, request_logger, auth_cache) as client:
        return await client.list_images()


async def list_tags(
    registry_url: str,
    image: str,
    auth: Auth | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    request_logger: RequestLogger | None = None,
    auth_cache: AuthCache | None = None,
) -> list[Tag]:
    """List the tags of one repository.

    Examples:
        tags = await list_tags("https://registry.example.com", "team/app")
    """
    config = RegistryConfig(url=registry_url, timeout=timeout)
    async with await _open(config, auth, request_logger, auth_cache) as client:
        return await client.list_tags(image)


async def list_tag_history(
    registry_url: str,
    image: str,
    tag: str,
    auth: Auth | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    request_logger: RequestLogger | None = None,
    auth_cache: AuthCache | None = None,
) -> list[HistoryEntry]:
    """Build the layer history of ``image:tag``, most recent step first.

    Multi-platform tags are resolved to the linux/amd64 manifest when
    available.

    Raises:
        ValidationError: If image or tag is empty
        ManifestError: If the manifest has no config digest
    """
    config = RegistryConfig(url=registry_url, timeout=timeout)
    async with await _open(config, auth, request_logger, auth_cache) as client:
        return await client.list_tag_history(image, tag)


async def list_projects(
    registry_url: str,
    auth: Auth | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    request_logger: RequestLogger | None = None,
    auth_cache: AuthCache | None = None,
) -> list[Project]:
    """List Harbor projects.

    Raises:
        UnsupportedOperationError: If the registry has no project concept
    """
    config = RegistryConfig(url=registry_url, timeout=timeout)
    async with await _open(config, auth, request_logger, auth_cache) as client:
        if not isinstance(client, ProjectClient):
            raise UnsupportedOperationError(
                f"{client.provider_name} does not support projects"
            )
        return await client.list_projects()
