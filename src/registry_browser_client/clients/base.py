"""Backend-independent client interface and shared plumbing."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping
from typing import TypeVar
from urllib.parse import quote

import aiohttp
from yarl import URL

from ..core.session import create_session, decode_json, ensure_ok, resolve_url
from ..core.types import DEFAULT_TIMEOUT, RequestLogger, RequestResult
from ..exceptions import RegistryTimeoutError, UnsupportedOperationError, ValidationError
from ..history import MANIFEST_ACCEPT, ConfigV2, ManifestV2, list_tag_history_from_manifest
from ..models import HistoryEntry, Image, Project, Tag

logger = logging.getLogger(__name__)

T = TypeVar("T")


def quote_path(value: str) -> str:
    """Percent-encode a repository path, keeping its ``/`` separators."""
    return quote(value, safe="/")


def quote_segment(value: str) -> str:
    """Percent-encode a single path segment (``/`` becomes ``%2F``)."""
    return quote(value, safe="")


class RegistryClient(ABC):
    """Async client for one registry, owning its HTTP session.

    Use as an async context manager, or call :meth:`close` when done.
    """

    provider_name = "registry"
    default_timeout: float = DEFAULT_TIMEOUT

    def __init__(
        self,
        base_url: URL | str,
        *,
        timeout: float | None = None,
        request_logger: RequestLogger | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Registry URL (e.g., https://registry.example.com)
            timeout: Per-call deadline in seconds
            request_logger: Optional callback invoked once per request attempt
            session: aiohttp session to reuse (not closed by this client)
        """
        url = URL(str(base_url))
        self.base_url = url.with_path(url.raw_path.rstrip("/") or "/", encoded=True)
        self.timeout = timeout if timeout is not None else self.default_timeout
        self.request_logger = request_logger
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session if this client created it."""
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        if self._owns_session:
            self.session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = await create_session(self.timeout)
            self._owns_session = True
        return self.session

    async def _call(self, coro: Awaitable[T]) -> T:
        """Run one exported operation under the client's deadline."""
        try:
            return await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError as e:
            raise RegistryTimeoutError(
                f"{self.provider_name} call exceeded {self.timeout:g}s"
            ) from e

    def _resolve(self, path: str, query: Mapping[str, str] | None = None) -> URL:
        return resolve_url(self.base_url, path, query)

    @abstractmethod
    async def list_images(self) -> list[Image]:
        """List repositories available in the registry."""

    @abstractmethod
    async def list_tags(self, image: str) -> list[Tag]:
        """List tags of a repository."""

    async def list_tag_history(self, image: str, tag: str) -> list[HistoryEntry]:
        """Build the layer history of ``image:tag``, most recent step first.

        Raises:
            ValidationError: If image or tag is empty
            ManifestError: If no config digest can be resolved
        """
        image = image.strip().strip("/")
        tag = tag.strip()
        if not image:
            raise ValidationError(f"{self.provider_name} image is required")
        if not tag:
            raise ValidationError(f"{self.provider_name} tag is required")
        return await self._call(
            list_tag_history_from_manifest(
                self.provider_name, image, tag, self._get_manifest, self._get_config
            )
        )

    async def delete_tag(self, image: str, tag: str) -> None:
        raise UnsupportedOperationError(
            f"{self.provider_name} does not support deleting tags"
        )

    async def rename_tag(self, image: str, from_tag: str, to_tag: str) -> None:
        raise UnsupportedOperationError(
            f"{self.provider_name} does not support renaming tags"
        )

    def _registry_url(self, path: str) -> URL:
        """URL of a Registry V2 API path (overridden when it lives elsewhere)."""
        return self._resolve(path)

    @abstractmethod
    async def _send_registry(
        self, method: str, url: URL, image: str, headers: Mapping[str, str]
    ) -> RequestResult:
        """Send an authenticated request to the Registry V2 API."""

    async def _get_manifest(self, image: str, reference: str) -> ManifestV2:
        url = self._registry_url(f"/v2/{quote_path(image)}/manifests/{quote(reference, safe=':')}")
        result = await self._send_registry("GET", url, image, {"Accept": MANIFEST_ACCEPT})
        ensure_ok(result, f"{self.provider_name} manifest")
        return ManifestV2.from_dict(decode_json(result, "manifest"))

    async def _get_config(self, image: str, digest: str) -> ConfigV2:
        url = self._registry_url(f"/v2/{quote_path(image)}/blobs/{quote(digest, safe=':')}")
        result = await self._send_registry("GET", url, image, {})
        ensure_ok(result, f"{self.provider_name} config")
        return ConfigV2.from_dict(decode_json(result, "config"))


class ProjectClient(ABC):
    """Registries that group repositories into projects."""

    @abstractmethod
    async def list_projects(self) -> list[Project]:
        """List projects visible to the caller."""

    @abstractmethod
    async def list_project_images(self, project: str) -> list[Image]:
        """List repositories of one project."""
