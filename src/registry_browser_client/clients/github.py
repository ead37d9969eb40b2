"""GitHub Container Registry (ghcr.io) client."""

import logging
import re
from collections.abc import Mapping
from typing import Any

import aiohttp
from yarl import URL

from ..core.bearer import (
    BearerChallenge,
    Clock,
    TokenGrant,
    TokenStore,
    execute_with_auth,
    fetch_bearer_token,
)
from ..core.session import decode_json, ensure_ok, resolve_next_url
from ..core.types import EXTENDED_TIMEOUT, RequestLogger, RequestResult
from ..exceptions import MalformedResponseError, RegistryStatusError, ValidationError
from ..models import Image, Tag, TagsPage
from .base import RegistryClient, quote_path

logger = logging.getLogger(__name__)

GITHUB_CONTAINER_BASE_URL = "https://ghcr.io"
GITHUB_PAGE_SIZE = 100

_GHCR_PREFIXES = ("ghcr.io/", "https://ghcr.io/", "http://ghcr.io/")
_NEXT_REL = re.compile(r'rel\s*=\s*"?next"?', re.IGNORECASE)


def normalize_github_input(value: str) -> str:
    """Reduce a pasted reference to ``owner/image[/...]``.

    Raises:
        ValidationError: If no owner/image pair remains
    """
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError("github search requires an image name (owner/image)")
    for prefix in _GHCR_PREFIXES:
        if trimmed.startswith(prefix):
            trimmed = trimmed[len(prefix):]
            break
    if trimmed.startswith(("https://", "http://")):
        try:
            trimmed = URL(trimmed).path.lstrip("/")
        except ValueError:
            pass
    trimmed = trimmed.split("@", 1)[0]
    colon = trimmed.rfind(":")
    if colon != -1 and colon > trimmed.rfind("/"):
        trimmed = trimmed[:colon]

    trimmed = trimmed.strip("/")
    if not trimmed:
        raise ValidationError("github search requires an image name (owner/image)")
    parts = trimmed.split("/")
    if len(parts) < 2:
        raise ValidationError(f"invalid GitHub container image {trimmed!r} (expected owner/image)")
    if any(not part.strip() for part in parts):
        raise ValidationError(f"invalid GitHub container image {trimmed!r}")
    return trimmed


def parse_link_next(value: str | None, base_url: URL | None = None) -> str:
    """Return the ``rel="next"`` target of an RFC 5988 ``Link`` header.

    Relative targets are resolved against ``base_url``; "" when absent.
    """
    for segment in (value or "").split(","):
        segment = segment.strip()
        if not segment or not _NEXT_REL.search(segment):
            continue
        start = segment.find("<")
        end = segment.find(">")
        if start == -1 or end <= start + 1:
            continue
        return resolve_next_url(base_url, segment[start + 1:end])
    return ""


class GitHubContainerClient(RegistryClient):
    """Client for ghcr.io, answering bearer challenges with anonymous tokens."""

    provider_name = "github"
    default_timeout = EXTENDED_TIMEOUT

    def __init__(
        self,
        base_url: URL | str = GITHUB_CONTAINER_BASE_URL,
        *,
        timeout: float | None = None,
        request_logger: RequestLogger | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(
            base_url, timeout=timeout, request_logger=request_logger, session=session
        )
        self.tokens = TokenStore(clock)

    async def _get_json(self, url: URL | str, image: str, what: str) -> tuple[Any, RequestResult]:
        result = await self._send_registry(
            "GET", URL(str(url)), image, {"Accept": "application/json"}
        )
        if result.status_code == 404 and image:
            raise RegistryStatusError(
                f"no GitHub Container Registry repository found for {image!r}",
                status=404,
                reason=result.reason,
            )
        ensure_ok(result, "github container registry")
        payload = decode_json(result, what) or {}
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"github {what} response is not a JSON object")
        return payload, result

    async def _fetch_tags_page(self, image: str, url: URL | str) -> TagsPage:
        payload, result = await self._get_json(url, image, "tags")
        return TagsPage(
            image=str(payload.get("name") or "").strip() or image,
            tags=[Tag(name=str(name)) for name in payload.get("tags") or []],
            next=parse_link_next(result.headers.get("Link"), self.base_url),
        )

    def _tags_url(self, image: str) -> URL:
        return self._resolve(f"/v2/{quote_path(image)}/tags/list", {"n": str(GITHUB_PAGE_SIZE)})

    async def search_tags_page(self, query: str) -> TagsPage:
        """Return the first tags page of ``owner/image``."""
        image = normalize_github_input(query)
        return await self._call(self._fetch_tags_page(image, self._tags_url(image)))

    async def next_tags_page(self, image: str, next_url: str) -> TagsPage:
        """Follow the ``Link`` cursor of a previous page.

        Raises:
            ValidationError: If image or cursor is empty
        """
        image = image.strip().strip("/")
        next_url = next_url.strip()
        if not image:
            raise ValidationError("github container image is required")
        if not next_url:
            raise ValidationError("github container next page URL is required")
        return await self._call(
            self._fetch_tags_page(image, resolve_next_url(self.base_url, next_url))
        )

    async def list_tags(self, image: str) -> list[Tag]:
        """List every tag of ``owner/image``, following ``Link`` pages."""
        image = normalize_github_input(image)
        return await self._call(self._list_tags(image))

    async def _list_tags(self, image: str) -> list[Tag]:
        page = await self._fetch_tags_page(image, self._tags_url(image))
        tags = list(page.tags)
        while page.next:
            page = await self._fetch_tags_page(image, page.next)
            tags.extend(page.tags)
        return tags

    async def list_images(self) -> list[Image]:
        """List repositories from the registry catalog, sorted by name."""
        return await self._call(self._list_images())

    async def _list_images(self) -> list[Image]:
        url = str(self._resolve("/v2/_catalog", {"n": str(GITHUB_PAGE_SIZE)}))
        names: list[str] = []
        while url:
            payload, result = await self._get_json(url, "", "catalog")
            names.extend(str(repo) for repo in payload.get("repositories") or [])
            url = parse_link_next(result.headers.get("Link"), self.base_url)
        return [Image(name=name, repository=name) for name in sorted(names)]

    async def _send_registry(
        self, method: str, url: URL, image: str, headers: Mapping[str, str]
    ) -> RequestResult:
        session = await self._get_session()
        return await execute_with_auth(
            session,
            method,
            url,
            image=image,
            token_store=self.tokens,
            fetch_token=self._fetch_token,
            headers=headers,
            default_service=self.base_url.host or "",
            request_logger=self.request_logger,
        )

    async def _fetch_token(self, challenge: BearerChallenge) -> TokenGrant:
        session = await self._get_session()
        return await fetch_bearer_token(
            session, challenge, request_logger=self.request_logger, now=self.tokens.now()
        )
