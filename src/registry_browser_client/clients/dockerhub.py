"""Docker Hub client.

Repository and tag metadata come from the public Hub API
(``hub.docker.com``) without credentials; image history is read from the
registry data path (``registry-1.docker.io``) with anonymous bearer tokens.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
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
from ..core.session import decode_json, ensure_ok, resolve_next_url, resolve_url, send_request
from ..core.types import EXTENDED_TIMEOUT, RequestLogger, RequestResult
from ..exceptions import MalformedResponseError, RateLimitError, ValidationError
from ..history import parse_docker_time
from ..models import UNKNOWN, HistoryEntry, Image, RateLimit, Tag, TagsPage
from .base import RegistryClient, quote_path, quote_segment

logger = logging.getLogger(__name__)

DOCKER_HUB_BASE_URL = "https://hub.docker.com"
DOCKER_HUB_REGISTRY_URL = "https://registry-1.docker.io"
DOCKER_HUB_SERVICE = "registry.docker.io"

SEARCH_PAGE_SIZE = 25
TAGS_PAGE_SIZE = 100

_HOST_PREFIXES = ("docker.io/", "index.docker.io/", "registry-1.docker.io/")


def normalize_dockerhub_input(value: str) -> str:
    """Reduce a pasted image reference to ``[namespace/]name``.

    Strips Docker Hub host prefixes, URL schemes, ``@digest`` and ``:tag``.
    """
    trimmed = value.strip()
    for prefix in _HOST_PREFIXES:
        if trimmed.startswith(prefix):
            trimmed = trimmed[len(prefix):]
    if trimmed.startswith(("https://", "http://")):
        try:
            trimmed = URL(trimmed).path.lstrip("/")
        except ValueError:
            pass
    trimmed = trimmed.split("@", 1)[0]
    colon = trimmed.rfind(":")
    if colon != -1 and colon > trimmed.rfind("/"):
        trimmed = trimmed[:colon]
    return trimmed.strip()


def split_repository(name: str) -> tuple[str, str]:
    """Split ``namespace/repo`` into its parts, or ``("", "")``."""
    parts = name.strip("/").split("/")
    if len(parts) < 2:
        return "", ""
    return parts[0], "/".join(parts[1:])


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimit:
    """Read the ``X-RateLimit-*`` headers; missing values stay unknown."""
    rate_limit = RateLimit()
    rate_limit.limit = _header_int(headers.get("X-RateLimit-Limit"))
    rate_limit.remaining = _header_int(headers.get("X-RateLimit-Remaining"))
    reset = _header_int(headers.get("X-RateLimit-Reset"))
    if reset > 0:
        rate_limit.reset_at = datetime.fromtimestamp(reset, tz=timezone.utc)
    return rate_limit


def parse_retry_after(value: str | None, now: datetime | None = None) -> timedelta | None:
    """Parse ``Retry-After`` given either as seconds or as an HTTP date."""
    value = (value or "").strip()
    if not value:
        return None
    if value.isdigit():
        return timedelta(seconds=int(value))
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    delay = when - (now or datetime.now(timezone.utc))
    return max(delay, timedelta(0))


def _header_int(value: str | None) -> int:
    # Rate limit headers look like "100;w=21600"
    value = (value or "").split(";", 1)[0].strip()
    try:
        return int(value)
    except ValueError:
        return UNKNOWN


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return UNKNOWN


def _search_result_name(result: dict[str, Any]) -> str:
    repo_name = str(result.get("repo_name") or "")
    namespace = str(result.get("namespace") or "")
    if repo_name:
        # Official images are listed without their "library/" namespace
        if "/" not in repo_name:
            return f"{namespace or 'library'}/{repo_name}"
        return repo_name
    name = str(result.get("name") or "")
    if namespace and name:
        return f"{namespace}/{name}"
    return ""


def _tag_from_result(entry: dict[str, Any]) -> Tag:
    last_updated = str(entry.get("last_updated") or "")
    return Tag(
        name=str(entry.get("name") or ""),
        digest=str(entry.get("digest") or ""),
        size_bytes=_as_int(entry.get("full_size")),
        updated_at=parse_docker_time(last_updated),
        pushed_at=parse_docker_time(str(entry.get("tag_last_pushed") or "") or last_updated),
        last_pulled_at=parse_docker_time(str(entry.get("tag_last_pulled") or "")),
    )


class DockerHubClient(RegistryClient):
    """Client for Docker Hub.

    ``list_images`` needs a ``namespace`` (user or organization) because Docker
    Hub has no global catalog. The latest rate-limit snapshot is kept in
    :attr:`rate_limit`.
    """

    provider_name = "docker hub"
    default_timeout = EXTENDED_TIMEOUT

    def __init__(
        self,
        base_url: URL | str = DOCKER_HUB_BASE_URL,
        *,
        registry_url: URL | str = DOCKER_HUB_REGISTRY_URL,
        namespace: str = "",
        timeout: float | None = None,
        request_logger: RequestLogger | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(
            base_url, timeout=timeout, request_logger=request_logger, session=session
        )
        registry = URL(str(registry_url))
        self.registry_url = registry.with_path(registry.raw_path.rstrip("/") or "/", encoded=True)
        self.namespace = namespace.strip().strip("/")
        self.rate_limit = RateLimit()
        self.tokens = TokenStore(clock)

    def _check_rate_limit(self, result: RequestResult) -> None:
        """Record the rate-limit headers and raise on HTTP 429.

        Raises:
            RateLimitError: If Docker Hub rejected the request as rate limited
        """
        rate_limit = parse_rate_limit(result.headers)
        if rate_limit.known:
            self.rate_limit = rate_limit
        if result.status_code != 429:
            return
        retry_after = parse_retry_after(result.headers.get("Retry-After"))
        message = "docker hub rate limit exceeded"
        if retry_after is not None:
            message += f", retry after {int(retry_after.total_seconds())}s"
        raise RateLimitError(message, retry_after=retry_after, rate_limit=rate_limit)

    async def _get_json(self, url: URL | str, what: str) -> Any:
        session = await self._get_session()
        result = await send_request(
            session,
            "GET",
            url,
            headers={"Accept": "application/json"},
            request_logger=self.request_logger,
        )
        self._check_rate_limit(result)
        ensure_ok(result, "docker hub")
        payload = decode_json(result, what)
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"docker hub {what} response is not a JSON object")
        return payload

    async def _search_repositories(self, query: str) -> list[dict[str, Any]]:
        url = self._resolve(
            "/v2/search/repositories/",
            {"query": query, "page_size": str(SEARCH_PAGE_SIZE)},
        )
        payload = await self._get_json(url, "search")
        return [r for r in payload.get("results") or [] if isinstance(r, dict)]

    async def resolve_repository(self, value: str) -> str:
        """Resolve user input to ``namespace/repo``.

        Names without a namespace are looked up with the Hub search API,
        preferring the official ``library/<name>`` image, then an exact name
        match, then the first result.

        Raises:
            ValidationError: If the input is empty or no repository matches it
        """
        name = normalize_dockerhub_input(value)
        if not name:
            raise ValidationError("docker hub search requires an image name")
        if "/" in name:
            namespace, repo = split_repository(name)
            if not namespace or not repo:
                raise ValidationError(f"invalid repository name: {name!r}")
            return f"{namespace}/{repo}"

        results = await self._search_repositories(name)
        if not results:
            raise ValidationError(f"no Docker Hub repository found for {name!r}")
        candidates = [full for full in map(_search_result_name, results) if full]

        preferred = f"library/{name.lower()}"
        for full in candidates:
            if full.lower() == preferred:
                return full
        for result in results:
            if str(result.get("name") or "").lower() == name.lower():
                full = _search_result_name(result)
                if full:
                    return full
        namespace, repo = split_repository(candidates[0] if candidates else "")
        if not namespace or not repo:
            raise ValidationError(f"unable to resolve Docker Hub repository for {name!r}")
        return f"{namespace}/{repo}"

    def _tags_url(self, repository: str) -> URL:
        namespace, repo = split_repository(repository)
        return self._resolve(
            f"/v2/namespaces/{quote_segment(namespace)}/repositories/{quote_path(repo)}/tags",
            {"page_size": str(TAGS_PAGE_SIZE)},
        )

    async def _fetch_tags_page(self, repository: str, url: URL | str) -> TagsPage:
        payload = await self._get_json(url, "tags")
        tags = [_tag_from_result(r) for r in payload.get("results") or [] if isinstance(r, dict)]
        next_url = str(payload.get("next") or "")
        return TagsPage(
            image=repository,
            tags=tags,
            next=resolve_next_url(self.base_url, next_url),
            rate_limit=self.rate_limit,
        )

    async def search_tags_page(self, query: str) -> TagsPage:
        """Resolve ``query`` to a repository and return its first tags page."""
        return await self._call(self._search_tags_page(query))

    async def _search_tags_page(self, query: str) -> TagsPage:
        repository = await self.resolve_repository(query)
        return await self._fetch_tags_page(repository, self._tags_url(repository))

    async def next_tags_page(self, image: str, next_url: str) -> TagsPage:
        """Follow a ``next`` cursor from a previous :class:`TagsPage`.

        Relative cursors are resolved against the Hub base URL.

        Raises:
            ValidationError: If image or cursor is empty
        """
        image = image.strip().strip("/")
        next_url = next_url.strip()
        if not image:
            raise ValidationError("docker hub image is required")
        if not next_url:
            raise ValidationError("docker hub next page is required")
        return await self._call(
            self._fetch_tags_page(image, resolve_next_url(self.base_url, next_url))
        )

    async def list_tags(self, image: str) -> list[Tag]:
        """List every tag of a repository, following all pages."""
        return await self._call(self._list_tags(image))

    async def _list_tags(self, image: str) -> list[Tag]:
        repository = await self.resolve_repository(image)
        page = await self._fetch_tags_page(repository, self._tags_url(repository))
        tags = list(page.tags)
        while page.next:
            page = await self._fetch_tags_page(repository, page.next)
            tags.extend(page.tags)
        return tags

    async def list_images(self) -> list[Image]:
        """List repositories of the configured namespace.

        Raises:
            ValidationError: If no namespace was configured
        """
        if not self.namespace:
            raise ValidationError("docker hub image listing requires a namespace")
        return await self._call(self._list_images())

    async def _list_images(self) -> list[Image]:
        url = str(
            self._resolve(
                f"/v2/namespaces/{quote_segment(self.namespace)}/repositories",
                {"page_size": str(TAGS_PAGE_SIZE)},
            )
        )
        images = []
        while url:
            payload = await self._get_json(url, "repositories")
            for row in payload.get("results") or []:
                if not isinstance(row, dict):
                    continue
                name = f"{self.namespace}/{row.get('name') or ''}"
                images.append(
                    Image(
                        name=name,
                        repository=name,
                        pull_count=_as_int(row.get("pull_count")),
                        updated_at=parse_docker_time(str(row.get("last_updated") or "")),
                    )
                )
            url = resolve_next_url(self.base_url, str(payload.get("next") or ""))
        images.sort(key=lambda image: image.name)
        return images

    async def list_tag_history(self, image: str, tag: str) -> list[HistoryEntry]:
        """Build the history of ``image:tag`` from registry-1.docker.io.

        Official images may be given without the ``library/`` namespace.
        """
        image = normalize_dockerhub_input(image)
        if image and "/" not in image:
            image = f"library/{image}"
        return await super().list_tag_history(image, tag)

    def _registry_url(self, path: str) -> URL:
        return resolve_url(self.registry_url, path)

    async def _send_registry(
        self, method: str, url: URL, image: str, headers: Mapping[str, str]
    ) -> RequestResult:
        session = await self._get_session()
        result = await execute_with_auth(
            session,
            method,
            url,
            image=image,
            token_store=self.tokens,
            fetch_token=self._fetch_token,
            headers=headers,
            default_service=DOCKER_HUB_SERVICE,
            request_logger=self.request_logger,
        )
        # Pull limits are enforced on the registry host
        self._check_rate_limit(result)
        return result

    async def _fetch_token(self, challenge: BearerChallenge) -> TokenGrant:
        session = await self._get_session()
        return await fetch_bearer_token(
            session, challenge, request_logger=self.request_logger, now=self.tokens.now()
        )
