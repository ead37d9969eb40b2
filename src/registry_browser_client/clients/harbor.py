"""Harbor API v2.0 client."""

import logging
from collections.abc import Mapping
from typing import Any

import aiohttp
from yarl import URL

from ..core.auth import Auth
from ..core.session import decode_json, ensure_ok, send_request
from ..core.types import RequestLogger, RequestResult
from ..exceptions import MalformedResponseError
from ..history import parse_docker_time
from ..models import UNKNOWN, Image, Project, Tag
from .base import ProjectClient, RegistryClient, quote_segment

logger = logging.getLogger(__name__)

HARBOR_PAGE_SIZE = 100


def split_harbor_image(image: str) -> tuple[str, str]:
    """Split ``project/repo[/more]`` into ``(project, repo)``.

    Returns ``("", "")`` when the name has no project component.
    """
    trimmed = image.strip().strip("/")
    project, sep, repo = trimmed.partition("/")
    if not sep or not project or not repo:
        return "", ""
    return project, repo


def quote_harbor_repository(repo: str) -> str:
    """Encode a repository name for a Harbor API path segment.

    Harbor decodes the path before routing, so ``/`` inside the name must
    arrive double-encoded (``a/b`` -> ``a%252Fb``).
    """
    return quote_segment(quote_segment(repo))


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return UNKNOWN


class HarborClient(RegistryClient, ProjectClient):
    """Client for Harbor, using HTTP basic auth (or anonymous access).

    Examples:
        async with HarborClient("https://harbor.example.com", auth) as client:
            projects = await client.list_projects()
            images = await client.list_project_images(projects[0].name)
    """

    provider_name = "harbor"

    def __init__(
        self,
        base_url: URL | str,
        auth: Auth,
        *,
        timeout: float | None = None,
        request_logger: RequestLogger | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(
            base_url, timeout=timeout, request_logger=request_logger, session=session
        )
        self.auth = auth

    @property
    def _authorization(self) -> str | None:
        if self.auth.harbor.anonymous:
            return None
        return aiohttp.encode_basic_auth(self.auth.harbor.username, self.auth.harbor.password)

    async def _send(
        self, method: str, url: URL, headers: Mapping[str, str] | None = None
    ) -> RequestResult:
        session = await self._get_session()
        return await send_request(
            session,
            method,
            url,
            headers=headers,
            authorization=self._authorization,
            request_logger=self.request_logger,
        )

    async def _get_json(self, url: URL) -> Any:
        result = await self._send("GET", url, {"Accept": "application/json"})
        ensure_ok(result, "harbor")
        return decode_json(result, "harbor")

    async def _get_pages(self, path: str) -> list[dict[str, Any]]:
        """Collect every row of an offset-paginated listing."""
        rows: list[dict[str, Any]] = []
        page = 1
        while True:
            url = self._resolve(
                path, {"page": str(page), "page_size": str(HARBOR_PAGE_SIZE)}
            )
            batch = await self._get_json(url) or []
            if not isinstance(batch, list):
                raise MalformedResponseError(f"harbor {path} response is not a JSON array")
            rows.extend(row for row in batch if isinstance(row, dict))
            if len(batch) < HARBOR_PAGE_SIZE:
                return rows
            page += 1

    async def _list_project_rows(self) -> list[dict[str, Any]]:
        return await self._get_pages("/api/v2.0/projects")

    async def _list_repository_rows(self, project: str) -> list[dict[str, Any]]:
        if not project:
            return []
        return await self._get_pages(
            f"/api/v2.0/projects/{quote_segment(project)}/repositories"
        )

    @staticmethod
    def _image_from_row(row: dict[str, Any]) -> Image:
        name = str(row.get("name") or "")
        return Image(
            name=name,
            repository=name,
            tag_count=_as_int(row.get("artifact_count")),
            pull_count=_as_int(row.get("pull_count")),
            updated_at=parse_docker_time(str(row.get("update_time") or "")),
        )

    async def list_projects(self) -> list[Project]:
        """List projects visible to the caller, sorted by name."""
        return await self._call(self._list_projects())

    async def _list_projects(self) -> list[Project]:
        projects = [
            Project(
                name=str(row.get("name") or ""),
                image_count=_as_int(row.get("repo_count")),
                updated_at=parse_docker_time(str(row.get("update_time") or "")),
            )
            for row in await self._list_project_rows()
        ]
        projects.sort(key=lambda project: project.name)
        return projects

    async def list_project_images(self, project: str) -> list[Image]:
        """List repositories of one project.

        Harbor normally returns project-qualified names (``project/repo``).
        Rows that are not qualified with ``project`` are dropped, unless no
        row is qualified at all, in which case every row is returned.
        """
        return await self._call(self._list_project_images(project.strip().strip("/")))

    async def _list_project_images(self, project: str) -> list[Image]:
        images = [self._image_from_row(row) for row in await self._list_repository_rows(project)]
        prefix = f"{project}/"
        qualified = [image for image in images if image.name.startswith(prefix)]
        if qualified:
            images = qualified
        else:
            logger.debug("harbor project %s returned no qualified repository names", project)
        images.sort(key=lambda image: image.name)
        return images

    async def list_images(self) -> list[Image]:
        """List repositories of every project, flattened and sorted by name."""
        return await self._call(self._list_images())

    async def _list_images(self) -> list[Image]:
        images = []
        for row in await self._list_project_rows():
            project = str(row.get("name") or "")
            for repo in await self._list_repository_rows(project):
                images.append(self._image_from_row(repo))
        images.sort(key=lambda image: image.name)
        return images

    async def list_tags(self, image: str) -> list[Tag]:
        """List tags of ``project/repo``, one row per artifact and tag.

        Returns an empty list when the name has no project component.
        """
        project, repo = split_harbor_image(image)
        if not project or not repo:
            return []
        return await self._call(self._list_tags(project, repo))

    async def _list_tags(self, project: str, repo: str) -> list[Tag]:
        artifacts = await self._get_pages(
            f"/api/v2.0/projects/{quote_segment(project)}"
            f"/repositories/{quote_harbor_repository(repo)}/artifacts"
        )
        tags = []
        for artifact in artifacts:
            digest = str(artifact.get("digest") or "")
            size = _as_int(artifact.get("size"))
            updated_at = parse_docker_time(str(artifact.get("update_time") or ""))
            for tag in artifact.get("tags") or []:
                if not isinstance(tag, dict):
                    continue
                tags.append(
                    Tag(
                        name=str(tag.get("name") or ""),
                        digest=digest,
                        size_bytes=size,
                        updated_at=updated_at,
                        pushed_at=parse_docker_time(str(tag.get("push_time") or "")),
                        last_pulled_at=parse_docker_time(str(tag.get("pull_time") or "")),
                    )
                )
        tags.sort(key=lambda tag: tag.name)
        return tags

    async def _send_registry(
        self, method: str, url: URL, image: str, headers: Mapping[str, str]
    ) -> RequestResult:
        return await self._send(method, url, headers)
