"""Docker Registry HTTP API V2 client."""

import logging
from collections.abc import Mapping

import aiohttp
from yarl import URL

from ..core.auth import Auth
from ..core.auth_cache import AuthCache
from ..core.bearer import (
    BearerChallenge,
    Clock,
    TokenGrant,
    TokenStore,
    execute_with_auth,
    fetch_bearer_token,
    request_token,
)
from ..core.session import decode_json, ensure_ok
from ..core.types import RequestLogger, RequestResult
from ..exceptions import AuthenticationError, MalformedResponseError
from ..models import Image, Tag
from .base import RegistryClient, quote_path

logger = logging.getLogger(__name__)

CATALOG_PAGE_SIZE = 1000


class RegistryV2Client(RegistryClient):
    """Client for plain Docker Registry V2 deployments.

    Anonymous clients answer bearer challenges with anonymous tokens; clients
    with credentials exchange them at the registry's token endpoint using the
    ``password`` or ``refresh_token`` grant.
    """

    provider_name = "registry"

    def __init__(
        self,
        base_url: URL | str,
        auth: Auth,
        *,
        timeout: float | None = None,
        request_logger: RequestLogger | None = None,
        session: aiohttp.ClientSession | None = None,
        auth_cache: AuthCache | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(
            base_url, timeout=timeout, request_logger=request_logger, session=session
        )
        self.auth = auth
        self.auth_cache = auth_cache
        self.tokens = TokenStore(clock)

    async def list_images(self) -> list[Image]:
        """List catalog repositories sorted by name."""
        return await self._call(self._list_images())

    async def _list_images(self) -> list[Image]:
        url = self._resolve("/v2/_catalog", {"n": str(CATALOG_PAGE_SIZE)})
        result = await self._send_registry("GET", url, "", {"Accept": "application/json"})
        ensure_ok(result, "catalog")
        payload = decode_json(result, "catalog") or {}
        if not isinstance(payload, dict):
            raise MalformedResponseError("catalog response is not a JSON object")

        repositories = sorted(str(repo) for repo in payload.get("repositories") or [])
        return [Image(name=repo, repository=repo) for repo in repositories]

    async def list_tags(self, image: str) -> list[Tag]:
        """List tags of a repository (sizes are not reported)."""
        return await self._call(self._list_tags(image.strip().strip("/")))

    async def _list_tags(self, image: str) -> list[Tag]:
        url = self._resolve(f"/v2/{quote_path(image)}/tags/list")
        result = await self._send_registry("GET", url, image, {"Accept": "application/json"})
        ensure_ok(result, "tags")
        payload = decode_json(result, "tags") or {}
        if not isinstance(payload, dict):
            raise MalformedResponseError("tags response is not a JSON object")
        return [Tag(name=str(name)) for name in payload.get("tags") or []]

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
            default_service=self.auth.registry_v2.service or (self.base_url.host or ""),
            request_logger=self.request_logger,
        )

    async def _fetch_token(self, challenge: BearerChallenge) -> TokenGrant:
        session = await self._get_session()
        if self.auth.anonymous:
            return await fetch_bearer_token(
                session,
                challenge,
                request_logger=self.request_logger,
                now=self.tokens.now(),
            )

        v2 = self.auth.registry_v2
        form = {
            "scope": challenge.scope,
            "service": v2.service or challenge.service,
        }
        if v2.username:
            form["client_id"] = v2.username
        if v2.password:
            form.update(grant_type="password", username=v2.username, password=v2.password)
        elif v2.remember and v2.refresh_token:
            form.update(grant_type="refresh_token", refresh_token=v2.refresh_token)
        else:
            raise AuthenticationError(
                "registry_v2 token request requires a password or a remembered refresh token"
            )

        token_url = v2.token_url or challenge.realm
        grant = await request_token(
            session,
            "POST",
            token_url,
            data=form,
            request_logger=self.request_logger,
            now=self.tokens.now(),
            what="registry_v2 token",
        )
        if grant.refresh_token:
            v2.refresh_token = grant.refresh_token
        if self.auth_cache is not None:
            await self.auth_cache.persist(self.base_url.host or "", self.auth)
        return grant
