"""Tests for the bearer-token challenge/response protocol."""

from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web
from yarl import URL

from registry_browser_client import AuthenticationError, MalformedResponseError
from registry_browser_client.core.bearer import (
    BearerChallenge,
    TokenGrant,
    TokenStore,
    decode_token_response,
    default_scope,
    execute_with_auth,
    fetch_bearer_token,
    parse_bearer_challenge,
)
from registry_browser_client.core.session import create_session

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestParseChallenge:
    """WWW-Authenticate parsing."""

    def test_full_challenge(self):
        challenge = parse_bearer_challenge(
            'Bearer realm="https://auth.example.com/token",'
            'service="registry.example.com",scope="repository:team/app:pull,push"'
        )
        assert challenge == BearerChallenge(
            realm="https://auth.example.com/token",
            service="registry.example.com",
            scope="repository:team/app:pull,push",
        )

    def test_scheme_is_case_insensitive(self):
        challenge = parse_bearer_challenge('bEaReR realm="https://auth.example.com/token"')
        assert challenge.realm == "https://auth.example.com/token"
        assert challenge.service == ""
        assert challenge.scope == ""

    def test_unquoted_values_and_spacing(self):
        challenge = parse_bearer_challenge(
            "Bearer realm=https://auth.example.com/token, service = registry.example.com"
        )
        assert challenge.realm == "https://auth.example.com/token"
        assert challenge.service == "registry.example.com"

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            'Basic realm="Registry"',
            "Bearer",
            'Bearer service="registry.example.com"',
        ],
    )
    def test_rejected(self, value):
        with pytest.raises(AuthenticationError):
            parse_bearer_challenge(value)

    def test_default_scope(self):
        assert default_scope("team/app") == "repository:team/app:pull"
        assert default_scope("/team/app/") == "repository:team/app:pull"
        assert default_scope("") == "registry:catalog:*"


class TestTokenResponse:
    """Token endpoint response decoding."""

    def test_first_non_empty_token_wins(self):
        grant = decode_token_response(
            {"id_token": "", "access_token": "access", "token": "plain"}, NOW
        )
        assert grant.token == "access"

    def test_id_token_preferred(self):
        grant = decode_token_response({"id_token": "id", "token": "plain"}, NOW)
        assert grant.token == "id"

    def test_default_lifetime(self):
        grant = decode_token_response({"token": "t"}, NOW)
        assert grant.expires_at == NOW + timedelta(seconds=300)
        assert grant.refresh_token == ""

    def test_explicit_lifetime_and_refresh_token(self):
        grant = decode_token_response(
            {"token": "t", "expires_in": 60, "refresh_token": "rt"}, NOW
        )
        assert grant.expires_at == NOW + timedelta(seconds=60)
        assert grant.refresh_token == "rt"

    def test_missing_token(self):
        with pytest.raises(AuthenticationError, match="missing token"):
            decode_token_response({"expires_in": 60}, NOW)

    def test_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            decode_token_response(["t"], NOW)


class TestTokenStore:
    """Token expiry with the 30 second buffer."""

    @pytest.mark.asyncio
    async def test_expiry_boundary(self):
        now = [NOW]
        store = TokenStore(clock=lambda: now[0])
        await store.set(TokenGrant(token="t", expires_at=NOW + timedelta(seconds=60)))

        now[0] = NOW + timedelta(seconds=29, microseconds=999999)
        assert store.is_expired() is False
        assert await store.get() == "t"

        now[0] = NOW + timedelta(seconds=30)
        assert store.is_expired() is True
        assert await store.get() is None

    @pytest.mark.asyncio
    async def test_empty_store(self):
        store = TokenStore(clock=lambda: NOW)
        assert store.is_expired() is True
        assert await store.get() is None

    @pytest.mark.asyncio
    async def test_clear(self):
        store = TokenStore(clock=lambda: NOW)
        await store.set(TokenGrant(token="t", expires_at=NOW + timedelta(hours=1)))
        await store.clear()
        assert await store.get() is None


def challenge_app(seen: dict, *, scope: str = "", always_401: bool = False) -> web.Application:
    """Registry answering 401 until it sees ``Bearer good``."""

    async def protected(request: web.Request) -> web.Response:
        seen.setdefault("auth", []).append(request.headers.get("Authorization"))
        if always_401 or request.headers.get("Authorization") != "Bearer good":
            realm = str(request.url.with_path("/token").with_query(None))
            value = f'Bearer realm="{realm}",service="registry.example.com"'
            if scope:
                value += f',scope="{scope}"'
            return web.Response(status=401, headers={"WWW-Authenticate": value})
        return web.json_response({"ok": True})

    async def token(request: web.Request) -> web.Response:
        seen.setdefault("token_queries", []).append(dict(request.query))
        return web.json_response({"token": "good"})

    app = web.Application()
    app.router.add_get("/token", token)
    app.router.add_get("/v2/{name:.+}/tags/list", protected)
    return app


class TestExecuteWithAuth:
    """Retry-once request flow."""

    @pytest.mark.asyncio
    async def test_challenge_without_scope_derives_repository_scope(self, serve, request_log):
        seen: dict = {}
        base = URL(await serve(challenge_app(seen)))
        store = TokenStore()

        async def fetch(challenge):
            return await fetch_bearer_token(session, challenge)

        session = await create_session()
        try:
            result = await execute_with_auth(
                session,
                "GET",
                base.with_path("/v2/team/app/tags/list"),
                image="team/app",
                token_store=store,
                fetch_token=fetch,
                request_logger=request_log.append,
            )
        finally:
            await session.close()

        assert result.status_code == 200
        assert seen["token_queries"] == [
            {"service": "registry.example.com", "scope": "repository:team/app:pull"}
        ]
        assert seen["auth"] == [None, "Bearer good"]
        assert [entry.status for entry in request_log] == [401, 200]
        assert request_log[1].headers["Authorization"] == ["Bearer good"]
        assert await store.get() == "good"

    @pytest.mark.asyncio
    async def test_challenge_scope_is_kept(self, serve):
        seen: dict = {}
        base = URL(await serve(challenge_app(seen, scope="repository:team/app:pull,push")))
        challenges = []

        async def fetch(challenge):
            challenges.append(challenge)
            return TokenGrant(token="good", expires_at=NOW + timedelta(days=3650))

        session = await create_session()
        try:
            await execute_with_auth(
                session,
                "GET",
                base.with_path("/v2/team/app/tags/list"),
                image="team/app",
                token_store=TokenStore(),
                fetch_token=fetch,
            )
        finally:
            await session.close()

        assert challenges[0].scope == "repository:team/app:pull,push"

    @pytest.mark.asyncio
    async def test_cached_token_skips_challenge(self, serve):
        seen: dict = {}
        base = URL(await serve(challenge_app(seen)))
        store = TokenStore()
        await store.set(TokenGrant(token="good", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)))

        async def fetch(challenge):
            raise AssertionError("token should not be fetched")

        session = await create_session()
        try:
            result = await execute_with_auth(
                session,
                "GET",
                base.with_path("/v2/team/app/tags/list"),
                image="team/app",
                token_store=store,
                fetch_token=fetch,
            )
        finally:
            await session.close()

        assert result.status_code == 200
        assert seen["auth"] == ["Bearer good"]

    @pytest.mark.asyncio
    async def test_second_401_is_returned_without_another_retry(self, serve):
        seen: dict = {}
        base = URL(await serve(challenge_app(seen, always_401=True)))
        calls = []

        async def fetch(challenge):
            calls.append(challenge)
            return TokenGrant(token="good", expires_at=NOW + timedelta(days=3650))

        session = await create_session()
        try:
            result = await execute_with_auth(
                session,
                "GET",
                base.with_path("/v2/team/app/tags/list"),
                image="team/app",
                token_store=TokenStore(),
                fetch_token=fetch,
            )
        finally:
            await session.close()

        assert result.status_code == 401
        assert len(calls) == 1
        assert len(seen["auth"]) == 2

    @pytest.mark.asyncio
    async def test_non_bearer_challenge_fails(self, serve):
        async def basic_only(request):
            return web.Response(status=401, headers={"WWW-Authenticate": 'Basic realm="x"'})

        app = web.Application()
        app.router.add_get("/v2/_catalog", basic_only)
        base = URL(await serve(app))

        async def fetch(challenge):
            raise AssertionError("unreachable")

        session = await create_session()
        try:
            with pytest.raises(AuthenticationError):
                await execute_with_auth(
                    session,
                    "GET",
                    base.with_path("/v2/_catalog"),
                    image="",
                    token_store=TokenStore(),
                    fetch_token=fetch,
                )
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_token_endpoint_failure(self, serve):
        async def token(request):
            return web.Response(status=403, reason="Forbidden")

        app = web.Application()
        app.router.add_get("/token", token)
        base = URL(await serve(app))

        session = await create_session()
        try:
            with pytest.raises(AuthenticationError, match="403"):
                await fetch_bearer_token(
                    session, BearerChallenge(realm=str(base.with_path("/token")))
                )
        finally:
            await session.close()
