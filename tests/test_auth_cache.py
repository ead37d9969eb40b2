"""Tests for the on-disk auth cache."""

import json
import os
import stat

import pytest

from registry_browser_client import Auth, AuthCache, HarborAuth, RegistryV2Auth
from registry_browser_client.core.auth_cache import CacheEntry, cache_key, default_cache_path


def v2_auth(**kwargs) -> Auth:
    return Auth(kind="registry_v2", registry_v2=RegistryV2Auth(**kwargs))


class TestCachePath:
    """Cache file location."""

    def test_xdg_cache_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert default_cache_path() == tmp_path / "beacon" / "auth.json"

    def test_home_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert default_cache_path() == tmp_path / ".cache" / "beacon" / "auth.json"

    def test_cache_key_lowercases(self):
        assert cache_key("Registry.Example.COM", "Registry_V2") == "registry.example.com|registry_v2"


class TestLoadSave:
    """Raw file access."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, auth_cache):
        assert await auth_cache.load() == {}

    @pytest.mark.asyncio
    async def test_save_restricts_permissions(self, auth_cache):
        await auth_cache.save({"host|registry_v2": CacheEntry(username="u")})

        mode = stat.S_IMODE(os.stat(auth_cache.path).st_mode)
        assert mode == 0o600
        dir_mode = stat.S_IMODE(os.stat(auth_cache.path.parent).st_mode)
        assert dir_mode & 0o077 == 0
        assert json.loads(auth_cache.path.read_text()) == {"host|registry_v2": {"username": "u"}}

    @pytest.mark.asyncio
    async def test_round_trip(self, auth_cache):
        entries = {"a|harbor": CacheEntry(username="admin")}
        await auth_cache.save(entries)
        assert await auth_cache.load() == entries


class TestApplyPersist:
    """Filling and storing remembered credentials."""

    @pytest.mark.asyncio
    async def test_round_trip_with_remember(self, auth_cache):
        await auth_cache.persist(
            "registry.example.com",
            v2_auth(username="alice", remember=True, refresh_token="rt-1"),
        )

        auth = v2_auth(remember=True)
        await auth_cache.apply(auth, "REGISTRY.example.com")
        assert auth.registry_v2.username == "alice"
        assert auth.registry_v2.refresh_token == "rt-1"

    @pytest.mark.asyncio
    async def test_refresh_token_needs_remember_on_apply(self, auth_cache):
        await auth_cache.persist(
            "registry.example.com",
            v2_auth(username="alice", remember=True, refresh_token="rt-1"),
        )

        auth = v2_auth()
        await auth_cache.apply(auth, "registry.example.com")
        assert auth.registry_v2.username == "alice"
        assert auth.registry_v2.refresh_token == ""

    @pytest.mark.asyncio
    async def test_apply_keeps_caller_values(self, auth_cache):
        await auth_cache.persist(
            "registry.example.com",
            v2_auth(username="alice", remember=True, refresh_token="rt-1"),
        )

        auth = v2_auth(username="bob", remember=True, refresh_token="mine")
        await auth_cache.apply(auth, "registry.example.com")
        assert auth.registry_v2.username == "bob"
        assert auth.registry_v2.refresh_token == "mine"

    @pytest.mark.asyncio
    async def test_persist_without_remember_clears_refresh_token(self, auth_cache):
        host = "registry.example.com"
        await auth_cache.persist(host, v2_auth(username="alice", remember=True, refresh_token="rt-1"))
        await auth_cache.persist(host, v2_auth(username="alice", remember=False))

        entries = await auth_cache.load()
        assert entries[cache_key(host, "registry_v2")] == CacheEntry(username="alice")

    @pytest.mark.asyncio
    async def test_empty_entry_is_removed(self, auth_cache):
        host = "registry.example.com"
        await auth_cache.save({cache_key(host, "registry_v2"): CacheEntry(refresh_token="rt")})
        await auth_cache.persist(host, v2_auth(remember=False))

        assert await auth_cache.load() == {}

    @pytest.mark.asyncio
    async def test_harbor_never_stores_refresh_token(self, auth_cache):
        host = "harbor.example.com"
        await auth_cache.save({cache_key(host, "harbor"): CacheEntry(refresh_token="old")})
        await auth_cache.persist(
            host, Auth(kind="harbor", harbor=HarborAuth(username="admin", password="pw", remember=True))
        )

        entries = await auth_cache.load()
        assert entries[cache_key(host, "harbor")] == CacheEntry(username="admin")
        assert "pw" not in auth_cache.path.read_text()

        auth = Auth(kind="harbor")
        await auth_cache.apply(auth, host)
        assert auth.harbor.username == "admin"

    @pytest.mark.asyncio
    async def test_kinds_are_separate(self, auth_cache):
        host = "registry.example.com"
        await auth_cache.persist(host, Auth(kind="harbor", harbor=HarborAuth(username="admin")))

        auth = v2_auth()
        await auth_cache.apply(auth, host)
        assert auth.registry_v2.username == ""

    @pytest.mark.asyncio
    async def test_corrupt_cache_is_ignored(self, auth_cache):
        auth_cache.path.parent.mkdir(parents=True)
        auth_cache.path.write_text("[1, 2, 3]")

        auth = v2_auth(remember=True)
        await auth_cache.apply(auth, "registry.example.com")
        assert auth.registry_v2.username == ""

        await auth_cache.persist("registry.example.com", v2_auth(username="alice"))
        assert auth_cache.path.read_text() == "[1, 2, 3]"

    @pytest.mark.asyncio
    async def test_unwritable_cache_is_ignored(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        cache = AuthCache(blocker / "auth.json")

        await cache.persist("registry.example.com", v2_auth(username="alice"))
