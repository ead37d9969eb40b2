"""Best-effort on-disk cache of usernames and refresh tokens.

Entries are keyed by ``lowercase(host) + "|" + lowercase(kind)``. The cache
never stores passwords, and failures to read or write it are logged and
ignored so authentication can always proceed without it.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from .auth import KIND_HARBOR, KIND_NONE, KIND_REGISTRY_V2, Auth

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = "beacon"
CACHE_FILE_NAME = "auth.json"


@dataclass
class CacheEntry:
    """Cached credentials for one host and auth kind."""

    username: str = ""
    refresh_token: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {}
        if self.username:
            data["username"] = self.username
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        return data


def cache_key(host: str, kind: str) -> str:
    return f"{host.lower()}|{kind.lower()}"


def default_cache_path() -> Path:
    """Resolve the per-user cache file location.

    Uses ``$XDG_CACHE_HOME/beacon/auth.json`` when set, otherwise
    ``~/.cache/beacon/auth.json``.
    """
    xdg = os.environ.get("XDG_CACHE_HOME", "").strip()
    if xdg:
        return Path(xdg) / CACHE_DIR_NAME / CACHE_FILE_NAME
    try:
        home = Path.home()
    except RuntimeError:
        return Path(CACHE_FILE_NAME)
    return home / ".cache" / CACHE_DIR_NAME / CACHE_FILE_NAME


class AuthCache:
    """Read-modify-write store for remembered registry credentials."""

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize the cache.

        Args:
            path: Cache file location (defaults to the per-user cache dir)
        """
        self.path = Path(path) if path is not None else default_cache_path()

    async def load(self) -> dict[str, CacheEntry]:
        """Read all entries. A missing file yields an empty mapping.

        Raises:
            OSError: If the file exists but cannot be read
            ValueError: If the file is not a JSON object
        """
        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return {}

        data = json.loads(raw) if raw.strip() else {}
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"auth cache {self.path} is not a JSON object")

        entries = {}
        for key, value in data.items():
            if not isinstance(value, dict):
                continue
            entries[key] = CacheEntry(
                username=str(value.get("username", "") or ""),
                refresh_token=str(value.get("refresh_token", "") or ""),
            )
        return entries

    async def save(self, entries: dict[str, CacheEntry]) -> None:
        """Write all entries with owner-only permissions."""
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        payload = json.dumps(
            {key: entry.to_dict() for key, entry in entries.items()}, indent=2
        )
        async with aiofiles.open(
            self.path, mode="w", encoding="utf-8", opener=_private_opener
        ) as f:
            await f.write(payload)
        os.chmod(self.path, 0o600)

    async def apply(self, auth: Auth, host: str) -> None:
        """Fill credentials the caller left empty from the cache.

        The username is filled whenever it is empty; the refresh token only
        when it is empty and ``remember`` is set.
        """
        if not host or auth.kind in ("", KIND_NONE):
            return
        try:
            entries = await self.load()
        except (OSError, ValueError) as e:
            logger.debug("ignoring unreadable auth cache %s: %s", self.path, e)
            return

        entry = entries.get(cache_key(host, auth.kind))
        if entry is None:
            return

        if auth.kind == KIND_REGISTRY_V2:
            v2 = auth.registry_v2
            if not v2.username and entry.username:
                v2.username = entry.username
            if v2.remember and not v2.refresh_token and entry.refresh_token:
                v2.refresh_token = entry.refresh_token
        elif auth.kind == KIND_HARBOR:
            if not auth.harbor.username and entry.username:
                auth.harbor.username = entry.username

    async def persist(self, host: str, auth: Auth) -> None:
        """Store the username and, when remembered, the refresh token.

        Without ``remember`` any previously stored refresh token is cleared.
        The entry is removed once both fields are empty.
        """
        if not host or auth.kind not in (KIND_REGISTRY_V2, KIND_HARBOR):
            return
        try:
            entries = await self.load()
        except (OSError, ValueError) as e:
            logger.debug("ignoring unreadable auth cache %s: %s", self.path, e)
            return

        key = cache_key(host, auth.kind)
        entry = entries.get(key, CacheEntry())
        if auth.kind == KIND_REGISTRY_V2:
            v2 = auth.registry_v2
            if v2.username:
                entry.username = v2.username
            if v2.remember:
                if v2.refresh_token:
                    entry.refresh_token = v2.refresh_token
            else:
                entry.refresh_token = ""
        else:
            if auth.harbor.username:
                entry.username = auth.harbor.username
            entry.refresh_token = ""

        if not entry.username and not entry.refresh_token:
            entries.pop(key, None)
        else:
            entries[key] = entry

        try:
            await self.save(entries)
        except OSError as e:
            logger.debug("failed to write auth cache %s: %s", self.path, e)


def _private_opener(path: str, flags: int) -> int:
    return os.open(path, flags, 0o600)
