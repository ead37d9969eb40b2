"""Data models shared by every registry backend.

Counters use ``-1`` when a backend cannot report a value and timestamps use
``None`` when the time is unknown.
"""

from dataclasses import dataclass, field
from datetime import datetime

UNKNOWN = -1


@dataclass
class Image:
    """Repository (image) listed by a registry."""

    name: str
    repository: str
    tag_count: int = UNKNOWN
    pull_count: int = UNKNOWN
    updated_at: datetime | None = None


@dataclass
class Tag:
    """Tag of an image repository."""

    name: str
    digest: str = ""
    size_bytes: int = UNKNOWN
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    last_pulled_at: datetime | None = None


@dataclass
class Project:
    """Harbor project."""

    name: str
    image_count: int = UNKNOWN
    updated_at: datetime | None = None


@dataclass
class HistoryEntry:
    """Single build step of an image, most recent first in a history list."""

    created_at: datetime | None
    created_by: str
    comment: str
    size_bytes: int
    empty_layer: bool


@dataclass
class RateLimit:
    """Docker Hub rate-limit snapshot taken from response headers."""

    limit: int = UNKNOWN
    remaining: int = UNKNOWN
    reset_at: datetime | None = None

    @property
    def known(self) -> bool:
        return self.limit >= 0 or self.remaining >= 0 or self.reset_at is not None


@dataclass
class TagsPage:
    """One page of tags from a cursor-paginated backend."""

    image: str
    tags: list[Tag] = field(default_factory=list)
    next: str = ""
    rate_limit: RateLimit = field(default_factory=RateLimit)
