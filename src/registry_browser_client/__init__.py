"""Registry Browser Client - async browsing of container image registries.

Lists repositories, tags and per-tag build history on Docker Registry V2,
Harbor, Docker Hub and GitHub Container Registry.
"""

__version__ = "0.1.0"

from .clients import (
    DockerHubClient,
    GitHubContainerClient,
    HarborClient,
    ProjectClient,
    RegistryClient,
    RegistryV2Client,
)
from .core.auth import Auth, HarborAuth, RegistryV2Auth
from .core.auth_cache import AuthCache
from .core.types import RegistryConfig, RequestLog
from .exceptions import (
    AuthenticationError,
    MalformedResponseError,
    ManifestError,
    RateLimitError,
    RegistryConnectionError,
    RegistryError,
    RegistryStatusError,
    RegistryTimeoutError,
    UnsupportedOperationError,
    ValidationError,
)
from .factory import new_client
from .models import HistoryEntry, Image, Project, RateLimit, Tag, TagsPage
from .providers import provider_for_auth, provider_for_kind
from .pull import pull_command, pull_reference
from .registry import list_images, list_projects, list_tag_history, list_tags

__all__ = [
    "Auth",
    "AuthCache",
    "AuthenticationError",
    "DockerHubClient",
    "GitHubContainerClient",
    "HarborAuth",
    "HarborClient",
    "HistoryEntry",
    "Image",
    "MalformedResponseError",
    "ManifestError",
    "Project",
    "ProjectClient",
    "RateLimit",
    "RateLimitError",
    "RegistryClient",
    "RegistryConfig",
    "RegistryConnectionError",
    "RegistryError",
    "RegistryStatusError",
    "RegistryTimeoutError",
    "RegistryV2Auth",
    "RegistryV2Client",
    "RequestLog",
    "Tag",
    "TagsPage",
    "UnsupportedOperationError",
    "ValidationError",
    "list_images",
    "list_projects",
    "list_tag_history",
    "list_tags",
    "new_client",
    "provider_for_auth",
    "provider_for_kind",
    "pull_command",
    "pull_reference",
]
