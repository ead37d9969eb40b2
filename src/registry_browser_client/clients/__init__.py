"""Backend-specific registry clients."""

from .base import ProjectClient, RegistryClient
from .dockerhub import DockerHubClient
from .github import GitHubContainerClient
from .harbor import HarborClient
from .registry_v2 import RegistryV2Client

__all__ = [
    "DockerHubClient",
    "GitHubContainerClient",
    "HarborClient",
    "ProjectClient",
    "RegistryClient",
    "RegistryV2Client",
]
