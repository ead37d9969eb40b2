"""Provider contract: auth preparation, client construction and UI hints."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from yarl import URL

from ..clients.base import RegistryClient
from ..core.auth import Auth
from ..core.auth_cache import AuthCache
from ..core.types import RequestLogger


@dataclass(frozen=True)
class ImageTableSpec:
    show_tag_count: bool = False
    show_pulls: bool = False
    show_updated: bool = False


@dataclass(frozen=True)
class TagTableSpec:
    show_size: bool = False
    show_pushed: bool = False
    show_last_pulled: bool = False


@dataclass(frozen=True)
class HistoryTableSpec:
    show_size: bool = False
    show_comment: bool = False


@dataclass(frozen=True)
class TableSpec:
    """Columns a backend can fill, for table-based front ends."""

    supports_projects: bool = False
    image: ImageTableSpec = field(default_factory=ImageTableSpec)
    tag: TagTableSpec = field(default_factory=TagTableSpec)
    history: HistoryTableSpec = field(default_factory=HistoryTableSpec)


@dataclass(frozen=True)
class AuthUI:
    """Credential fields a login form should show."""

    show_username: bool = False
    show_password: bool = False
    show_remember: bool = False


class Provider(ABC):
    """Maps a registry URL and credentials to a concrete client."""

    kind: str = ""

    @abstractmethod
    def table_spec(self) -> TableSpec:
        """Describe which columns the backend reports."""

    @abstractmethod
    def needs_auth_prompt(self, auth: Auth) -> bool:
        """True when the credentials are incomplete and must be asked for."""

    @abstractmethod
    def auth_ui(self, auth: Auth) -> AuthUI:
        """Describe which credential fields to prompt for."""

    @abstractmethod
    def prepare_auth(self, base_url: URL, auth: Auth) -> None:
        """Fill backend-specific defaults into ``auth`` in place."""

    @abstractmethod
    def new_client(
        self,
        base_url: URL,
        auth: Auth,
        request_logger: RequestLogger | None = None,
        auth_cache: AuthCache | None = None,
    ) -> RegistryClient:
        """Construct the client for ``base_url``."""
