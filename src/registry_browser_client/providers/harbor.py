"""Provider for Harbor."""

from yarl import URL

from ..clients.harbor import HarborClient
from ..core.auth import KIND_HARBOR, KIND_NONE, Auth
from ..core.auth_cache import AuthCache
from ..core.types import RequestLogger
from .base import AuthUI, HistoryTableSpec, ImageTableSpec, Provider, TableSpec, TagTableSpec


class HarborProvider(Provider):
    kind = KIND_HARBOR

    def table_spec(self) -> TableSpec:
        return TableSpec(
            supports_projects=True,
            image=ImageTableSpec(show_tag_count=True, show_pulls=True, show_updated=True),
            tag=TagTableSpec(show_size=True, show_pushed=True, show_last_pulled=True),
            history=HistoryTableSpec(show_size=True, show_comment=True),
        )

    def needs_auth_prompt(self, auth: Auth) -> bool:
        if auth.kind == KIND_NONE or auth.harbor.anonymous:
            return False
        return not auth.harbor.username or not auth.harbor.password

    def auth_ui(self, auth: Auth) -> AuthUI:
        if auth.kind == KIND_NONE or auth.harbor.anonymous:
            return AuthUI()
        return AuthUI(show_username=True, show_password=True, show_remember=False)

    def prepare_auth(self, base_url: URL, auth: Auth) -> None:
        if not auth.kind:
            auth.kind = KIND_HARBOR

    def new_client(
        self,
        base_url: URL,
        auth: Auth,
        request_logger: RequestLogger | None = None,
        auth_cache: AuthCache | None = None,
    ) -> HarborClient:
        # Harbor sessions are password based; nothing is exchanged for the cache.
        return HarborClient(base_url, auth, request_logger=request_logger)
