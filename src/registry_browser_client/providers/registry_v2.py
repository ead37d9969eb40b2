"""Provider for plain Docker Registry V2 deployments."""

from yarl import URL

from ..clients.registry_v2 import RegistryV2Client
from ..core.auth import KIND_NONE, KIND_REGISTRY_V2, Auth
from ..core.auth_cache import AuthCache
from ..core.types import RequestLogger
from .base import AuthUI, HistoryTableSpec, Provider, TableSpec


class RegistryV2Provider(Provider):
    kind = KIND_REGISTRY_V2

    def table_spec(self) -> TableSpec:
        return TableSpec(
            supports_projects=False,
            history=HistoryTableSpec(show_size=True, show_comment=True),
        )

    def needs_auth_prompt(self, auth: Auth) -> bool:
        if auth.kind == KIND_NONE or auth.registry_v2.anonymous:
            return False
        v2 = auth.registry_v2
        if not v2.username:
            return True
        return not v2.password and not (v2.remember and v2.refresh_token)

    def auth_ui(self, auth: Auth) -> AuthUI:
        if auth.kind == KIND_NONE or auth.registry_v2.anonymous:
            return AuthUI()
        return AuthUI(show_username=True, show_password=True, show_remember=True)

    def prepare_auth(self, base_url: URL, auth: Auth) -> None:
        if auth.kind in ("", KIND_NONE):
            auth.kind = KIND_REGISTRY_V2
            auth.registry_v2.anonymous = True
        if not auth.registry_v2.service and base_url.host:
            auth.registry_v2.service = base_url.host

    def new_client(
        self,
        base_url: URL,
        auth: Auth,
        request_logger: RequestLogger | None = None,
        auth_cache: AuthCache | None = None,
    ) -> RegistryV2Client:
        return RegistryV2Client(
            base_url, auth, request_logger=request_logger, auth_cache=auth_cache
        )
