"""Registry credentials and their normalization rules."""

from dataclasses import asdict, dataclass, field
from typing import Any

from ..exceptions import UnsupportedOperationError, ValidationError

KIND_NONE = "none"
KIND_REGISTRY_V2 = "registry_v2"
KIND_HARBOR = "harbor"

_KIND_ALIASES = {
    "": KIND_NONE,
    "anonymous": KIND_NONE,
    "registry": KIND_REGISTRY_V2,
    "v2": KIND_REGISTRY_V2,
}


def normalize_kind(kind: str) -> str:
    """Lowercase, trim and resolve aliases of an auth kind."""
    kind = (kind or "").strip().lower()
    return _KIND_ALIASES.get(kind, kind)


@dataclass
class RegistryV2Auth:
    """Credentials for a Docker Registry V2 token endpoint."""

    anonymous: bool = False
    token_url: str = ""
    service: str = ""
    username: str = ""
    password: str = ""
    remember: bool = False
    refresh_token: str = ""

    def normalize(self) -> None:
        self.token_url = self.token_url.strip()
        self.service = self.service.strip()
        self.username = self.username.strip()
        self.password = self.password.strip()
        self.refresh_token = self.refresh_token.strip()


@dataclass
class HarborAuth:
    """Credentials for Harbor's basic-auth API."""

    anonymous: bool = False
    token_url: str = ""
    service: str = ""
    username: str = ""
    password: str = ""
    remember: bool = False

    def normalize(self) -> None:
        self.token_url = self.token_url.strip()
        self.service = self.service.strip()
        self.username = self.username.strip()
        self.password = self.password.strip()


@dataclass
class Auth:
    """Tagged registry credentials.

    Only the block matching ``kind`` is meaningful: ``registry_v2`` for
    Docker Registry V2 token auth, ``harbor`` for Harbor basic auth, and
    ``none`` for anonymous access.
    """

    kind: str = KIND_NONE
    registry_v2: RegistryV2Auth = field(default_factory=RegistryV2Auth)
    harbor: HarborAuth = field(default_factory=HarborAuth)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Auth":
        """Build an Auth from its single-block mapping form.

        Examples:
            Auth.from_dict({"registry_v2": {"username": "me", "remember": True}})
            Auth.from_dict({"harbor": {"anonymous": True}})
            Auth.from_dict(None)  # anonymous

        Raises:
            ValidationError: If more than one block is given or a block is
                malformed
            UnsupportedOperationError: If the block name is unknown
        """
        auth = cls()
        if not data:
            return auth
        if len(data) > 1:
            raise ValidationError("auth must define a single registry auth block")

        key, payload = next(iter(data.items()))
        kind = normalize_kind(key)
        payload = payload or {}
        if not isinstance(payload, dict):
            raise ValidationError(f"invalid {kind} auth: expected a mapping")

        try:
            if kind == KIND_REGISTRY_V2:
                auth.registry_v2 = RegistryV2Auth(**payload)
            elif kind == KIND_HARBOR:
                auth.harbor = HarborAuth(**payload)
            elif kind != KIND_NONE:
                raise UnsupportedOperationError(f"unsupported auth method: {key}")
        except TypeError as e:
            raise ValidationError(f"invalid {kind} auth: {e}") from e
        auth.kind = kind
        return auth

    def to_dict(self) -> dict[str, Any]:
        """Serialize the active block, leaving the password out."""
        if self.kind == KIND_REGISTRY_V2:
            block = asdict(self.registry_v2)
        elif self.kind == KIND_HARBOR:
            block = asdict(self.harbor)
        else:
            return {KIND_NONE: {}}
        block.pop("password", None)
        return {self.kind: block}

    def normalize(self) -> None:
        """Canonicalize the kind and trim every string field. Idempotent."""
        self.kind = normalize_kind(self.kind)
        self.registry_v2.normalize()
        self.harbor.normalize()

    def validate(self) -> None:
        """Check that the active block carries enough credentials.

        Raises:
            ValidationError: If required fields are missing
            UnsupportedOperationError: If the kind is unknown
        """
        if self.kind == KIND_NONE:
            return
        if self.kind == KIND_REGISTRY_V2:
            v2 = self.registry_v2
            if v2.anonymous:
                return
            if not v2.username:
                raise ValidationError("registry_v2 auth requires username")
            if not v2.password and not (v2.remember and v2.refresh_token):
                raise ValidationError(
                    "registry_v2 auth requires password unless remember is set "
                    "with a refresh_token"
                )
            return
        if self.kind == KIND_HARBOR:
            if self.harbor.anonymous:
                return
            if not self.harbor.username or not self.harbor.password:
                raise ValidationError("harbor auth requires username and password")
            return
        raise UnsupportedOperationError(f"unsupported auth method: {self.kind}")

    @property
    def anonymous(self) -> bool:
        if self.kind == KIND_REGISTRY_V2:
            return self.registry_v2.anonymous
        if self.kind == KIND_HARBOR:
            return self.harbor.anonymous
        return True
