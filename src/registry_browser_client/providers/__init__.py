"""Registry providers and provider lookup."""

from ..core.auth import KIND_HARBOR, KIND_NONE, KIND_REGISTRY_V2, Auth
from .base import AuthUI, HistoryTableSpec, ImageTableSpec, Provider, TableSpec, TagTableSpec
from .harbor import HarborProvider
from .registry_v2 import RegistryV2Provider


def provider_for_kind(kind: str) -> Provider:
    """Return the provider for ``kind``; unknown kinds use Registry V2."""
    if (kind or "").strip().lower() == KIND_HARBOR:
        return HarborProvider()
    return RegistryV2Provider()


def provider_for_auth(auth: Auth) -> Provider:
    """Return the provider for ``auth``, treating anonymous kinds as Registry V2."""
    kind = (auth.kind or "").strip().lower()
    if kind in ("", KIND_NONE, "anonymous"):
        kind = KIND_REGISTRY_V2
    return provider_for_kind(kind)


__all__ = [
    "AuthUI",
    "HarborProvider",
    "HistoryTableSpec",
    "ImageTableSpec",
    "Provider",
    "RegistryV2Provider",
    "TableSpec",
    "TagTableSpec",
    "provider_for_auth",
    "provider_for_kind",
]
