"""Manifest resolution and image history building."""

from .manifest import (
    MANIFEST_ACCEPT,
    ConfigHistory,
    ConfigV2,
    ManifestDescriptor,
    ManifestV2,
    Platform,
    build_history,
    parse_docker_time,
    preferred_manifest_digest,
)
from .resolver import list_tag_history_from_manifest

__all__ = [
    "MANIFEST_ACCEPT",
    "ConfigHistory",
    "ConfigV2",
    "ManifestDescriptor",
    "ManifestV2",
    "Platform",
    "build_history",
    "list_tag_history_from_manifest",
    "parse_docker_time",
    "preferred_manifest_digest",
]
