"""Manifest and image config wire shapes, and the history builder."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..exceptions import MalformedResponseError
from ..models import UNKNOWN, HistoryEntry

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
OCI_MANIFEST_V1 = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_INDEX_V1 = "application/vnd.oci.image.index.v1+json"

SINGLE_MANIFEST_TYPES = (DOCKER_MANIFEST_V2, OCI_MANIFEST_V1)

MANIFEST_ACCEPT = ", ".join(
    [DOCKER_MANIFEST_V2, OCI_MANIFEST_V1, DOCKER_MANIFEST_LIST_V2, OCI_INDEX_V1]
)


@dataclass
class Platform:
    os: str = ""
    architecture: str = ""
    variant: str = ""


@dataclass
class ManifestDescriptor:
    """Entry of a manifest list / image index."""

    digest: str = ""
    media_type: str = ""
    platform: Platform = field(default_factory=Platform)


@dataclass
class ManifestV2:
    """Single-platform manifest, or a manifest list when ``manifests`` is set."""

    media_type: str = ""
    config_digest: str = ""
    layer_sizes: list[int] = field(default_factory=list)
    manifests: list[ManifestDescriptor] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ManifestV2":
        if not isinstance(data, dict):
            raise MalformedResponseError("manifest is not a JSON object")
        config = data.get("config") or {}
        layers = data.get("layers") or []
        manifests = []
        for entry in data.get("manifests") or []:
            if not isinstance(entry, dict):
                continue
            platform = entry.get("platform") or {}
            manifests.append(
                ManifestDescriptor(
                    digest=str(entry.get("digest") or ""),
                    media_type=str(entry.get("mediaType") or ""),
                    platform=Platform(
                        os=str(platform.get("os") or ""),
                        architecture=str(platform.get("architecture") or ""),
                        variant=str(platform.get("variant") or ""),
                    ),
                )
            )
        return cls(
            media_type=str(data.get("mediaType") or ""),
            config_digest=str(config.get("digest") or "") if isinstance(config, dict) else "",
            layer_sizes=[_as_int(layer.get("size")) for layer in layers if isinstance(layer, dict)],
            manifests=manifests,
        )


@dataclass
class ConfigHistory:
    created: str = ""
    created_by: str = ""
    comment: str = ""
    empty_layer: bool = False


@dataclass
class ConfigV2:
    """Image config blob, reduced to its build history (oldest first)."""

    history: list[ConfigHistory] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ConfigV2":
        if not isinstance(data, dict):
            raise MalformedResponseError("image config is not a JSON object")
        history = []
        for entry in data.get("history") or []:
            if not isinstance(entry, dict):
                continue
            history.append(
                ConfigHistory(
                    created=str(entry.get("created") or ""),
                    created_by=str(entry.get("created_by") or ""),
                    comment=str(entry.get("comment") or ""),
                    empty_layer=bool(entry.get("empty_layer", False)),
                )
            )
        return cls(history=history)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_docker_time(value: str) -> datetime | None:
    """Parse an RFC 3339 timestamp, with or without fractional seconds.

    Nanosecond precision is truncated to microseconds. Returns None when the
    value is empty or unparseable.
    """
    value = (value or "").strip()
    if not value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"

    date_part, sep, rest = value.partition("T")
    if sep and "." in rest:
        clock, _, fraction = rest.partition(".")
        digits = len(fraction) - len(fraction.lstrip("0123456789"))
        fraction, offset = fraction[:digits], fraction[digits:]
        value = f"{date_part}T{clock}.{fraction[:6].ljust(6, '0')}{offset}"

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)


def preferred_manifest_digest(manifest: ManifestV2) -> str:
    """Pick the child manifest most likely to match a typical host.

    Scoring: linux +20; amd64/x86_64 +10, else arm64/aarch64 +8, else arm
    with a variant +4; +2 for a single-manifest media type. The first entry
    with the strictly highest score wins.
    """
    best_digest = ""
    best_score = -1
    for descriptor in manifest.manifests:
        digest = descriptor.digest.strip()
        if not digest:
            continue
        os_name = descriptor.platform.os.strip().lower()
        arch = descriptor.platform.architecture.strip().lower()
        variant = descriptor.platform.variant.strip().lower()

        score = 0
        if os_name == "linux":
            score += 20
        if arch in ("amd64", "x86_64"):
            score += 10
        elif arch in ("arm64", "aarch64"):
            score += 8
        elif arch == "arm" and variant:
            score += 4
        if descriptor.media_type in SINGLE_MANIFEST_TYPES:
            score += 2

        if score > best_score:
            best_score = score
            best_digest = digest
    return best_digest


def build_history(manifest: ManifestV2, config: ConfigV2) -> list[HistoryEntry]:
    """Pair config history with layer sizes, most recent step first.

    Each non-empty history entry consumes the next layer size in order;
    empty-layer entries and entries beyond the available layers get -1.
    """
    entries = []
    layer_index = 0
    for step in config.history:
        size = UNKNOWN
        if not step.empty_layer and layer_index < len(manifest.layer_sizes):
            size = manifest.layer_sizes[layer_index]
            layer_index += 1
        entries.append(
            HistoryEntry(
                created_at=parse_docker_time(step.created),
                created_by=step.created_by.strip(),
                comment=step.comment.strip(),
                size_bytes=size,
                empty_layer=step.empty_layer,
            )
        )
    entries.reverse()
    return entries
