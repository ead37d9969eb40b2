"""Tag history resolution shared by every backend client."""

import logging
from collections.abc import Awaitable, Callable

from ..exceptions import ManifestError
from ..models import HistoryEntry
from .manifest import ConfigV2, ManifestV2, build_history, preferred_manifest_digest

logger = logging.getLogger(__name__)

GetManifest = Callable[[str, str], Awaitable[ManifestV2]]
GetConfig = Callable[[str, str], Awaitable[ConfigV2]]


async def list_tag_history_from_manifest(
    provider: str,
    image: str,
    tag: str,
    get_manifest: GetManifest,
    get_config: GetConfig,
) -> list[HistoryEntry]:
    """Resolve ``image:tag`` to its config blob and build the history.

    Manifest lists / image indexes are resolved to the preferred platform
    manifest before the config digest is read.

    Args:
        provider: Backend name used in error messages
        image: Repository name
        tag: Tag or digest reference
        get_manifest: Coroutine fetching a manifest by (image, reference)
        get_config: Coroutine fetching a config blob by (image, digest)

    Returns:
        History entries, most recent first

    Raises:
        ManifestError: If no config digest can be resolved
    """
    manifest = await get_manifest(image, tag)
    if not manifest.config_digest:
        child = preferred_manifest_digest(manifest)
        if child:
            logger.debug("resolved %s:%s manifest list to %s", image, tag, child)
            manifest = await get_manifest(image, child)
    if not manifest.config_digest:
        raise ManifestError(f"{provider.strip()} config digest missing for {image}:{tag}")

    config = await get_config(image, manifest.config_digest)
    return build_history(manifest, config)
