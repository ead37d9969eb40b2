"""Example usage of the async registry browser client."""

import asyncio
import logging
import sys

# Add parent directory to path
sys.path.insert(0, "src")

from registry_browser_client import (
    Auth,
    RegistryError,
    list_images,
    list_tag_history,
    new_client,
    pull_command,
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main():
    """Browse images, tags and the history of one tag."""
    registry_url = "http://localhost:15000"

    try:
        logger.info("Listing images...")
        images = await list_images(registry_url)
        logger.info(f"Found {len(images)} images: {[image.name for image in images]}")

        if images:
            image = images[0].name
            history = await list_tag_history(registry_url, image, "latest")
            for entry in history:
                logger.info(f"  {entry.size_bytes:>10}  {entry.created_by}")
            logger.info(pull_command(registry_url, "", image, "latest"))

    except RegistryError as e:
        logger.error(f"Registry error: {e}")


async def concurrent_operations():
    """List tags of several images over one shared client."""
    registry_url = "http://localhost:15000"
    auth = Auth(kind="registry_v2")
    auth.registry_v2.anonymous = True

    try:
        async with await new_client(registry_url, auth) as client:
            images = await client.list_images()

            tag_tasks = [client.list_tags(image.name) for image in images[:3]]
            tag_results = await asyncio.gather(*tag_tasks)
            for image, tags in zip(images[:3], tag_results, strict=False):
                logger.info(f"Image {image.name}: {[tag.name for tag in tags]}")

    except RegistryError as e:
        logger.error(f"Registry error: {e}")


if __name__ == "__main__":
    asyncio.run(main())
    asyncio.run(concurrent_operations())
