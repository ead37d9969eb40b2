"""Page through Docker Hub tags while watching the rate limit."""

import asyncio
import logging
import sys

# Add parent directory to path
sys.path.insert(0, "src")

from registry_browser_client import DockerHubClient, RateLimitError, RegistryError

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main(query: str = "nginx", max_pages: int = 3):
    async with DockerHubClient() as client:
        try:
            page = await client.search_tags_page(query)
            logger.info(f"Resolved {query!r} to {page.image}")

            for _ in range(max_pages):
                for tag in page.tags:
                    size = f"{tag.size_bytes / 1024 / 1024:.1f} MiB" if tag.size_bytes >= 0 else "-"
                    logger.info(f"  {tag.name:<30} {size:>12}  {tag.pushed_at}")
                if not page.next:
                    break
                page = await client.next_tags_page(page.image, page.next)

            rate_limit = client.rate_limit
            if rate_limit.known:
                logger.info(f"Rate limit: {rate_limit.remaining}/{rate_limit.limit}")

        except RateLimitError as e:
            logger.error(f"Rate limited, retry after {e.retry_after}")
        except RegistryError as e:
            logger.error(f"Registry error: {e}")


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:2]))
