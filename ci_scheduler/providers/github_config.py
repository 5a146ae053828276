"""Fetch ``.ci.yaml`` text from raw.githubusercontent.com."""

import httpx
import structlog

from ci_scheduler.exceptions import ConfigFetchError
from ci_scheduler.providers.base import ConfigFetcher
from ci_scheduler.utils.connection_pool import HTTPConnectionPool
from ci_scheduler.utils.retry import async_retry

log = structlog.get_logger(__name__)


class RawGitHubConfigFetcher(ConfigFetcher):
    """Reads the configuration file through GitHub's raw content host."""

    def __init__(
        self,
        raw_content_url: str = "https://raw.githubusercontent.com",
        config_path: str = ".ci.yaml",
        token: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the fetcher.

        Args:
            raw_content_url: Raw content host (GitHub Enterprise installs differ)
            config_path: Path of the configuration file within the repository
            token: Optional token for private repositories
            timeout: Request timeout in seconds
        """
        self.raw_content_url = raw_content_url.rstrip("/")
        self.config_path = config_path.lstrip("/")
        headers = {"Authorization": f"token {token.strip()}"} if token else {}
        self._pool = HTTPConnectionPool(base_url=self.raw_content_url, timeout=timeout, headers=headers)

    async def fetch_config_text(self, slug: str, ref: str) -> str:
        """Fetch and decode the configuration file."""
        log.info("fetch_config_text", slug=slug, ref=ref)

        try:
            response = await self._get(f"/{slug}/{ref}/{self.config_path}")
        except httpx.TransportError as e:
            raise ConfigFetchError(f"Cannot reach {self.raw_content_url}: {e}", slug=slug, ref=ref) from e

        if response.status_code != 200:
            raise ConfigFetchError(
                f"Failed to fetch {self.config_path} for {slug}@{ref}: HTTP {response.status_code}",
                slug=slug,
                ref=ref,
            )

        try:
            return response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConfigFetchError(f"{self.config_path} for {slug}@{ref} is not UTF-8", slug=slug, ref=ref) from e

    @async_retry(max_attempts=3, backoff_factor=1.5, exceptions=(httpx.TransportError,))
    async def _get(self, path: str) -> httpx.Response:
        return await self._pool.get(path)

    async def close(self) -> None:
        await self._pool.close()
