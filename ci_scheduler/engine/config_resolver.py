"""Resolve a repository's ``.ci.yaml`` at a commit into a validated configuration."""

from dataclasses import dataclass

import structlog

from ci_scheduler.config.ci_yaml import ResolvedConfig, parse_ci_yaml
from ci_scheduler.exceptions import CiYamlValidationError
from ci_scheduler.providers.base import ConfigFetcher
from ci_scheduler.utils.caching import AsyncCache

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of resolving ``.ci.yaml``: either a configuration or an error message."""

    config: ResolvedConfig | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.config is not None


class ConfigResolver:
    """Fetches, caches and validates ``.ci.yaml``.

    Validation failures come back as a ``ResolutionResult`` carrying the
    error message. Fetch failures (``ConfigFetchError``) propagate.
    """

    def __init__(self, fetcher: ConfigFetcher, cache: AsyncCache | None = None) -> None:
        """Initialize the resolver.

        Args:
            fetcher: Source of raw configuration text
            cache: Cache for fetched text; a private 5 minute cache when omitted
        """
        self.fetcher = fetcher
        self.cache = cache if cache is not None else AsyncCache(ttl_seconds=300, max_size=500)

    async def fetch_text(self, slug: str, ref: str) -> str:
        key = f"{slug}/{ref}"
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        text = await self.fetcher.fetch_config_text(slug, ref)
        await self.cache.set(key, text)
        return text

    async def resolve(self, slug: str, ref: str) -> ResolutionResult:
        """Resolve the configuration of ``slug`` at ``ref``.

        Raises:
            ConfigFetchError: The configuration text cannot be fetched
        """
        text = await self.fetch_text(slug, ref)
        try:
            config = parse_ci_yaml(text)
        except CiYamlValidationError as e:
            log.warning("ci_yaml_invalid", slug=slug, ref=ref, error=e.message)
            return ResolutionResult(error=e.message)

        log.debug("ci_yaml_resolved", slug=slug, ref=ref, targets=len(config.targets))
        return ResolutionResult(config=config)
