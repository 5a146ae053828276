"""
Scheduler facade.

``Scheduler`` is the single entry point used by the webhook server and the
CLI. It owns no state of its own: every collaborator is injected, so tests
build one per case with fakes and production code builds one through
``ci_scheduler.providers.factory.create_scheduler``.

Example:
    >>> scheduler = Scheduler(settings, datastore, fetcher, checks, builds)
    >>> await scheduler.add_commits(push_event.to_commits())
    >>> await scheduler.trigger_presubmit_targets(
    ...     branch="master", pr_number=42, slug="flutter/flutter", commit_sha="abc"
    ... )
"""

import structlog

from ci_scheduler.config.settings import SchedulerSettings
from ci_scheduler.engine.build_scheduler import BuildScheduler, ScheduledBuild
from ci_scheduler.engine.config_resolver import ConfigResolver, ResolutionResult
from ci_scheduler.engine.ingestion import CommitIngestor
from ci_scheduler.engine.presubmit import PresubmitTrigger, TriggerResult
from ci_scheduler.engine.retry import RetryReconciler
from ci_scheduler.models.domain import Builder, Commit
from ci_scheduler.models.events import CheckRunEvent, CheckSuiteEvent, PullRequest
from ci_scheduler.providers.base import BuildService, CheckRunService, ConfigFetcher, Datastore
from ci_scheduler.utils.caching import AsyncCache

log = structlog.get_logger(__name__)


class Scheduler:
    """Commit ingestion, presubmit triggering and retries for supported repositories."""

    def __init__(
        self,
        settings: SchedulerSettings,
        datastore: Datastore,
        config_fetcher: ConfigFetcher,
        checks: CheckRunService,
        build_service: BuildService,
    ) -> None:
        """Wire the scheduling components.

        Args:
            settings: Process settings
            datastore: Commit and task persistence
            config_fetcher: Source of ``.ci.yaml`` text
            checks: Check-reporting backend
            build_service: Build-execution backend
        """
        self.settings = settings
        self.datastore = datastore
        self.checks = checks
        self.build_service = build_service

        cache = AsyncCache(ttl_seconds=settings.scheduler.config_cache_ttl, max_size=500)
        self.resolver = ConfigResolver(config_fetcher, cache)
        self.builds = BuildScheduler(build_service, settings.buildbucket, settings.scheduler.user_agent)
        self.ingestor = CommitIngestor(datastore, self.resolver, settings.scheduler)
        self.presubmit = PresubmitTrigger(self.resolver, checks, self.builds, settings.scheduler)
        self.reconciler = RetryReconciler(checks, self.builds, settings.scheduler.validation_check_name)

    async def add_commits(self, commits: list[Commit]) -> list[Commit]:
        return await self.ingestor.add_commits(commits)

    async def add_pull_request(self, pr: PullRequest) -> Commit | None:
        return await self.ingestor.add_pull_request(pr)

    async def get_scheduler_config(self, commit: Commit) -> ResolutionResult:
        """Resolved ``.ci.yaml`` of ``commit``, for inspection."""
        return await self.resolver.resolve(commit.repository, commit.sha)

    async def get_presubmit_builders(self, commit: Commit, pr_number: int) -> list[Builder]:
        return await self.presubmit.get_presubmit_builders(commit, pr_number)

    def get_post_submit_builders(self, commit: Commit, resolution: ResolutionResult) -> list[Builder]:
        return self.ingestor.get_post_submit_builders(commit, resolution)

    async def trigger_presubmit_targets(
        self,
        branch: str,
        pr_number: int,
        slug: str,
        commit_sha: str,
    ) -> TriggerResult:
        return await self.presubmit.trigger_presubmit_targets(branch, pr_number, slug, commit_sha)

    async def retry_presubmit_targets(
        self,
        pr_number: int,
        slug: str,
        commit_sha: str,
        check_suite_event: CheckSuiteEvent,
    ) -> list[ScheduledBuild]:
        return await self.reconciler.retry_presubmit_targets(pr_number, slug, commit_sha, check_suite_event)

    async def process_check_run(self, event: CheckRunEvent) -> bool:
        return await self.reconciler.process_check_run(event)

    async def close(self) -> None:
        """Close every collaborator."""
        for collaborator in (self.resolver.fetcher, self.checks, self.build_service, self.datastore):
            await collaborator.close()
        log.debug("scheduler_closed")
