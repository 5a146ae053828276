"""
Ingestion of landed commits into Commit and Task records.

Each new commit is stored together with one ``New`` task per postsubmit
builder in a single transaction, so a stored commit always has its full
task set. Commits that are already stored are skipped without touching
their tasks, which makes redelivered push and pull request events safe.
"""

import structlog

from ci_scheduler.config.settings import SchedulerConfig
from ci_scheduler.engine.config_resolver import ConfigResolver, ResolutionResult
from ci_scheduler.engine.target_selector import select_postsubmit_builders
from ci_scheduler.exceptions import DatastoreError
from ci_scheduler.models.domain import Builder, Commit, Task
from ci_scheduler.models.events import PullRequest
from ci_scheduler.providers.base import Datastore

log = structlog.get_logger(__name__)


class CommitIngestor:
    """Turns commits and merged pull requests into persisted records."""

    def __init__(self, datastore: Datastore, resolver: ConfigResolver, config: SchedulerConfig) -> None:
        self.datastore = datastore
        self.resolver = resolver
        self.config = config

    def get_post_submit_builders(self, commit: Commit, resolution: ResolutionResult) -> list[Builder]:
        """Postsubmit builders of ``commit``: legacy prod builders, then ``.ci.yaml`` targets."""
        return select_postsubmit_builders(
            resolution.config,
            commit.branch,
            self.config.prod_builders(commit.repository),
            commit.repository,
        )

    async def add_commits(self, commits: list[Commit]) -> list[Commit]:
        """Store previously unknown commits of supported repositories.

        Commits are processed in order, each in its own transaction. A
        failed transaction is logged and the remaining commits are still
        processed.

        Args:
            commits: Commits that landed, in push order

        Returns:
            The commits that were inserted

        Raises:
            ConfigFetchError: ``.ci.yaml`` cannot be fetched for a new commit
        """
        inserted: list[Commit] = []
        for commit in commits:
            if commit.repository not in self.config.supported_repositories:
                log.debug("commit_skipped_unsupported_repository", repository=commit.repository, sha=commit.sha)
                continue

            try:
                existing = await self.datastore.lookup(commit.key)
            except DatastoreError as e:
                log.error("commit_lookup_failed", key=commit.key, error=e.message)
                continue
            if existing is not None:
                log.debug("commit_skipped_existing", key=commit.key)
                continue

            resolution = await self.resolver.resolve(commit.repository, commit.sha)
            if not resolution.ok:
                log.warning("commit_using_legacy_builders_only", key=commit.key, error=resolution.error)
            tasks = [Task.for_builder(commit, builder) for builder in self.get_post_submit_builders(commit, resolution)]

            try:
                await self.datastore.run_transaction([commit, *tasks])
            except DatastoreError as e:
                log.error("commit_insert_failed", key=commit.key, error=e.message)
                continue

            log.info("commit_inserted", key=commit.key, tasks=len(tasks))
            inserted.append(commit)
        return inserted

    async def add_pull_request(self, pr: PullRequest) -> Commit | None:
        """Store the merge commit of a merged pull request.

        Returns:
            The inserted commit, or None when the pull request is not merged
            or its commit was skipped
        """
        if not pr.merged:
            log.debug("pull_request_not_merged", number=pr.number)
            return None

        commit = pr.to_merge_commit()
        inserted = await self.add_commits([commit])
        return inserted[0] if inserted else None
