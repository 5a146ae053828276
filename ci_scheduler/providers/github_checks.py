"""GitHub Checks implementation using PyGithub."""

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from github import Auth, Github, GithubException  # type: ignore[import-not-found]
from github.CheckRun import CheckRun as GHCheckRun  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from ci_scheduler.enums import CheckRunConclusion, CheckRunStatus
from ci_scheduler.exceptions import CheckRunServiceError
from ci_scheduler.models.domain import CheckRun, CheckRunOutput
from ci_scheduler.providers.base import CheckRunService

log = structlog.get_logger(__name__)

T = TypeVar("T")


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a blocking PyGithub call in a worker thread."""
    return await asyncio.to_thread(func)


class GitHubChecksProvider(CheckRunService):
    """Check runs through the GitHub Checks API."""

    def __init__(self, token: str, base_url: str = "https://api.github.com"):
        """Initialize the provider.

        Args:
            token: GitHub App installation token or personal access token
            base_url: GitHub API base URL (for GitHub Enterprise)
        """
        self.token = token.strip() if token else token
        # Pydantic HttpUrl adds a trailing slash
        self.base_url = base_url.rstrip("/")
        self._client: Github | None = None
        self._repos: dict[str, GHRepository] = {}

    def _get_client(self) -> Github:
        if self._client is None:
            self._client = Github(auth=Auth.Token(self.token), base_url=self.base_url)
        return self._client

    def _get_repo(self, slug: str) -> GHRepository:
        if slug not in self._repos:
            self._repos[slug] = self._get_client().get_repo(slug)
        return self._repos[slug]

    async def close(self) -> None:
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repos.clear()

    async def create_check_run(
        self,
        slug: str,
        name: str,
        head_sha: str,
        status: CheckRunStatus = CheckRunStatus.QUEUED,
        output: CheckRunOutput | None = None,
    ) -> CheckRun:
        log.info("create_check_run", slug=slug, name=name, head_sha=head_sha, status=status.value)

        def _create() -> GHCheckRun:
            kwargs: dict[str, Any] = {"name": name, "head_sha": head_sha, "status": status.value}
            if output is not None:
                kwargs["output"] = output.to_dict()
            return self._get_repo(slug).create_check_run(**kwargs)

        try:
            return self._convert_check_run(await _run_sync(_create))
        except GithubException as e:
            log.error("github_create_check_run_failed", slug=slug, name=name, error=str(e))
            raise CheckRunServiceError(f"Failed to create check run {name!r}", status_code=e.status) from e

    async def update_check_run(
        self,
        slug: str,
        check_run: CheckRun,
        status: CheckRunStatus,
        conclusion: CheckRunConclusion | None = None,
        output: CheckRunOutput | None = None,
    ) -> CheckRun:
        log.info(
            "update_check_run",
            slug=slug,
            check_run_id=check_run.id,
            status=status.value,
            conclusion=conclusion.value if conclusion else None,
        )

        def _update() -> GHCheckRun:
            gh_check_run = self._get_repo(slug).get_check_run(check_run.id)
            kwargs: dict[str, Any] = {"status": status.value}
            if conclusion is not None:
                kwargs["conclusion"] = conclusion.value
            if output is not None:
                kwargs["output"] = output.to_dict()
            gh_check_run.edit(**kwargs)
            return gh_check_run

        try:
            return self._convert_check_run(await _run_sync(_update))
        except GithubException as e:
            log.error("github_update_check_run_failed", slug=slug, check_run_id=check_run.id, error=str(e))
            raise CheckRunServiceError(f"Failed to update check run {check_run.id}", status_code=e.status) from e

    async def list_check_runs(self, slug: str, head_sha: str) -> dict[str, CheckRun]:
        log.info("list_check_runs", slug=slug, head_sha=head_sha)

        try:
            gh_check_runs = await _run_sync(lambda: list(self._get_repo(slug).get_commit(head_sha).get_check_runs()))
        except GithubException as e:
            log.error("github_list_check_runs_failed", slug=slug, head_sha=head_sha, error=str(e))
            raise CheckRunServiceError(f"Failed to list check runs for {head_sha}", status_code=e.status) from e

        check_runs: dict[str, CheckRun] = {}
        # GitHub lists newest first; keep the most recent run per name
        for gh_check_run in gh_check_runs:
            check_runs.setdefault(gh_check_run.name, self._convert_check_run(gh_check_run))
        return check_runs

    @staticmethod
    def _convert_check_run(gh_check_run: GHCheckRun) -> CheckRun:
        try:
            status = CheckRunStatus(gh_check_run.status)
        except ValueError:
            status = CheckRunStatus.QUEUED
        conclusion = CheckRunConclusion(gh_check_run.conclusion) if gh_check_run.conclusion else None
        return CheckRun(
            id=gh_check_run.id,
            name=gh_check_run.name,
            head_sha=gh_check_run.head_sha,
            status=status,
            conclusion=conclusion,
            check_suite_id=gh_check_run.check_suite_id,
            external_id=gh_check_run.external_id,
        )
