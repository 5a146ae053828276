"""Pytest configuration and shared fixtures."""

import itertools
from collections.abc import Callable, Sequence
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ci_scheduler.config.settings import SchedulerSettings
from ci_scheduler.engine.scheduler import Scheduler
from ci_scheduler.enums import CheckRunStatus
from ci_scheduler.exceptions import ConfigFetchError, TransactionConflictError
from ci_scheduler.models.buildbucket import Build, ScheduleBuildRequest
from ci_scheduler.models.domain import CheckRun, CheckRunOutput, Commit
from ci_scheduler.providers.base import BuildService, CheckRunService, ConfigFetcher, Datastore, Entity

SINGLE_CI_YAML = """
enabled_branches:
  - master
targets:
  - name: A
    builder: Linux A
    presubmit: true
    postsubmit: true
  - name: B
    builder: Linux B
    enabled_branches:
      - stable
"""

LEGACY_BUILDERS = ["Linux", "Mac", "Windows", "Linux Coverage"]


class FakeDatastore(Datastore):
    """In-memory datastore with optional failure injection.

    ``fail_on`` receives the inserts of each transaction; returning True
    makes the transaction fail with a conflict and write nothing.
    """

    def __init__(self, fail_on: Callable[[Sequence[Entity]], bool] | None = None) -> None:
        self.entities: dict[str, Entity] = {}
        self.fail_on = fail_on
        self.transactions = 0

    async def lookup(self, key: str) -> Entity | None:
        return self.entities.get(key)

    async def run_transaction(self, inserts: Sequence[Entity], deletes: Sequence[str] = ()) -> None:
        self.transactions += 1
        if self.fail_on is not None and self.fail_on(inserts):
            raise TransactionConflictError("Injected transaction failure")
        for entity in inserts:
            if entity.key in self.entities:
                raise TransactionConflictError(f"Entity already exists: {entity.key}", key=entity.key)
        for key in deletes:
            self.entities.pop(key, None)
        for entity in inserts:
            self.entities[entity.key] = entity

    async def query(self, kind: str) -> list[Entity]:
        return [entity for entity in self.entities.values() if entity.KIND == kind]


class FakeConfigFetcher(ConfigFetcher):
    """Serves the same ``.ci.yaml`` text for every ref unless overridden."""

    def __init__(self, text: str | None = SINGLE_CI_YAML) -> None:
        self.text = text
        self.overrides: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []

    async def fetch_config_text(self, slug: str, ref: str) -> str:
        self.calls.append((slug, ref))
        if ref in self.overrides:
            return self.overrides[ref]
        if self.text is None:
            raise ConfigFetchError(f"Failed to fetch .ci.yaml for {slug}@{ref}: HTTP 404", slug=slug, ref=ref)
        return self.text


@pytest.fixture
def settings(tmp_path: Path) -> SchedulerSettings:
    """Settings supporting flutter/flutter with the legacy builder lists."""
    legacy = [{"name": name} for name in LEGACY_BUILDERS]
    return SchedulerSettings(
        github={"api_token": "test-token"},
        buildbucket={"project": "flutter", "try_bucket": "try"},
        scheduler={
            "supported_repositories": ["flutter/flutter"],
            "legacy_builders": {"flutter/flutter": {"try_builders": legacy, "prod_builders": legacy}},
        },
        datastore={"path": str(tmp_path / "datastore.json")},
    )


@pytest.fixture
def datastore() -> FakeDatastore:
    return FakeDatastore()


@pytest.fixture
def config_fetcher() -> FakeConfigFetcher:
    return FakeConfigFetcher()


@pytest.fixture
def checks() -> AsyncMock:
    """Check-reporting backend that hands out increasing check run ids."""
    ids = itertools.count(1)
    service = AsyncMock(spec=CheckRunService)

    async def create_check_run(
        slug: str,
        name: str,
        head_sha: str,
        status: CheckRunStatus = CheckRunStatus.QUEUED,
        output: CheckRunOutput | None = None,
    ) -> CheckRun:
        return CheckRun(id=next(ids), name=name, head_sha=head_sha, status=status)

    async def update_check_run(slug, check_run, status, conclusion=None, output=None) -> CheckRun:
        return CheckRun(
            id=check_run.id,
            name=check_run.name,
            head_sha=check_run.head_sha,
            status=status,
            conclusion=conclusion,
        )

    service.create_check_run.side_effect = create_check_run
    service.update_check_run.side_effect = update_check_run
    service.list_check_runs.return_value = {}
    return service


@pytest.fixture
def build_service() -> AsyncMock:
    """Build-execution backend echoing scheduled builds back with new ids."""
    ids = itertools.count(1000)
    service = AsyncMock(spec=BuildService)

    async def schedule_build(request: ScheduleBuildRequest) -> Build:
        return Build(id=next(ids), builder=request.builder, tags=request.tags)

    service.schedule_build.side_effect = schedule_build
    return service


@pytest.fixture
def scheduler(
    settings: SchedulerSettings,
    datastore: FakeDatastore,
    config_fetcher: FakeConfigFetcher,
    checks: AsyncMock,
    build_service: AsyncMock,
) -> Scheduler:
    return Scheduler(settings, datastore, config_fetcher, checks, build_service)


@pytest.fixture
def make_commit() -> Callable[..., Commit]:
    """Factory for commits of flutter/flutter on master."""

    def _make(sha: str = "1", branch: str = "master", repository: str = "flutter/flutter") -> Commit:
        return Commit(
            repository=repository,
            branch=branch,
            sha=sha,
            timestamp=1,
            author="dash",
            author_avatar_url="dashatar",
            message="example message",
        )

    return _make
