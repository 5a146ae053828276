"""
Abstract base classes for the scheduler's external collaborators.

The scheduling core only talks to these interfaces:

- ``ConfigFetcher``: raw ``.ci.yaml`` text at a ref
- ``Datastore``: transactional key/value persistence for commits and tasks
- ``CheckRunService``: the check-reporting backend (GitHub Checks)
- ``BuildService``: the build-execution backend (Buildbucket)

Concrete implementations live next to this module; tests inject fakes.
All methods are async so implementations can do network or disk I/O.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ci_scheduler.enums import CheckRunConclusion, CheckRunStatus
from ci_scheduler.models.buildbucket import (
    BatchRequest,
    BatchResponse,
    Build,
    ScheduleBuildRequest,
    SearchBuildsRequest,
)
from ci_scheduler.models.domain import CheckRun, CheckRunOutput, Commit, Task

Entity = Commit | Task


class ConfigFetcher(ABC):
    """Fetches a repository's build configuration text."""

    @abstractmethod
    async def fetch_config_text(self, slug: str, ref: str) -> str:
        """Return the ``.ci.yaml`` text of ``slug`` at ``ref``.

        Args:
            slug: Repository full name (``owner/name``)
            ref: Commit sha or branch name

        Raises:
            ConfigFetchError: The file cannot be fetched or decoded as UTF-8.
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass


class Datastore(ABC):
    """Transactional persistence for ``Commit`` and ``Task`` entities.

    Entities are addressed by their ``key`` property. Inserts are
    create-only: inserting an existing key fails the whole transaction,
    which is what serialises concurrent ingestion of the same commit.
    """

    @abstractmethod
    async def lookup(self, key: str) -> Entity | None:
        """Return the entity stored under ``key``, or None."""
        pass

    @abstractmethod
    async def run_transaction(self, inserts: Sequence[Entity], deletes: Sequence[str] = ()) -> None:
        """Atomically insert ``inserts`` and delete ``deletes``.

        Either every write is applied or none is.

        Raises:
            TransactionConflictError: An inserted key already exists.
            DatastoreError: Any other persistence failure.
        """
        pass

    @abstractmethod
    async def query(self, kind: str) -> list[Entity]:
        """All stored entities of ``kind`` ("Commit" or "Task")."""
        pass

    async def close(self) -> None:
        pass


class CheckRunService(ABC):
    """Check-reporting backend."""

    @abstractmethod
    async def create_check_run(
        self,
        slug: str,
        name: str,
        head_sha: str,
        status: CheckRunStatus = CheckRunStatus.QUEUED,
        output: CheckRunOutput | None = None,
    ) -> CheckRun:
        """Create a check run named ``name`` on ``head_sha``.

        Raises:
            CheckRunServiceError: The backend rejected the request.
        """
        pass

    @abstractmethod
    async def update_check_run(
        self,
        slug: str,
        check_run: CheckRun,
        status: CheckRunStatus,
        conclusion: CheckRunConclusion | None = None,
        output: CheckRunOutput | None = None,
    ) -> CheckRun:
        """Update status, conclusion and output of an existing check run.

        Raises:
            CheckRunServiceError: The backend rejected the request.
        """
        pass

    @abstractmethod
    async def list_check_runs(self, slug: str, head_sha: str) -> dict[str, CheckRun]:
        """All check runs of ``head_sha`` keyed by name (most recent wins).

        Raises:
            CheckRunServiceError: The backend rejected the request.
        """
        pass

    async def close(self) -> None:
        pass


class BuildService(ABC):
    """Build-execution backend."""

    @abstractmethod
    async def schedule_build(self, request: ScheduleBuildRequest) -> Build:
        """Schedule one build.

        Raises:
            BuildServiceError: The backend rejected the request.
        """
        pass

    @abstractmethod
    async def search_builds(self, request: SearchBuildsRequest) -> list[Build]:
        """Builds matching the request predicate.

        Raises:
            BuildServiceError: The backend rejected the request.
        """
        pass

    @abstractmethod
    async def batch(self, request: BatchRequest) -> BatchResponse:
        """Run several search/schedule sub-requests in one round trip.

        Raises:
            BuildServiceError: The backend rejected the request.
        """
        pass

    async def close(self) -> None:
        pass
