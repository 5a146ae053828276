"""
Retrying presubmit builds from check suite and check run rerequests.

A rerequested check suite retries only the targets whose latest build
ended in a failed state (``FAILURE``, ``INFRA_FAILURE``, ``CANCELED``).
Passing, scheduled and running targets are left alone and no check run is
modified: the new build reports to the existing check run through its
``github_checkrun`` tag.

A rerequested check run retries its one target under a fresh check run.
The configuration validation check run has no builder behind it, so a
rerequest of it is acknowledged without scheduling anything.
"""

import structlog

from ci_scheduler.engine.build_scheduler import BuildScheduler, ScheduledBuild, latest_builds_by_name
from ci_scheduler.enums import FAILED_BUILD_STATUSES
from ci_scheduler.exceptions import BuildServiceError
from ci_scheduler.models.domain import Builder
from ci_scheduler.models.events import CheckRunAction, CheckRunEvent, CheckSuiteAction, CheckSuiteEvent
from ci_scheduler.providers.base import CheckRunService

log = structlog.get_logger(__name__)


class RetryReconciler:
    """Matches check runs to their builds and reschedules the failed ones."""

    def __init__(
        self,
        checks: CheckRunService,
        builds: BuildScheduler,
        validation_check_name: str = "ci.yaml validation",
    ) -> None:
        self.checks = checks
        self.builds = builds
        self.validation_check_name = validation_check_name

    async def retry_presubmit_targets(
        self,
        pr_number: int,
        slug: str,
        commit_sha: str,
        check_suite_event: CheckSuiteEvent,
    ) -> list[ScheduledBuild]:
        """Reschedule the failed presubmit targets of a pull request head.

        Args:
            pr_number: Pull request the check suite belongs to
            slug: Repository full name
            commit_sha: Head sha of the check suite
            check_suite_event: The triggering event; only ``rerequested`` retries

        Returns:
            One entry per rescheduled build

        Raises:
            CheckRunServiceError: Check runs cannot be listed
            BuildServiceError: Builds cannot be searched or scheduled
        """
        if check_suite_event.action != CheckSuiteAction.REREQUESTED:
            log.debug("check_suite_ignored", action=check_suite_event.action.value)
            return []

        check_runs = await self.checks.list_check_runs(slug, commit_sha)
        latest = latest_builds_by_name(await self.builds.get_try_builds(slug, pr_number, commit_sha))

        retried: list[ScheduledBuild] = []
        for name, check_run in check_runs.items():
            build = latest.get(name)
            if build is None:
                log.debug("retry_no_build", check_run=name)
                continue
            if build.status not in FAILED_BUILD_STATUSES:
                continue

            rescheduled = await self.builds.reschedule(build, check_run.id, slug, pr_number)
            retried.append(ScheduledBuild(builder_name=name, build_id=rescheduled.id, check_run_id=check_run.id))

        log.info("presubmit_targets_retried", slug=slug, pr=pr_number, sha=commit_sha, retried=len(retried))
        return retried

    async def process_check_run(self, event: CheckRunEvent) -> bool:
        """Handle a check run event.

        Returns:
            False when a rerequest could not be honoured (no pull request,
            or the build backend rejected the build); True otherwise

        Raises:
            CheckRunServiceError: The replacement check run cannot be created
        """
        if event.action != CheckRunAction.REREQUESTED:
            log.debug("check_run_ignored", action=event.action.value, name=event.check_run.name)
            return True

        slug = event.repository.full_name
        payload = event.check_run
        if payload.name == self.validation_check_name:
            log.info("validation_check_run_rerequest_ignored", slug=slug, head_sha=payload.head_sha)
            return True

        pull_requests = payload.pull_requests
        if not pull_requests and payload.check_suite is not None:
            pull_requests = payload.check_suite.pull_requests
        if not pull_requests:
            log.warning("check_run_without_pull_request", slug=slug, name=payload.name, head_sha=payload.head_sha)
            return False
        pr_number = pull_requests[0].number

        check_run = await self.checks.create_check_run(slug, payload.name, payload.head_sha)
        builder = Builder(name=payload.name, repo=slug)
        try:
            await self.builds.schedule_try_build(slug, pr_number, payload.head_sha, builder, check_run.id)
        except BuildServiceError as e:
            log.error("check_run_retry_failed", slug=slug, name=payload.name, error=e.message)
            return False

        log.info("check_run_retried", slug=slug, pr=pr_number, name=payload.name)
        return True
