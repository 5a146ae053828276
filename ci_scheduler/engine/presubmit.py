"""Presubmit triggering: validate ``.ci.yaml`` and start one build per target."""

from dataclasses import dataclass, field

import structlog

from ci_scheduler.config.settings import SchedulerConfig
from ci_scheduler.engine.build_scheduler import BuildScheduler, ScheduledBuild
from ci_scheduler.engine.config_resolver import ConfigResolver
from ci_scheduler.engine.target_selector import select_presubmit_builders
from ci_scheduler.enums import CheckRunConclusion, CheckRunStatus
from ci_scheduler.models.domain import Builder, CheckRunOutput, Commit
from ci_scheduler.providers.base import CheckRunService

log = structlog.get_logger(__name__)


@dataclass
class TriggerResult:
    """What ``trigger_presubmit_targets`` did for one pull request head."""

    validation_passed: bool
    message: str = ""
    builds: list[ScheduledBuild] = field(default_factory=list)


class PresubmitTrigger:
    """Reports configuration validity and schedules presubmit builds."""

    def __init__(
        self,
        resolver: ConfigResolver,
        checks: CheckRunService,
        builds: BuildScheduler,
        config: SchedulerConfig,
    ) -> None:
        self.resolver = resolver
        self.checks = checks
        self.builds = builds
        self.config = config

    async def get_presubmit_builders(self, commit: Commit, pr_number: int) -> list[Builder]:
        """Presubmit builders for ``commit``'s repository and branch.

        Read-only; an invalid configuration yields the legacy builders only.
        """
        resolution = await self.resolver.resolve(commit.repository, commit.sha)
        builders = select_presubmit_builders(
            resolution.config,
            commit.branch,
            self.config.try_builders(commit.repository),
            commit.repository,
        )
        log.debug("presubmit_builders_selected", pr=pr_number, count=len(builders))
        return builders

    async def trigger_presubmit_targets(
        self,
        branch: str,
        pr_number: int,
        slug: str,
        commit_sha: str,
    ) -> TriggerResult:
        """Validate the configuration and schedule every presubmit builder.

        A validation check run is created first and completed before any
        build is scheduled. Nothing is scheduled when validation fails.

        Raises:
            ConfigFetchError: ``.ci.yaml`` cannot be fetched
            CheckRunServiceError: A check run cannot be created or updated
            BuildServiceError: A build cannot be scheduled
        """
        resolution = await self.resolver.resolve(slug, commit_sha)
        validation = await self.checks.create_check_run(
            slug,
            self.config.validation_check_name,
            commit_sha,
            status=CheckRunStatus.IN_PROGRESS,
        )

        if not resolution.ok:
            message = resolution.error or "ERROR: invalid configuration"
            await self.checks.update_check_run(
                slug,
                validation,
                CheckRunStatus.COMPLETED,
                conclusion=CheckRunConclusion.FAILURE,
                output=CheckRunOutput(
                    title=f"{self.config.ci_yaml_path} validation failed",
                    summary=f"{self.config.ci_yaml_path} is not valid; no presubmit builds were scheduled.",
                    text=message,
                ),
            )
            log.warning("presubmit_validation_failed", slug=slug, pr=pr_number, sha=commit_sha, error=message)
            return TriggerResult(validation_passed=False, message=message)

        await self.checks.update_check_run(
            slug,
            validation,
            CheckRunStatus.COMPLETED,
            conclusion=CheckRunConclusion.SUCCESS,
            output=CheckRunOutput(
                title=f"{self.config.ci_yaml_path} validation",
                summary=f"Successfully validated {self.config.ci_yaml_path}",
            ),
        )

        builders = select_presubmit_builders(resolution.config, branch, self.config.try_builders(slug), slug)
        result = TriggerResult(validation_passed=True)
        for builder in builders:
            check_run = await self.checks.create_check_run(slug, builder.name, commit_sha)
            build = await self.builds.schedule_try_build(slug, pr_number, commit_sha, builder, check_run.id)
            result.builds.append(ScheduledBuild(builder_name=builder.name, build_id=build.id, check_run_id=check_run.id))

        log.info("presubmit_triggered", slug=slug, pr=pr_number, sha=commit_sha, builds=len(result.builds))
        return result
