"""
Scheduling and lookup of presubmit (try) builds.

Every try build carries tags linking it back to its pull request, commit
and check run::

    buildset        pr/git/<pr number>
    buildset        sha/git/<commit sha>
    github_checkrun <check run id>
    github_link     https://github.com/<slug>/pull/<pr number>
    user_agent      <configured user agent>

and the properties ``git_url`` and ``git_ref`` (``refs/pull/<n>/head``)
merged with the target's own properties. The buildset tags are what
``get_try_builds`` searches on when a check suite is rerequested.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ci_scheduler.config.settings import BuildbucketConfig
from ci_scheduler.exceptions import BuildServiceError
from ci_scheduler.models.buildbucket import (
    BatchRequest,
    BatchRequestItem,
    Build,
    BuilderId,
    BuildPredicate,
    ScheduleBuildRequest,
    SearchBuildsRequest,
    StringPair,
)
from ci_scheduler.models.domain import Builder
from ci_scheduler.providers.base import BuildService

log = structlog.get_logger(__name__)

CHECK_RUN_TAG = "github_checkrun"
SEARCH_PAGE_SIZE = 1000


@dataclass(frozen=True)
class ScheduledBuild:
    """A build scheduled by the presubmit trigger or the retry reconciler."""

    builder_name: str
    build_id: int
    check_run_id: int


def latest_builds_by_name(builds: Iterable[Build]) -> dict[str, Build]:
    """Most recent build per builder name.

    Builds are compared on ``create_time``; when it is missing the first
    build in backend order is kept.
    """
    latest: dict[str, Build] = {}
    for build in builds:
        name = build.builder.builder
        if not name:
            continue
        current = latest.get(name)
        if current is None or (
            build.create_time is not None
            and (current.create_time is None or build.create_time > current.create_time)
        ):
            latest[name] = build
    return latest


class BuildScheduler:
    """Schedules try builds and finds the ones belonging to a pull request."""

    def __init__(self, build_service: BuildService, buildbucket: BuildbucketConfig, user_agent: str) -> None:
        self.build_service = build_service
        self.project = buildbucket.project
        self.bucket = buildbucket.try_bucket
        self.user_agent = user_agent

    def builder_id(self, builder_name: str | None = None) -> BuilderId:
        return BuilderId(project=self.project, bucket=self.bucket, builder=builder_name)

    def build_tags(self, slug: str, pr_number: int, commit_sha: str, check_run_id: int) -> list[StringPair]:
        return [
            StringPair(key="buildset", value=f"pr/git/{pr_number}"),
            StringPair(key="buildset", value=f"sha/git/{commit_sha}"),
            StringPair(key=CHECK_RUN_TAG, value=str(check_run_id)),
            StringPair(key="github_link", value=f"https://github.com/{slug}/pull/{pr_number}"),
            StringPair(key="user_agent", value=self.user_agent),
        ]

    @staticmethod
    def build_properties(slug: str, pr_number: int, builder: Builder | None = None) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "git_url": f"https://github.com/{slug}",
            "git_ref": f"refs/pull/{pr_number}/head",
        }
        if builder is not None:
            properties.update(builder.properties)
        return properties

    async def schedule_try_build(
        self,
        slug: str,
        pr_number: int,
        commit_sha: str,
        builder: Builder,
        check_run_id: int,
    ) -> Build:
        """Schedule a try build of ``builder`` for the pull request head.

        Raises:
            BuildServiceError: The build backend rejected the request
        """
        request = ScheduleBuildRequest(
            builder=self.builder_id(builder.name),
            tags=self.build_tags(slug, pr_number, commit_sha, check_run_id),
            properties=self.build_properties(slug, pr_number, builder),
        )
        build = await self.build_service.schedule_build(request)
        log.info("try_build_scheduled", slug=slug, pr=pr_number, builder=builder.name, build_id=build.id)
        return build

    async def get_try_builds(self, slug: str, pr_number: int, commit_sha: str) -> list[Build]:
        """All try builds of a pull request at ``commit_sha``, in one batched search.

        Raises:
            BuildServiceError: The build backend rejected the request
        """
        predicate = BuildPredicate(
            builder=self.builder_id(),
            tags=[
                StringPair(key="buildset", value=f"pr/git/{pr_number}"),
                StringPair(key="buildset", value=f"sha/git/{commit_sha}"),
            ],
        )
        request = BatchRequest(
            requests=[BatchRequestItem(search_builds=SearchBuildsRequest(predicate=predicate, page_size=SEARCH_PAGE_SIZE))]
        )
        response = await self.build_service.batch(request)

        builds: list[Build] = []
        for item in response.responses:
            if item.error is not None:
                log.error("try_build_search_failed", slug=slug, pr=pr_number, code=item.error.code)
                raise BuildServiceError(
                    f"Build search for {slug}#{pr_number} failed (code {item.error.code}): {item.error.message}"
                )
            if item.search_builds is not None:
                builds.extend(item.search_builds.builds)
        log.debug("try_builds_found", slug=slug, pr=pr_number, count=len(builds))
        return builds

    async def reschedule(self, build: Build, check_run_id: int, slug: str, pr_number: int) -> Build:
        """Schedule a copy of ``build`` reporting to the existing check run.

        The original tags and input properties are reused; only the check
        run tag is pointed at ``check_run_id``.

        Raises:
            BuildServiceError: The build backend rejected the request
        """
        tags = [tag for tag in build.tags if tag.key != CHECK_RUN_TAG]
        tags.append(StringPair(key=CHECK_RUN_TAG, value=str(check_run_id)))

        if build.input is not None and build.input.properties:
            properties = dict(build.input.properties)
        else:
            properties = self.build_properties(slug, pr_number)

        request = ScheduleBuildRequest(
            builder=self.builder_id(build.builder.builder),
            tags=tags,
            properties=properties,
        )
        rescheduled = await self.build_service.schedule_build(request)
        log.info(
            "try_build_rescheduled",
            slug=slug,
            pr=pr_number,
            builder=build.builder.builder,
            previous_build_id=build.id,
            build_id=rescheduled.id,
        )
        return rescheduled
