"""Factory wiring a ``Scheduler`` with the production collaborators."""

import structlog

from ci_scheduler.config.settings import SchedulerSettings
from ci_scheduler.engine.scheduler import Scheduler
from ci_scheduler.providers.buildbucket import BuildbucketClient
from ci_scheduler.providers.github_checks import GitHubChecksProvider
from ci_scheduler.providers.github_config import RawGitHubConfigFetcher
from ci_scheduler.providers.json_datastore import JsonFileDatastore

log = structlog.get_logger(__name__)


def create_scheduler(settings: SchedulerSettings) -> Scheduler:
    """Create a scheduler backed by GitHub, Buildbucket and the JSON datastore.

    Args:
        settings: Process settings

    Returns:
        A ready-to-use Scheduler; call ``close()`` on shutdown

    Example:
        >>> settings = SchedulerSettings.from_yaml("scheduler.yaml")
        >>> scheduler = create_scheduler(settings)
        >>> await scheduler.add_commits(commits)
    """
    github_token = settings.github.api_token.get_secret_value()
    buildbucket_token = settings.buildbucket.access_token
    log.info(
        "creating_scheduler",
        github_url=str(settings.github.base_url),
        buildbucket_url=str(settings.buildbucket.base_url),
        datastore=str(settings.datastore_path),
        repositories=settings.scheduler.supported_repositories,
    )

    return Scheduler(
        settings=settings,
        datastore=JsonFileDatastore(settings.datastore_path),
        config_fetcher=RawGitHubConfigFetcher(
            raw_content_url=str(settings.github.raw_content_url),
            config_path=settings.scheduler.ci_yaml_path,
            token=github_token,
        ),
        checks=GitHubChecksProvider(token=github_token, base_url=str(settings.github.base_url)),
        build_service=BuildbucketClient(
            base_url=str(settings.buildbucket.base_url),
            access_token=buildbucket_token.get_secret_value() if buildbucket_token else None,
            timeout=settings.buildbucket.timeout,
        ),
    )
