"""
Configuration system using Pydantic for type-safe settings management.

This module provides the process settings of the scheduler: backend
endpoints and credentials, supported repositories, legacy builder lists
and the datastore location. Per-repository build configuration
(``.ci.yaml``) lives in ``ci_scheduler.config.ci_yaml``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, HttpUrl, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ci_scheduler.exceptions import ConfigurationError
from ci_scheduler.models.domain import Builder


class GitHubConfig(BaseModel):
    """GitHub API access for check runs and configuration fetching."""

    base_url: HttpUrl = Field(default="https://api.github.com", description="GitHub REST API base URL")
    raw_content_url: HttpUrl = Field(
        default="https://raw.githubusercontent.com",
        description="Base URL serving raw repository files",
    )
    api_token: SecretStr = Field(..., description="Token used for the Checks API")


class BuildbucketConfig(BaseModel):
    """Build-execution backend configuration."""

    base_url: HttpUrl = Field(default="https://cr-buildbucket.appspot.com", description="Buildbucket host")
    project: str = Field(default="flutter", description="LUCI project owning the builders")
    try_bucket: str = Field(default="try", description="Bucket for presubmit builds")
    access_token: SecretStr | None = Field(default=None, description="OAuth access token for pRPC calls")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")


class LegacyBuilderConfig(BaseModel):
    """A statically configured builder that predates ``.ci.yaml``."""

    name: str = Field(..., description="Backend builder name")
    task_name: str | None = Field(default=None, description="Dashboard task name (defaults to name)")
    flaky: bool = Field(default=False, description="Whether failures are treated as flaky")

    def to_builder(self, repo: str) -> Builder:
        return Builder(name=self.name, repo=repo, task_name=self.task_name, flaky=self.flaky)


class LegacyBuilders(BaseModel):
    """Static builder lists for one repository."""

    try_builders: list[LegacyBuilderConfig] = Field(default_factory=list, description="Presubmit builders")
    prod_builders: list[LegacyBuilderConfig] = Field(default_factory=list, description="Postsubmit builders")


class SchedulerConfig(BaseModel):
    """Scheduling behaviour configuration."""

    supported_repositories: list[str] = Field(
        default_factory=list, description="Repository full names whose commits are ingested"
    )
    ci_yaml_path: str = Field(default=".ci.yaml", description="Path of the build configuration file")
    validation_check_name: str = Field(
        default="ci.yaml validation", description="Name of the configuration validation check run"
    )
    user_agent: str = Field(default="ci-scheduler", description="user_agent tag attached to scheduled builds")
    config_cache_ttl: int = Field(default=300, ge=0, description="Seconds to cache fetched .ci.yaml text")
    legacy_builders: dict[str, LegacyBuilders] = Field(
        default_factory=dict, description="Static builder lists keyed by repository full name"
    )

    @field_validator("supported_repositories")
    @classmethod
    def validate_slugs(cls, v: list[str]) -> list[str]:
        """Repository names must look like ``owner/name``."""
        for slug in v:
            if slug.count("/") != 1 or slug.startswith("/") or slug.endswith("/"):
                raise ValueError(f"Invalid repository full name: {slug!r}")
        return v

    def try_builders(self, slug: str) -> list[Builder]:
        lists = self.legacy_builders.get(slug)
        return [b.to_builder(slug) for b in lists.try_builders] if lists else []

    def prod_builders(self, slug: str) -> list[Builder]:
        lists = self.legacy_builders.get(slug)
        return [b.to_builder(slug) for b in lists.prod_builders] if lists else []


class DatastoreConfig(BaseModel):
    """Location of the JSON file datastore."""

    path: str = Field(default=".ci_scheduler/datastore.json", description="Datastore file path")


class SchedulerSettings(BaseSettings):
    """Main scheduler settings.

    Combines all configuration sections and provides loading from YAML
    files with environment variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="CI_SCHEDULER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    github: GitHubConfig
    buildbucket: BuildbucketConfig = Field(default_factory=BuildbucketConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    datastore: DatastoreConfig = Field(default_factory=DatastoreConfig)
    log_level: str = Field(default="INFO", description="Minimum log level")

    @property
    def datastore_path(self) -> Path:
        return Path(self.datastore.path)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> SchedulerSettings:
        """Load scheduler settings from a YAML file.

        ``${VAR}`` and ``${VAR:-default}`` references are replaced from the
        environment before parsing; references on comment lines are left
        alone. ``CI_SCHEDULER_*`` variables still override file values.

        Args:
            config_path: Path to the settings file

        Returns:
            SchedulerSettings instance

        Raises:
            ConfigurationError: The file is missing or unreadable, is not a
                YAML mapping, references unset variables, or fails validation
        """
        path = Path(config_path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read scheduler settings from {path}: {e}") from e

        document = _load_document(_interpolate_env_vars(text), path)
        try:
            return cls(**document)
        except ValidationError as e:
            problems = "; ".join(f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors())
            raise ConfigurationError(f"Invalid scheduler settings in {path}: {problems}") from e
        except ValueError as e:
            raise ConfigurationError(f"Invalid scheduler settings in {path}: {e}") from e


_ENV_REFERENCE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _interpolate_env_vars(text: str) -> str:
    """Replace environment references, reporting every unset variable at once."""
    missing: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        value = os.environ.get(name, default)
        if value is None:
            missing.append(name)
            return match.group(0)
        return value

    lines = [
        line if line.lstrip().startswith("#") else _ENV_REFERENCE.sub(substitute, line) for line in text.split("\n")
    ]
    if missing:
        names = ", ".join(sorted(set(missing)))
        raise ConfigurationError(f"Scheduler settings reference unset environment variables: {names}")
    return "\n".join(lines)


def _load_document(text: str, path: Path) -> dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Scheduler settings in {path} must be a YAML object, not a list or scalar")
    return document
