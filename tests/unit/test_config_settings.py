"""Tests for ci_scheduler/config/settings.py Pydantic models.

Tests cover:
- Section defaults and validation
- Legacy builder lists
- SchedulerSettings loading from YAML
- Environment variable interpolation
- Error handling for unreadable or invalid files
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ci_scheduler.config.settings import (
    BuildbucketConfig,
    LegacyBuilderConfig,
    SchedulerConfig,
    SchedulerSettings,
)
from ci_scheduler.exceptions import ConfigurationError

SETTINGS_YAML = """
github:
  api_token: ${GITHUB_TOKEN}
buildbucket:
  project: flutter
  access_token: ${BUILDBUCKET_TOKEN:-}
scheduler:
  supported_repositories:
    - flutter/flutter
  # comments may mention ${UNSET_VARIABLE}
  legacy_builders:
    flutter/flutter:
      try_builders:
        - name: Linux
        - name: Windows
          flaky: true
      prod_builders:
        - name: Linux
          task_name: linux_bot
datastore:
  path: ${DATASTORE_PATH:-/tmp/ci_scheduler.json}
"""


class TestSchedulerConfig:
    """Test scheduling behaviour configuration."""

    def test_defaults(self):
        config = SchedulerConfig()

        assert config.supported_repositories == []
        assert config.validation_check_name == "ci.yaml validation"
        assert config.config_cache_ttl == 300

    def test_invalid_repository_name(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(supported_repositories=["flutter"])

    def test_legacy_builders_by_repository(self):
        config = SchedulerConfig(
            legacy_builders={
                "flutter/flutter": {
                    "try_builders": [{"name": "Linux"}, {"name": "Mac", "flaky": True}],
                    "prod_builders": [{"name": "Linux", "task_name": "linux_bot"}],
                }
            }
        )

        try_builders = config.try_builders("flutter/flutter")
        assert [b.name for b in try_builders] == ["Linux", "Mac"]
        assert try_builders[1].flaky is True
        assert try_builders[0].repo == "flutter/flutter"
        assert config.prod_builders("flutter/flutter")[0].task_name == "linux_bot"
        assert config.try_builders("flutter/engine") == []

    def test_negative_cache_ttl_rejected(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(config_cache_ttl=-1)


class TestBuildbucketConfig:
    def test_defaults(self):
        config = BuildbucketConfig()

        assert config.project == "flutter"
        assert config.try_bucket == "try"
        assert config.access_token is None

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            BuildbucketConfig(timeout=0)


class TestLegacyBuilderConfig:
    def test_to_builder(self):
        builder = LegacyBuilderConfig(name="Linux", task_name="linux_bot", flaky=True).to_builder("flutter/flutter")

        assert builder.name == "Linux"
        assert builder.task_name == "linux_bot"
        assert builder.flaky is True
        assert builder.properties == {}


class TestSchedulerSettingsFromYaml:
    """Test loading SchedulerSettings from YAML files."""

    def test_load_with_env_interpolation(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")
        monkeypatch.delenv("BUILDBUCKET_TOKEN", raising=False)
        monkeypatch.delenv("DATASTORE_PATH", raising=False)
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text(SETTINGS_YAML)

        settings = SchedulerSettings.from_yaml(str(config_file))

        assert settings.github.api_token.get_secret_value() == "ghp_secret"
        assert settings.scheduler.supported_repositories == ["flutter/flutter"]
        assert [b.name for b in settings.scheduler.try_builders("flutter/flutter")] == ["Linux", "Windows"]
        assert settings.datastore_path == Path("/tmp/ci_scheduler.json")

    def test_secret_not_in_repr(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text(SETTINGS_YAML)

        settings = SchedulerSettings.from_yaml(str(config_file))

        assert "ghp_secret" not in repr(settings)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            SchedulerSettings.from_yaml(str(tmp_path / "missing.yaml"))

    def test_unset_required_variable(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text(SETTINGS_YAML)

        with pytest.raises(ConfigurationError, match="GITHUB_TOKEN"):
            SchedulerSettings.from_yaml(str(config_file))

    def test_all_unset_variables_are_reported(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("BUILDBUCKET_PROJECT", raising=False)
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text(
            "# api_token: ${COMMENTED_OUT}\n"
            "github:\n  api_token: ${GITHUB_TOKEN}\n"
            "buildbucket:\n  project: ${BUILDBUCKET_PROJECT}\n"
        )

        with pytest.raises(ConfigurationError) as exc_info:
            SchedulerSettings.from_yaml(config_file)

        assert exc_info.value.message.endswith("BUILDBUCKET_PROJECT, GITHUB_TOKEN")

    def test_validation_errors_name_the_field(self, tmp_path: Path):
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text("github:\n  api_token: t\nscheduler:\n  config_cache_ttl: -5\n")

        with pytest.raises(ConfigurationError, match="scheduler.config_cache_ttl"):
            SchedulerSettings.from_yaml(config_file)

    def test_invalid_yaml(self, tmp_path: Path):
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text("github: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            SchedulerSettings.from_yaml(str(config_file))

    def test_scalar_document(self, tmp_path: Path):
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text("just a string\n")

        with pytest.raises(ConfigurationError, match="YAML object"):
            SchedulerSettings.from_yaml(str(config_file))

    def test_missing_github_section(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("CI_SCHEDULER_GITHUB__API_TOKEN", raising=False)
        config_file = tmp_path / "ci_scheduler.yaml"
        config_file.write_text("scheduler:\n  supported_repositories: [flutter/flutter]\n")

        with pytest.raises(ConfigurationError):
            SchedulerSettings.from_yaml(str(config_file))


class TestEnvironmentOverrides:
    def test_nested_env_variable(self, monkeypatch):
        monkeypatch.setenv("CI_SCHEDULER_GITHUB__API_TOKEN", "from-env")
        monkeypatch.setenv("CI_SCHEDULER_LOG_LEVEL", "DEBUG")

        settings = SchedulerSettings()

        assert settings.github.api_token.get_secret_value() == "from-env"
        assert settings.log_level == "DEBUG"
