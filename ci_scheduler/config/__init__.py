"""Configuration for the scheduler.

Two kinds of configuration live here:

    - SchedulerSettings: process settings (backends, supported repositories,
      legacy builder lists) loaded from YAML with environment interpolation
    - ci_yaml: the per-repository ``.ci.yaml`` build configuration parser
      and validator

Example:
    >>> from ci_scheduler.config import SchedulerSettings
    >>> settings = SchedulerSettings.from_yaml("scheduler.yaml")
    >>> settings.scheduler.supported_repositories
    ['flutter/flutter']
"""

from ci_scheduler.config.ci_yaml import ResolvedConfig, Target, parse_ci_yaml
from ci_scheduler.config.settings import SchedulerSettings

__all__ = [
    "ResolvedConfig",
    "SchedulerSettings",
    "Target",
    "parse_ci_yaml",
]
