"""Scheduling engine: configuration resolution, ingestion, presubmit triggering and retries."""

from ci_scheduler.engine.build_scheduler import ScheduledBuild
from ci_scheduler.engine.config_resolver import ConfigResolver, ResolutionResult
from ci_scheduler.engine.presubmit import TriggerResult
from ci_scheduler.engine.scheduler import Scheduler

__all__ = ["ConfigResolver", "ResolutionResult", "ScheduledBuild", "Scheduler", "TriggerResult"]
