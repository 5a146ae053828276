"""Data models for the scheduler.

Key Models:
    - Commit, Task: persisted postsubmit records
    - Builder: a schedulable builder selected from configuration
    - CheckRun, CheckRunOutput: check-reporting backend views
    - buildbucket: wire models for the build-execution backend
    - events: decoded webhook payloads

Example:
    >>> from ci_scheduler.models import Commit
    >>> commit = Commit(repository="flutter/flutter", branch="master", sha="abc")
    >>> commit.key
    'flutter/flutter/master/abc'
"""

from ci_scheduler.models.domain import Builder, CheckRun, CheckRunOutput, Commit, Task

__all__ = [
    "Builder",
    "CheckRun",
    "CheckRunOutput",
    "Commit",
    "Task",
]
