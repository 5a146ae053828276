"""ci-scheduler: scheduling core for a continuous-integration control plane.

Turns source-control events into persisted commit/task records, presubmit
check runs and builds, and selective retries of failed targets.
"""

__version__ = "0.1.0"
