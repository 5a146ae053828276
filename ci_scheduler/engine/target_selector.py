"""
Selection of the builders to run for a branch.

Both selectors return the legacy builder list first, in the order given,
followed by the configuration targets whose flag is set and whose
enabled branches match, in configuration order. Nothing is sorted and
names are not deduplicated: a legacy builder and a target sharing a name
both appear. When the configuration is invalid (``config`` is None) only
the legacy builders are returned.
"""

from collections.abc import Sequence

from ci_scheduler.config.ci_yaml import ResolvedConfig
from ci_scheduler.models.domain import Builder


def select_presubmit_builders(
    config: ResolvedConfig | None,
    branch: str,
    legacy: Sequence[Builder] = (),
    repo: str = "",
) -> list[Builder]:
    """Builders to run for a pull request against ``branch``."""
    return _select(config, branch, legacy, repo, presubmit=True)


def select_postsubmit_builders(
    config: ResolvedConfig | None,
    branch: str,
    legacy: Sequence[Builder] = (),
    repo: str = "",
) -> list[Builder]:
    """Builders to run for a commit that landed on ``branch``."""
    return _select(config, branch, legacy, repo, presubmit=False)


def _select(
    config: ResolvedConfig | None,
    branch: str,
    legacy: Sequence[Builder],
    repo: str,
    presubmit: bool,
) -> list[Builder]:
    builders = list(legacy)
    if config is not None:
        builders.extend(target.to_builder(repo) for target in config.targets_for_branch(branch, presubmit=presubmit))
    return builders
