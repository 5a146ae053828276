"""
Parsing and validation of a repository's ``.ci.yaml`` build configuration.

The file declares the branches builds run on and the targets to build::

    enabled_branches:
      - master
    targets:
      - name: A
        builder: Linux A
        presubmit: true
        postsubmit: true
      - name: B
        builder: Linux B
        enabled_branches:
          - stable
        dependencies:
          - A

Validation runs in a fixed order and stops at the first problem:

1. the text is non-empty and matches the schema,
2. target names are unique,
3. every dependency names an existing target,
4. the dependency graph has no cycle.

Problems raise ``CiYamlValidationError`` whose message is shown verbatim
in the validation check run.
"""

import json
import re
from functools import lru_cache
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ci_scheduler.exceptions import CiYamlValidationError
from ci_scheduler.models.domain import Builder


# Regex syntax other than ".", which is common in release branch names.
_REGEX_SYNTAX = re.compile(r"[\\^$*+?()\[\]{}|]")


@lru_cache(maxsize=256)
def _branch_pattern(pattern: str) -> re.Pattern[str] | None:
    if not _REGEX_SYNTAX.search(pattern):
        return None
    try:
        return re.compile(pattern)
    except re.error:
        return None


def branch_matches(patterns: list[str], branch: str) -> bool:
    """Whether ``branch`` is enabled by any of ``patterns``.

    Entries using regular expression syntax must match the whole branch
    name. Plain names such as ``1.26`` and entries that are not valid
    expressions only match literally.
    """
    for pattern in patterns:
        compiled = _branch_pattern(pattern)
        if compiled is None:
            if pattern == branch:
                return True
        elif compiled.fullmatch(branch):
            return True
    return False


class Target(BaseModel):
    """A named unit of build work declared in ``.ci.yaml``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1)
    builder: str | None = Field(default=None, description="Backend builder; defaults to the target name")
    presubmit: bool = True
    postsubmit: bool = True
    enabled_branches: list[str] | None = None
    dependencies: list[str] = Field(default_factory=list)
    properties: dict[str, str] = Field(default_factory=dict)
    bringup: bool = False
    timeout: int = Field(default=30, gt=0, description="Build timeout in minutes")

    @field_validator("properties", mode="before")
    @classmethod
    def stringify_properties(cls, v: Any) -> Any:
        """YAML scalars (bools, numbers) are passed to builds as strings."""
        if isinstance(v, dict):
            return {str(key): value if isinstance(value, str) else json.dumps(value) for key, value in v.items()}
        return v

    @property
    def builder_name(self) -> str:
        return self.builder or self.name

    def effective_branches(self, default_branches: list[str]) -> list[str]:
        return self.enabled_branches if self.enabled_branches is not None else default_branches

    def to_builder(self, repo: str) -> Builder:
        return Builder(
            name=self.builder_name,
            repo=repo,
            task_name=self.name,
            flaky=self.bringup,
            timeout=self.timeout,
            properties=dict(self.properties),
        )


class CiYaml(BaseModel):
    """Schema of the whole ``.ci.yaml`` document."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled_branches: list[str]
    targets: list[Target] = Field(default_factory=list)


class ResolvedConfig(BaseModel):
    """A validated ``.ci.yaml``: global branches plus ordered targets."""

    model_config = ConfigDict(frozen=True)

    enabled_branches: list[str]
    targets: list[Target]

    def targets_for_branch(self, branch: str, *, presubmit: bool) -> list[Target]:
        """Targets with the presubmit (or postsubmit) flag enabled on ``branch``.

        Configuration order is preserved.
        """
        selected = []
        for target in self.targets:
            flag = target.presubmit if presubmit else target.postsubmit
            if flag and branch_matches(target.effective_branches(self.enabled_branches), branch):
                selected.append(target)
        return selected


def parse_ci_yaml(text: str) -> ResolvedConfig:
    """Parse and validate ``.ci.yaml`` text.

    Args:
        text: Raw configuration text

    Returns:
        The validated configuration

    Raises:
        CiYamlValidationError: On the first validation problem found
    """
    if not text or not text.strip():
        raise CiYamlValidationError("ERROR: empty configuration")

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CiYamlValidationError(f"ERROR: invalid configuration: {e}") from e

    if document is None:
        raise CiYamlValidationError("ERROR: empty configuration")
    if not isinstance(document, dict):
        raise CiYamlValidationError("ERROR: invalid configuration: expected a mapping at the top level")

    try:
        ci_yaml = CiYaml.model_validate(document)
    except ValidationError as e:
        raise CiYamlValidationError(f"ERROR: invalid configuration: {_describe(e)}") from e

    _check_unique_names(ci_yaml.targets)
    _check_dependencies_exist(ci_yaml.targets)
    _check_acyclic(ci_yaml.targets)

    return ResolvedConfig(enabled_branches=list(ci_yaml.enabled_branches), targets=list(ci_yaml.targets))


def _describe(error: ValidationError) -> str:
    details = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        details.append(f"{location}: {item['msg']}")
    return "; ".join(details)


def _check_unique_names(targets: list[Target]) -> None:
    seen: set[str] = set()
    for target in targets:
        if target.name in seen:
            raise CiYamlValidationError(f"ERROR: {target.name} is a duplicate target name")
        seen.add(target.name)


def _check_dependencies_exist(targets: list[Target]) -> None:
    names = {target.name for target in targets}
    for target in targets:
        for dependency in target.dependencies:
            if dependency not in names:
                raise CiYamlValidationError(f"ERROR: {target.name} depends on {dependency} which does not exist")


def _check_acyclic(targets: list[Target]) -> None:
    graph = {target.name: target.dependencies for target in targets}
    done: set[str] = set()

    def visit(name: str, path: list[str]) -> None:
        if name in path:
            cycle = path[path.index(name) :] + [name]
            raise CiYamlValidationError(f"ERROR: dependency cycle detected: {' -> '.join(cycle)}")
        if name in done:
            return
        for dependency in graph[name]:
            visit(dependency, path + [name])
        done.add(name)

    for target in targets:
        visit(target.name, [])
