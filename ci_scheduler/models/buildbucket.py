"""Buildbucket v2 wire models.

The build-execution backend speaks pRPC with JSON bodies in camelCase.
These models accept either field names or camelCase aliases and dump with
aliases so they can be posted as-is::

    request = ScheduleBuildRequest(
        builder=BuilderId(project="flutter", bucket="try", builder="Linux A"),
        tags=[StringPair(key="buildset", value="pr/git/42")],
    )
    body = request.model_dump(by_alias=True, exclude_none=True, mode="json")
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ci_scheduler.enums import BuildStatus


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON body expected by Buildbucket."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BuilderId(_WireModel):
    project: str
    bucket: str
    builder: str | None = None
    """Unset in search predicates that match a whole bucket."""


class StringPair(_WireModel):
    key: str
    value: str


class BuildInput(_WireModel):
    properties: dict[str, Any] = Field(default_factory=dict)


class Build(_WireModel):
    """A build as returned by ``ScheduleBuild`` or ``SearchBuilds``."""

    id: int
    builder: BuilderId
    number: int | None = None
    status: BuildStatus = BuildStatus.STATUS_UNSPECIFIED
    tags: list[StringPair] = Field(default_factory=list)
    create_time: datetime | None = None
    input: BuildInput | None = None


class ScheduleBuildRequest(_WireModel):
    builder: BuilderId
    tags: list[StringPair] = Field(default_factory=list)
    properties: dict[str, Any] | None = None


class BuildPredicate(_WireModel):
    builder: BuilderId | None = None
    tags: list[StringPair] = Field(default_factory=list)
    status: BuildStatus | None = None


class SearchBuildsRequest(_WireModel):
    predicate: BuildPredicate
    page_size: int | None = None
    page_token: str | None = None


class SearchBuildsResponse(_WireModel):
    builds: list[Build] = Field(default_factory=list)
    next_page_token: str | None = None


class BatchRequestItem(_WireModel):
    """One sub-request of a batch; exactly one field is set."""

    search_builds: SearchBuildsRequest | None = None
    schedule_build: ScheduleBuildRequest | None = None


class BatchRequest(_WireModel):
    requests: list[BatchRequestItem] = Field(default_factory=list)


class BatchError(_WireModel):
    code: int | None = None
    message: str = ""


class BatchResponseItem(_WireModel):
    search_builds: SearchBuildsResponse | None = None
    schedule_build: Build | None = None
    error: BatchError | None = None


class BatchResponse(_WireModel):
    responses: list[BatchResponseItem] = Field(default_factory=list)
