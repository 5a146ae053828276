"""Buildbucket v2 client speaking pRPC over JSON."""

import json
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from ci_scheduler.exceptions import BuildServiceError
from ci_scheduler.models.buildbucket import (
    BatchRequest,
    BatchResponse,
    Build,
    ScheduleBuildRequest,
    SearchBuildsRequest,
    SearchBuildsResponse,
)
from ci_scheduler.providers.base import BuildService
from ci_scheduler.utils.connection_pool import HTTPConnectionPool

log = structlog.get_logger(__name__)

# pRPC JSON responses start with this line to defeat JSON hijacking
XSSI_PREFIX = ")]}'"


M = TypeVar("M", bound=BaseModel)


def _parse(model: type[M], data: dict[str, Any], method: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise BuildServiceError(f"Buildbucket {method} returned an unexpected payload: {e}") from e


class BuildbucketClient(BuildService):
    """Build-execution backend client.

    Calls are not retried: scheduling is not idempotent, and a failed call
    surfaces as ``BuildServiceError`` so the webhook is redelivered.
    """

    SERVICE_PATH = "/prpc/buildbucket.v2.Builds"

    def __init__(
        self,
        base_url: str = "https://cr-buildbucket.appspot.com",
        access_token: str | None = None,
        timeout: float = 30.0,
        pool: HTTPConnectionPool | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Buildbucket host
            access_token: OAuth access token sent as a Bearer header
            timeout: Request timeout in seconds
            pool: Pre-built connection pool (tests inject a mock)
        """
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token.strip()}"
        self._pool = pool or HTTPConnectionPool(base_url=self.base_url, timeout=timeout, headers=headers)

    async def schedule_build(self, request: ScheduleBuildRequest) -> Build:
        log.info("schedule_build", builder=request.builder.builder, bucket=request.builder.bucket)
        data = await self._call("ScheduleBuild", request.to_wire())
        return _parse(Build, data, "ScheduleBuild")

    async def search_builds(self, request: SearchBuildsRequest) -> list[Build]:
        log.info("search_builds")
        data = await self._call("SearchBuilds", request.to_wire())
        return _parse(SearchBuildsResponse, data, "SearchBuilds").builds

    async def batch(self, request: BatchRequest) -> BatchResponse:
        log.info("batch", request_count=len(request.requests))
        data = await self._call("Batch", request.to_wire())
        response = _parse(BatchResponse, data, "Batch")
        for item in response.responses:
            if item.error is not None:
                log.warning("batch_item_failed", code=item.error.code, error=item.error.message)
        return response

    async def _call(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._pool.post(f"{self.SERVICE_PATH}/{method}", json=body)
        except httpx.HTTPError as e:
            log.error("buildbucket_request_failed", method=method, error=str(e))
            raise BuildServiceError(f"Buildbucket {method} request failed: {e}") from e

        if response.status_code != 200:
            log.error("buildbucket_error_response", method=method, status=response.status_code)
            raise BuildServiceError(f"Buildbucket {method} returned an error", status_code=response.status_code)

        return self._decode(method, response.text)

    @staticmethod
    def _decode(method: str, text: str) -> dict[str, Any]:
        if text.startswith(XSSI_PREFIX):
            text = text[len(XSSI_PREFIX) :]
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise BuildServiceError(f"Buildbucket {method} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BuildServiceError(f"Buildbucket {method} returned an unexpected payload")
        return data

    async def close(self) -> None:
        await self._pool.close()
