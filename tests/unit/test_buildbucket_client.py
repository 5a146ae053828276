"""Tests for ci_scheduler/providers/buildbucket.py - Buildbucket pRPC client."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from ci_scheduler.enums import BuildStatus
from ci_scheduler.exceptions import BuildServiceError
from ci_scheduler.models.buildbucket import (
    BatchRequest,
    BatchRequestItem,
    BuilderId,
    BuildPredicate,
    ScheduleBuildRequest,
    SearchBuildsRequest,
    StringPair,
)
from ci_scheduler.providers.buildbucket import BuildbucketClient
from ci_scheduler.utils.connection_pool import HTTPConnectionPool


def prpc_response(body: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=")]}'\n" + json.dumps(body))


@pytest.fixture
def mock_pool() -> AsyncMock:
    return AsyncMock(spec=HTTPConnectionPool)


@pytest.fixture
def client(mock_pool) -> BuildbucketClient:
    return BuildbucketClient(base_url="https://cr-buildbucket.appspot.com/", access_token="token", pool=mock_pool)


class TestScheduleBuild:
    @pytest.mark.asyncio
    async def test_schedule_build(self, client, mock_pool):
        mock_pool.post.return_value = prpc_response(
            {
                "id": "8790000000000000001",
                "builder": {"project": "flutter", "bucket": "try", "builder": "Linux A"},
                "status": "SCHEDULED",
                "createTime": "2024-06-01T10:00:00Z",
            }
        )
        request = ScheduleBuildRequest(
            builder=BuilderId(project="flutter", bucket="try", builder="Linux A"),
            tags=[StringPair(key="buildset", value="pr/git/42")],
            properties={"git_ref": "refs/pull/42/head"},
        )

        build = await client.schedule_build(request)

        mock_pool.post.assert_awaited_once_with(
            "/prpc/buildbucket.v2.Builds/ScheduleBuild",
            json={
                "builder": {"project": "flutter", "bucket": "try", "builder": "Linux A"},
                "tags": [{"key": "buildset", "value": "pr/git/42"}],
                "properties": {"git_ref": "refs/pull/42/head"},
            },
        )
        assert build.id == 8790000000000000001
        assert build.status == BuildStatus.SCHEDULED
        assert build.create_time is not None

    @pytest.mark.asyncio
    async def test_error_status(self, client, mock_pool):
        mock_pool.post.return_value = httpx.Response(403, text="forbidden")

        with pytest.raises(BuildServiceError) as exc_info:
            await client.schedule_build(
                ScheduleBuildRequest(builder=BuilderId(project="flutter", bucket="try", builder="Linux A"))
            )

        assert exc_info.value.status_code == 403
        assert exc_info.value.service == "buildbucket"

    @pytest.mark.asyncio
    async def test_transport_error(self, client, mock_pool):
        mock_pool.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(BuildServiceError):
            await client.schedule_build(
                ScheduleBuildRequest(builder=BuilderId(project="flutter", bucket="try", builder="Linux A"))
            )

    @pytest.mark.asyncio
    async def test_unexpected_payload(self, client, mock_pool):
        mock_pool.post.return_value = prpc_response({"status": "SCHEDULED"})

        with pytest.raises(BuildServiceError):
            await client.schedule_build(
                ScheduleBuildRequest(builder=BuilderId(project="flutter", bucket="try", builder="Linux A"))
            )


class TestSearchBuilds:
    @pytest.mark.asyncio
    async def test_search_builds(self, client, mock_pool):
        mock_pool.post.return_value = prpc_response(
            {
                "builds": [
                    {"id": "1", "builder": {"project": "flutter", "bucket": "try", "builder": "Linux"}},
                    {
                        "id": "2",
                        "builder": {"project": "flutter", "bucket": "try", "builder": "Mac"},
                        "status": "FAILURE",
                        "tags": [{"key": "buildset", "value": "sha/git/abc"}],
                    },
                ]
            }
        )
        request = SearchBuildsRequest(
            predicate=BuildPredicate(builder=BuilderId(project="flutter", bucket="try")),
            page_size=100,
        )

        builds = await client.search_builds(request)

        body = mock_pool.post.await_args.kwargs["json"]
        assert body == {"predicate": {"builder": {"project": "flutter", "bucket": "try"}, "tags": []}, "pageSize": 100}
        assert [b.id for b in builds] == [1, 2]
        assert [(t.key, t.value) for t in builds[1].tags] == [("buildset", "sha/git/abc")]

    @pytest.mark.asyncio
    async def test_empty_response(self, client, mock_pool):
        mock_pool.post.return_value = prpc_response({})

        assert await client.search_builds(SearchBuildsRequest(predicate=BuildPredicate())) == []


class TestBatch:
    @pytest.mark.asyncio
    async def test_batch(self, client, mock_pool):
        mock_pool.post.return_value = prpc_response(
            {
                "responses": [
                    {"searchBuilds": {"builds": [{"id": "5", "builder": {"project": "flutter", "bucket": "try"}}]}},
                    {"error": {"code": 5, "message": "not found"}},
                ]
            }
        )
        request = BatchRequest(requests=[BatchRequestItem(search_builds=SearchBuildsRequest(predicate=BuildPredicate()))])

        response = await client.batch(request)

        assert mock_pool.post.await_args.args[0] == "/prpc/buildbucket.v2.Builds/Batch"
        assert response.responses[0].search_builds.builds[0].id == 5
        assert response.responses[1].error.message == "not found"


class TestDecode:
    def test_strips_xssi_prefix(self):
        assert BuildbucketClient._decode("Batch", ')]}\'\n{"responses": []}') == {"responses": []}

    def test_without_prefix(self):
        assert BuildbucketClient._decode("Batch", "{}") == {}

    def test_invalid_json(self):
        with pytest.raises(BuildServiceError):
            BuildbucketClient._decode("Batch", ")]}'\nnot json")

    def test_non_object(self):
        with pytest.raises(BuildServiceError):
            BuildbucketClient._decode("Batch", "[]")
