"""Tests for ci_scheduler.utils.retry."""

from unittest.mock import AsyncMock, patch

import pytest

from ci_scheduler.utils.retry import async_retry


@pytest.fixture
def no_sleep():
    with patch("ci_scheduler.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


@pytest.mark.asyncio
async def test_returns_first_success(no_sleep):
    calls = []

    @async_retry(max_attempts=3)
    async def fetch():
        calls.append(1)
        return "ok"

    assert await fetch() == "ok"
    assert len(calls) == 1
    no_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_retries_with_backoff(no_sleep):
    attempts = iter([ConnectionError("reset"), ConnectionError("reset"), "ok"])

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(ConnectionError,))
    async def fetch():
        result = next(attempts)
        if isinstance(result, Exception):
            raise result
        return result

    assert await fetch() == "ok"
    assert [c.args[0] for c in no_sleep.await_args_list] == [2.0, 4.0]


@pytest.mark.asyncio
async def test_raises_after_max_attempts(no_sleep):
    calls = []

    @async_retry(max_attempts=2, exceptions=(ConnectionError,))
    async def fetch():
        calls.append(1)
        raise ConnectionError("down")

    with pytest.raises(ConnectionError, match="down"):
        await fetch()

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_unlisted_exception_is_not_retried(no_sleep):
    calls = []

    @async_retry(max_attempts=3, exceptions=(ConnectionError,))
    async def fetch():
        calls.append(1)
        raise ValueError("bad")

    with pytest.raises(ValueError):
        await fetch()

    assert len(calls) == 1
