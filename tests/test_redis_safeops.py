import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError, ResponseError

from redlock_watchdog.utils.redis_safeops import RedisSafeOps


class _DummyRedis(SimpleNamespace):
    pass


@pytest.mark.asyncio
async def test_call_success():
    redis = _DummyRedis()
    redis.hgetall = AsyncMock(return_value={b"a": b"1"})
    safeops = RedisSafeOps(redis, max_retries=0, timeout_seconds=0.1)

    result = await safeops.safe_hgetall("redlock_list", log_extra={"test": "success"})

    assert result == {b"a": b"1"}
    assert redis.hgetall.await_count == 1


@pytest.mark.asyncio
async def test_hgetall_none_becomes_empty_mapping():
    redis = _DummyRedis()
    redis.hgetall = AsyncMock(return_value=None)
    safeops = RedisSafeOps(redis, max_retries=0, timeout_seconds=0.1)

    assert await safeops.safe_hgetall("redlock_list") == {}


@pytest.mark.asyncio
async def test_connection_error_retries(monkeypatch):
    redis = _DummyRedis()
    redis.hincrby = AsyncMock(side_effect=[ConnectionError("fail"), 3])
    sleep_calls = []

    async def fake_sleep(delay):
        sleep_calls.append(delay)

    monkeypatch.setattr("redlock_watchdog.utils.redis_safeops.asyncio.sleep", fake_sleep)
    safeops = RedisSafeOps(redis, max_retries=1, base_backoff=0.01, timeout_seconds=0.1)

    result = await safeops.safe_hincrby("redlock_list", "a", 1)

    assert result == 3
    assert redis.hincrby.await_count == 2
    assert sleep_calls == [0.01]


@pytest.mark.asyncio
async def test_response_error_no_retry():
    redis = _DummyRedis()
    redis.hincrby = AsyncMock(side_effect=ResponseError("hash value is not an integer"))
    safeops = RedisSafeOps(redis, max_retries=3, timeout_seconds=0.1)

    with pytest.raises(ResponseError):
        await safeops.safe_hincrby("redlock_list", "a", 1)

    assert redis.hincrby.await_count == 1


@pytest.mark.asyncio
async def test_hung_operation_times_out_and_retries(monkeypatch):
    redis = _DummyRedis()

    async def hang(*args, **kwargs):
        await asyncio.Event().wait()

    redis.delete = AsyncMock(side_effect=hang)
    sleep_calls = []

    async def fake_sleep(delay):
        sleep_calls.append(delay)

    monkeypatch.setattr("redlock_watchdog.utils.redis_safeops.asyncio.sleep", fake_sleep)
    safeops = RedisSafeOps(redis, max_retries=2, base_backoff=0.01, timeout_seconds=0.01)

    with pytest.raises(asyncio.TimeoutError):
        await safeops.safe_delete("a")

    assert redis.delete.await_count == 3
    assert sleep_calls == [0.01, 0.02]


@pytest.mark.asyncio
async def test_metrics_recorder_receives_status():
    redis = _DummyRedis()
    redis.hdel = AsyncMock(return_value=1)
    recorded = []
    safeops = RedisSafeOps(
        redis,
        max_retries=0,
        timeout_seconds=0.1,
        metrics_recorder=lambda method, elapsed, status: recorded.append((method, status)),
    )

    assert await safeops.safe_hdel("redlock_list", "a") == 1
    assert recorded == [("hdel", "success")]
