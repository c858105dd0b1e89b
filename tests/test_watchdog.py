"""End-to-end behaviour of the watchdog handle against an in-memory Redis."""

import asyncio

import pytest

from redlock_watchdog.config import WatchdogOptions
from redlock_watchdog.errors import (
    AlreadyInitializedError,
    ConfigurationError,
    NotInitializedError,
)
from redlock_watchdog.events import REMOVE_STALED
from redlock_watchdog.watchdog import RedlockWatchdog

OPTIONS = {"delayMs": 100, "maxStaleRetries": 2}


async def _wait_for_condition(predicate, timeout=1.0, interval=0.01):
    """Utility helper to await a predicate with timeout handling."""

    end_time = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() >= end_time:
            raise TimeoutError("Condition not met within timeout")
        await asyncio.sleep(interval)


async def _stop_and_release(watchdog: RedlockWatchdog) -> None:
    await watchdog.stop()
    watchdog.release()


def test_init_twice_raises(gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)

    with pytest.raises(AlreadyInitializedError):
        watchdog.init(gateway, OPTIONS)


def test_release_allows_reinitialisation(gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)

    watchdog.release()
    watchdog.init(gateway, {"maxStaleRetries": 3})

    assert watchdog.is_initialized is True
    assert watchdog.options.max_stale_retries == 3
    assert watchdog.options.delay_ms == 60000


@pytest.mark.parametrize("retries", [0, 1, -4])
def test_threshold_below_two_is_rejected_and_leaves_handle_unbound(gateway, retries):
    watchdog = RedlockWatchdog()

    with pytest.raises(ConfigurationError):
        watchdog.init(gateway, {"maxStaleRetries": retries})

    assert watchdog.is_initialized is False
    watchdog.init(gateway, {"maxStaleRetries": 2})
    assert watchdog.options.max_stale_retries == 2


def test_operations_require_initialisation():
    watchdog = RedlockWatchdog()

    with pytest.raises(NotInitializedError):
        watchdog.start()
    with pytest.raises(NotInitializedError):
        watchdog.heartbeats


def test_release_restores_defaults(gateway):
    watchdog = RedlockWatchdog().init(
        gateway, WatchdogOptions(delay_ms=5, max_stale_retries=9)
    )

    watchdog.release()

    assert watchdog.is_initialized is False
    assert watchdog.options == WatchdogOptions()


@pytest.mark.asyncio
async def test_empty_registry_is_checked_without_error(gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    watchdog.start()

    await asyncio.sleep(0.35)
    await watchdog.stop()
    report = await watchdog.check()
    watchdog.release()

    assert report.outcome == "ok"
    assert report.snapshot_size == 0
    assert report.cycle >= 3


@pytest.mark.asyncio
async def test_lock_without_heartbeat_is_removed(redis_client, gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    removed = []
    watchdog.listen(REMOVE_STALED, removed.append)

    await redis_client.set("a", "lock-token", px=30000)
    assert await redis_client.get("a") == "lock-token"
    await redis_client.hset("redlock_list", "a", "0")

    watchdog.start()
    try:
        await _wait_for_condition(lambda: removed, timeout=1.0)
    finally:
        await _stop_and_release(watchdog)

    assert removed == ["a"]
    assert await redis_client.get("a") is None
    assert await redis_client.hget("redlock_list", "a") is None


@pytest.mark.asyncio
async def test_lock_with_local_heartbeat_is_not_removed(redis_client, gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    removed = []
    watchdog.listen(REMOVE_STALED, removed.append)

    await redis_client.set("a", "lock-token", px=30000)
    await watchdog.add_heartbeat("a", {"purpose": "test"})

    watchdog.start()
    await asyncio.sleep(0.75)
    await _stop_and_release(watchdog)

    assert removed == []
    assert await redis_client.get("a") == "lock-token"
    assert int(await redis_client.hget("redlock_list", "a")) >= 5


@pytest.mark.asyncio
async def test_remove_heartbeat_deletes_bookkeeping(redis_client, gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    await watchdog.add_heartbeat("a")
    await watchdog.heartbeats.drain_pending()

    await watchdog.remove_heartbeat("a")
    await watchdog.remove_heartbeat("a")

    assert "a" not in watchdog.heartbeats
    assert await redis_client.hget("redlock_list", "a") is None
    assert await redis_client.hget("redlock_info", "a") is None


@pytest.mark.asyncio
async def test_stop_then_release_during_in_flight_cycle(gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    started = asyncio.Event()
    original_hgetall = gateway.hgetall

    async def slow_hgetall(name):
        started.set()
        await asyncio.sleep(0.1)
        return await original_hgetall(name)

    gateway.hgetall = slow_hgetall

    watchdog.start()
    await asyncio.wait_for(started.wait(), timeout=1.0)

    handle = watchdog.stop()
    watchdog.release()
    await handle

    assert watchdog.is_initialized is False
    assert watchdog.is_running is False


@pytest.mark.asyncio
async def test_listener_replacement_and_unknown_event(redis_client, gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    first, second = [], []
    watchdog.listen(REMOVE_STALED, first.append)
    watchdog.listen(REMOVE_STALED, second.append)
    await redis_client.hset("redlock_list", "a", "0")

    await watchdog.check()
    await watchdog.check()

    assert first == []
    assert second == ["a"]
    with pytest.raises(ValueError):
        watchdog.listen("lockAcquired", print)


@pytest.mark.asyncio
async def test_stop_on_unbound_handle_resolves():
    watchdog = RedlockWatchdog()

    await asyncio.wait_for(watchdog.stop(), timeout=0.5)


@pytest.mark.asyncio
async def test_repeated_teardown_does_not_raise(gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    watchdog.start()

    await watchdog.stop()
    watchdog.release()
    await watchdog.stop()
    watchdog.release()

    assert watchdog.is_initialized is False


@pytest.mark.asyncio
async def test_manual_check_waits_for_scheduled_cycle(redis_client, gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    removed = []
    watchdog.listen(REMOVE_STALED, removed.append)
    await redis_client.hset("redlock_list", "a", "0")
    await watchdog.check()
    assert watchdog.tracker.streak("a") == 1

    deleting = asyncio.Event()
    original_delete = gateway.delete

    async def slow_delete(key):
        deleting.set()
        await asyncio.sleep(0.05)
        return await original_delete(key)

    gateway.delete = slow_delete

    watchdog.start()
    await asyncio.wait_for(deleting.wait(), timeout=1.0)
    report = await watchdog.check()
    await _stop_and_release(watchdog)

    assert removed == ["a"]
    assert report.reclaimed == []


@pytest.mark.asyncio
async def test_stop_waits_for_metadata_writes(redis_client, gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    original_hset = gateway.hset

    async def slow_hset(name, field, value):
        if name == "redlock_info":
            await asyncio.sleep(0.05)
        return await original_hset(name, field, value)

    gateway.hset = slow_hset

    await watchdog.add_heartbeat("a")
    await watchdog.stop()
    watchdog.release()

    assert await redis_client.hget("redlock_info", "a") is not None


@pytest.mark.asyncio
async def test_reinit_after_release_does_not_overlap_cycles(gateway):
    watchdog = RedlockWatchdog().init(gateway, OPTIONS)
    started = asyncio.Event()
    active = []
    max_active = []
    original_hgetall = gateway.hgetall

    async def slow_hgetall(name):
        active.append(name)
        max_active.append(len(active))
        started.set()
        try:
            await asyncio.sleep(0.1)
            return await original_hgetall(name)
        finally:
            active.pop()

    gateway.hgetall = slow_hgetall

    watchdog.start()
    await asyncio.wait_for(started.wait(), timeout=1.0)
    watchdog.release()
    watchdog.init(gateway, OPTIONS)
    watchdog.start()
    await asyncio.sleep(0.3)
    await _stop_and_release(watchdog)

    assert len(max_active) >= 2
    assert max(max_active) == 1
