"""Pytest configuration shared across the test suite."""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import fakeredis
import fakeredis.aioredis
import pytest

from redlock_watchdog.config import WatchdogOptions
from redlock_watchdog.gateway import RedisGateway
from redlock_watchdog.utils.redis_safeops import RedisSafeOps


@pytest.fixture
def redis_client():
    server = fakeredis.FakeServer()
    return fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def gateway(redis_client):
    return RedisGateway(RedisSafeOps(redis_client, max_retries=0, timeout_seconds=1.0))


@pytest.fixture
def fast_options():
    return WatchdogOptions(delay_ms=100, max_stale_retries=2)
