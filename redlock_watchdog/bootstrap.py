"""Application composition root for the redlock watchdog service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import redis.asyncio as aioredis

from redlock_watchdog.config import Config
from redlock_watchdog.gateway import RedisGateway
from redlock_watchdog.logging_config import setup_logging
from redlock_watchdog.metrics import record_redis_operation
from redlock_watchdog.utils.logging_helpers import ContextLoggerAdapter, add_context
from redlock_watchdog.utils.redis_safeops import RedisSafeOps
from redlock_watchdog.watchdog import RedlockWatchdog


def _build_redis_client_kwargs(cfg: Config) -> Dict[str, Any]:
    """Return connection settings for the Redis client."""

    return {
        "host": cfg.REDIS_HOST,
        "port": cfg.REDIS_PORT,
        "db": cfg.REDIS_DB,
        "password": cfg.REDIS_PASS or None,
        "socket_connect_timeout": cfg.REDIS_TIMEOUT_SECONDS,
        "socket_timeout": cfg.REDIS_TIMEOUT_SECONDS,
        "retry_on_timeout": True,
        "health_check_interval": 30,
    }


@dataclass(frozen=True)
class ApplicationServices:
    """Container for infrastructure dependencies shared by the service."""

    logger: ContextLoggerAdapter
    kv_async: aioredis.Redis
    redis_ops: RedisSafeOps
    gateway: RedisGateway
    watchdog: RedlockWatchdog


def build_services(cfg: Config) -> ApplicationServices:
    """Wire logging, Redis and an initialised watchdog from ``cfg``.

    Raises :class:`~redlock_watchdog.errors.ConfigurationError` when the
    configured watchdog options are invalid.
    """

    options = cfg.options()
    setup_logging(debug_mode=cfg.DEBUG)
    logger = add_context(logging.getLogger("redlock_watchdog"), category="service")

    kv_async = aioredis.Redis(**_build_redis_client_kwargs(cfg))
    redis_ops = RedisSafeOps(
        kv_async,
        logger=logger.getChild("redis"),
        max_retries=cfg.REDIS_MAX_RETRIES,
        timeout_seconds=cfg.REDIS_TIMEOUT_SECONDS,
        metrics_recorder=record_redis_operation,
    )
    gateway = RedisGateway(redis_ops)
    watchdog = RedlockWatchdog.create(gateway, options, logger=logger)

    return ApplicationServices(
        logger=logger,
        kv_async=kv_async,
        redis_ops=redis_ops,
        gateway=gateway,
        watchdog=watchdog,
    )


__all__ = ["ApplicationServices", "build_services"]
