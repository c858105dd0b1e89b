"""Reliable Redis operations with structured logging and retry support."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError, ResponseError, TimeoutError

from redlock_watchdog.logging_config import ContextJsonFormatter
from redlock_watchdog.utils.logging_helpers import LoggerLike, add_context

MetricsRecorder = Callable[[str, float, str], None]


class RedisSafeOps:
    """Wrap an ``aioredis`` client with timeout and retry/backoff behaviour.

    The helper provides a single :meth:`call` entry point that bounds every
    Redis round trip with ``timeout_seconds``, retries transient connection
    issues with exponential backoff and emits structured log entries
    compatible with :class:`ContextJsonFormatter`.  The ``safe_*`` methods
    cover the hash and key operations the watchdog performs.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        *,
        logger: Optional[LoggerLike] = None,
        max_retries: int = 3,
        base_backoff: float = 0.5,
        backoff_factor: float = 2.0,
        timeout_seconds: float = 5.0,
        metrics_recorder: Optional[MetricsRecorder] = None,
    ) -> None:
        self._redis = redis_client
        base_logger = logger or logging.getLogger(__name__).getChild("RedisSafeOps")
        self._logger = add_context(base_logger)
        self._max_retries = max_retries
        self._base_backoff = base_backoff
        self._backoff_factor = backoff_factor
        self._timeout_seconds = timeout_seconds
        self._metrics_recorder = metrics_recorder

        # Ensure logs follow the JSON structure even when a custom logger is
        # provided without handlers.  If the application already configured
        # logging we simply propagate to the parent handlers.
        underlying_logger = self._logger.logger
        if not underlying_logger.handlers and not underlying_logger.propagate:
            handler = logging.StreamHandler()
            handler.setFormatter(ContextJsonFormatter())
            underlying_logger.addHandler(handler)
            underlying_logger.setLevel(logging.INFO)

    @property
    def client(self) -> aioredis.Redis:
        return self._redis

    async def call(
        self,
        method: str,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Execute a Redis method with retry/backoff and structured logging."""

        attempt = 0
        delay = self._base_backoff
        last_exception: Optional[BaseException] = None
        start_time = time.monotonic()
        log_extra: Optional[Dict[str, Any]] = kwargs.pop("log_extra", None)

        while attempt <= self._max_retries:
            try:
                coroutine: Awaitable[Any] = getattr(self._redis, method)(*args, **kwargs)
                result = await asyncio.wait_for(coroutine, timeout=self._timeout_seconds)
                self._record_metrics(method, time.monotonic() - start_time, "success")
                return result
            except (ConnectionError, TimeoutError, asyncio.TimeoutError) as exc:
                last_exception = exc
                attempt += 1
                payload = {
                    "method": method,
                    "redis_args": self._truncate_args(args),
                    "attempt": attempt,
                    "max_attempts": self._max_retries + 1,
                    "error_type": exc.__class__.__name__,
                }
                if log_extra:
                    payload.update(log_extra)
                self._logger.warning("Redis connection issue", extra=payload)
                if attempt > self._max_retries:
                    break
                await asyncio.sleep(delay)
                delay *= self._backoff_factor
            except ResponseError as exc:
                last_exception = exc
                payload = {
                    "method": method,
                    "redis_args": self._truncate_args(args),
                    "error": str(exc),
                    "error_type": exc.__class__.__name__,
                }
                if log_extra:
                    payload.update(log_extra)
                self._logger.error("Redis response error", extra=payload)
                break

        if last_exception is not None:
            self._record_metrics(method, time.monotonic() - start_time, "failure")
            raise last_exception

        raise TimeoutError("Redis operation timed out without explicit error")

    async def safe_delete(
        self, *keys: str, log_extra: Optional[Dict[str, Any]] = None
    ) -> int:
        result = await self.call("delete", *keys, log_extra=log_extra)
        return int(result or 0)

    async def safe_hgetall(
        self, key: str, *, log_extra: Optional[Dict[str, Any]] = None
    ) -> dict[Any, Any]:
        result = await self.call("hgetall", key, log_extra=log_extra)
        return result or {}

    async def safe_hset(
        self,
        key: str,
        field: str,
        value: Union[str, int, bytes],
        *,
        log_extra: Optional[Dict[str, Any]] = None,
    ) -> int:
        return int(
            await self.call("hset", key, field, value, log_extra=log_extra) or 0
        )

    async def safe_hincrby(
        self,
        key: str,
        field: str,
        amount: int = 1,
        *,
        log_extra: Optional[Dict[str, Any]] = None,
    ) -> int:
        return int(
            await self.call("hincrby", key, field, amount, log_extra=log_extra)
        )

    async def safe_hdel(
        self, key: str, *fields: str, log_extra: Optional[Dict[str, Any]] = None
    ) -> int:
        return int(
            await self.call("hdel", key, *fields, log_extra=log_extra) or 0
        )

    def _record_metrics(self, method: str, elapsed: float, status: str) -> None:
        if self._metrics_recorder is None:
            return
        try:
            self._metrics_recorder(method, elapsed, status)
        except Exception:  # pragma: no cover - metric failures shouldn't bubble
            self._logger.debug(
                "Redis metrics recorder raised",
                extra={"method": method, "status": status},
            )

    @staticmethod
    def _truncate_args(args: Sequence[Any], max_length: int = 5) -> Sequence[Any]:
        if len(args) <= max_length:
            return args
        return tuple(list(args[: max_length - 1]) + ["<truncated>"])


__all__ = ["RedisSafeOps"]
