"""Key-value store capability consumed by the watchdog.

The watchdog only needs a handful of hash primitives.  :class:`KeyValueGateway`
describes them as a :class:`typing.Protocol` so tests and alternative stores
can provide their own implementation; :class:`RedisGateway` is the production
adapter backed by :class:`~redlock_watchdog.utils.redis_safeops.RedisSafeOps`.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Union

from redlock_watchdog.utils.redis_safeops import RedisSafeOps


class KeyValueGateway(Protocol):
    """Protocol describing the store operations required by the watchdog."""

    async def hset(self, name: str, field: str, value: str) -> Any:
        ...

    async def hincrby(self, name: str, field: str, delta: int) -> int:
        ...

    async def hgetall(self, name: str) -> Mapping[str, str]:
        ...

    async def hdel(self, name: str, field: str) -> Any:
        ...

    async def delete(self, key: str) -> Any:
        ...


def _to_text(value: Union[bytes, str, int, None]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return "" if value is None else str(value)


class RedisGateway:
    """:class:`KeyValueGateway` implementation backed by Redis.

    Values read back from Redis are always returned as ``str`` regardless of
    the client's ``decode_responses`` setting.
    """

    def __init__(self, redis_ops: RedisSafeOps) -> None:
        self._ops = redis_ops

    @property
    def redis_ops(self) -> RedisSafeOps:
        return self._ops

    async def hset(self, name: str, field: str, value: str) -> int:
        return await self._ops.safe_hset(
            name, field, value, log_extra={"hash_key": name, "lock_key": field}
        )

    async def hincrby(self, name: str, field: str, delta: int) -> int:
        return await self._ops.safe_hincrby(
            name, field, delta, log_extra={"hash_key": name, "lock_key": field}
        )

    async def hgetall(self, name: str) -> Dict[str, str]:
        raw: Optional[Mapping[Any, Any]] = await self._ops.safe_hgetall(
            name, log_extra={"hash_key": name}
        )
        if not raw:
            return {}
        return {_to_text(field): _to_text(value) for field, value in raw.items()}

    async def hdel(self, name: str, field: str) -> int:
        return await self._ops.safe_hdel(
            name, field, log_extra={"hash_key": name, "lock_key": field}
        )

    async def delete(self, key: str) -> int:
        return await self._ops.safe_delete(key, log_extra={"lock_key": key})


__all__ = ["KeyValueGateway", "RedisGateway"]
