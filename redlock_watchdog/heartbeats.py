"""Locally owned locks whose heartbeat counters this process keeps alive."""

from __future__ import annotations

import asyncio
import json
import os
import socket
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

from redlock_watchdog.config import WatchdogOptions
from redlock_watchdog.gateway import KeyValueGateway
from redlock_watchdog.utils.logging_helpers import LoggerLike, component_logger
from redlock_watchdog.utils.time_utils import isoformat_utc


def build_lock_metadata(extra: Optional[Mapping[str, Any]] = None) -> str:
    """Return the JSON descriptor stored next to a lock's counter."""

    payload = {
        "host": socket.gethostname(),
        "pid": os.getpid(),
        "registered_at": isoformat_utc(),
    }
    if extra:
        payload.update(extra)
    return json.dumps(payload, ensure_ascii=False, default=str)


class HeartbeatRegistry:
    """Set of lock keys owned by this process.

    Registering a key resets its shared counter to ``0`` and writes a
    best-effort metadata descriptor.  The registry never touches staleness
    tracking state; a key that leaves the shared counter hash is reconciled by
    the next check cycle.
    """

    def __init__(
        self,
        gateway: KeyValueGateway,
        options: WatchdogOptions,
        *,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        self._gateway = gateway
        self._options = options
        self._logger = component_logger(logger, __name__, phase="heartbeat")
        self._keys: Set[str] = set()
        self._pending: Dict[str, Set[asyncio.Task]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> List[str]:
        return sorted(self._keys)

    async def add_heartbeat(
        self, key: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> None:
        self._keys.add(key)
        await self._gateway.hset(self._options.redlock_hash_key, key, "0")
        self._logger.debug("Heartbeat registered", extra={"lock_key": key})

        descriptor = build_lock_metadata(metadata)
        task = asyncio.create_task(self._write_metadata(key, descriptor))
        self._pending.setdefault(key, set()).add(task)
        task.add_done_callback(lambda done, key=key: self._discard_pending(key, done))

    async def remove_heartbeat(self, key: str) -> None:
        self._keys.discard(key)
        # A metadata write landing after the HDEL would never be cleaned up.
        pending = list(self._pending.get(key, ()))
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._gateway.hdel(self._options.redlock_hash_key, key)
        await self._gateway.hdel(self._options.redlock_info_key, key)
        self._logger.debug("Heartbeat removed", extra={"lock_key": key})

    async def _write_metadata(self, key: str, descriptor: str) -> None:
        try:
            await self._gateway.hset(self._options.redlock_info_key, key, descriptor)
        except Exception as exc:
            self._logger.warning(
                "Failed to write lock metadata",
                extra={"lock_key": key, "error_type": type(exc).__name__},
                exc_info=True,
            )

    def _discard_pending(self, key: str, task: asyncio.Task) -> None:
        tasks = self._pending.get(key)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            del self._pending[key]

    async def drain_pending(self) -> None:
        """Wait for outstanding metadata writes to settle."""

        pending = [task for tasks in self._pending.values() for task in tasks]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def clear(self) -> None:
        self._keys.clear()
        for tasks in list(self._pending.values()):
            for task in list(tasks):
                task.cancel()
        self._pending.clear()


__all__ = ["HeartbeatRegistry", "build_lock_metadata"]
