"""Caller-owned handle tying the watchdog components together."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Mapping, Optional, Union

from redlock_watchdog.check_cycle import CheckCycle, CycleReport
from redlock_watchdog.config import WatchdogOptions
from redlock_watchdog.errors import AlreadyInitializedError, NotInitializedError
from redlock_watchdog.events import EventSink, Listener
from redlock_watchdog.gateway import KeyValueGateway
from redlock_watchdog.heartbeats import HeartbeatRegistry
from redlock_watchdog.scheduler import SchedulerLoop
from redlock_watchdog.staleness import StalenessTracker
from redlock_watchdog.utils.logging_helpers import LoggerLike, add_context

OptionsLike = Union[WatchdogOptions, Mapping[str, Any], None]


class RedlockWatchdog:
    """Detects and deletes zombie redlocks.

    A handle is bound to a store gateway with :meth:`init` and returned to its
    defaults with :meth:`release`, after which it may be initialised again.
    Binding twice without a release raises :class:`AlreadyInitializedError`.

    All methods must be called from the event loop that runs the watchdog.
    """

    def __init__(self, *, logger: Optional[LoggerLike] = None) -> None:
        self._logger = add_context(
            logger or logging.getLogger("redlock_watchdog"),
            event_type="watchdog",
        )
        self._events = EventSink(logger=self._logger)
        self._gateway: Optional[KeyValueGateway] = None
        self._options = WatchdogOptions()
        self._heartbeats: Optional[HeartbeatRegistry] = None
        self._tracker: Optional[StalenessTracker] = None
        self._check: Optional[CheckCycle] = None
        self._scheduler: Optional[SchedulerLoop] = None
        self._draining: Optional[asyncio.Task] = None

    @classmethod
    def create(
        cls,
        gateway: KeyValueGateway,
        options: OptionsLike = None,
        *,
        logger: Optional[LoggerLike] = None,
    ) -> "RedlockWatchdog":
        return cls(logger=logger).init(gateway, options)

    # -- lifecycle -----------------------------------------------------

    def init(self, gateway: KeyValueGateway, options: OptionsLike = None) -> "RedlockWatchdog":
        if self._gateway is not None:
            raise AlreadyInitializedError()

        if isinstance(options, WatchdogOptions):
            resolved = options
        else:
            resolved = WatchdogOptions.from_mapping(options)

        heartbeats = HeartbeatRegistry(gateway, resolved, logger=self._logger)
        tracker = StalenessTracker(resolved.max_stale_retries)
        check = CheckCycle(
            gateway, resolved, heartbeats, tracker, self._events, logger=self._logger
        )

        self._gateway = gateway
        self._options = resolved
        self._heartbeats = heartbeats
        self._tracker = tracker
        self._check = check
        self._scheduler = SchedulerLoop(
            check.run,
            resolved.delay_seconds,
            logger=self._logger,
            predecessor=self._draining,
        )
        self._logger.info(
            "Redlock watchdog initialised",
            extra={
                "hash_key": resolved.redlock_hash_key,
                "delay_ms": resolved.delay_ms,
                "max_stale_retries": resolved.max_stale_retries,
                "only_heartbeat": resolved.only_heartbeat,
            },
        )
        return self

    def release(self) -> None:
        """Drop the bound gateway and all local state.

        Scheduling stops immediately and pending metadata writes are
        cancelled; await :meth:`stop` beforehand to let an in-flight cycle and
        those writes finish before the store connection is closed.  A cycle
        still running after ``release`` delays the first cycle of the next
        :meth:`start` until it completes.
        """

        if self._scheduler is not None:
            halted = self._scheduler.halt()
            if halted is not None:
                self._draining = halted
        if self._heartbeats is not None:
            self._heartbeats.clear()
        if self._tracker is not None:
            self._tracker.reset()
        self._events.clear()
        self._gateway = None
        self._options = WatchdogOptions()
        self._heartbeats = None
        self._tracker = None
        self._check = None
        self._scheduler = None

    @property
    def is_initialized(self) -> bool:
        return self._gateway is not None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def options(self) -> WatchdogOptions:
        return self._options

    @property
    def heartbeats(self) -> HeartbeatRegistry:
        self._require("heartbeats")
        assert self._heartbeats is not None
        return self._heartbeats

    @property
    def tracker(self) -> StalenessTracker:
        self._require("tracker")
        assert self._tracker is not None
        return self._tracker

    # -- operations ----------------------------------------------------

    def listen(self, event_name: str, handler: Optional[Listener]) -> None:
        self._events.listen(event_name, handler)

    async def add_heartbeat(
        self, key: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> None:
        await self.heartbeats.add_heartbeat(key, metadata)

    async def remove_heartbeat(self, key: str) -> None:
        await self.heartbeats.remove_heartbeat(key)

    async def check(self) -> CycleReport:
        """Run a single check cycle outside of the scheduler.

        While the scheduler has a cycle in flight this waits for it to finish
        first.
        """

        self._require("check")
        assert self._check is not None
        return await self._check.run()

    def start(self) -> None:
        self._require("start")
        assert self._scheduler is not None
        self._scheduler.start()

    def stop(self) -> Awaitable[None]:
        """Stop scheduling cycles.

        The returned awaitable resolves once the in-flight cycle and pending
        metadata writes have settled.  On an unbound handle it is already
        resolved.
        """

        if self._scheduler is None:
            future: asyncio.Future = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future
        return asyncio.ensure_future(
            self._finish_stop(self._scheduler.stop(), self._heartbeats)
        )

    @staticmethod
    async def _finish_stop(
        scheduler_stopped: Awaitable[None], heartbeats: Optional[HeartbeatRegistry]
    ) -> None:
        await scheduler_stopped
        if heartbeats is not None:
            await heartbeats.drain_pending()

    def _require(self, operation: str) -> None:
        if self._gateway is None:
            raise NotInitializedError(operation)


__all__ = ["RedlockWatchdog", "OptionsLike"]
