"""Fixed-delay driver for :class:`~redlock_watchdog.check_cycle.CheckCycle`."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from redlock_watchdog.utils.logging_helpers import LoggerLike, component_logger

CycleRunner = Callable[[], Awaitable[Any]]


class SchedulerLoop:
    """Run a cycle immediately, then again ``delay_seconds`` after each one ends.

    Only one cycle is ever in flight.  :meth:`stop` cancels the pending delay
    but never interrupts a running cycle; the awaitable it returns resolves
    once that cycle has finished.
    """

    def __init__(
        self,
        run_cycle: CycleRunner,
        delay_seconds: float,
        *,
        logger: Optional[LoggerLike] = None,
        predecessor: Optional[asyncio.Future] = None,
    ) -> None:
        self._run_cycle = run_cycle
        self._delay = delay_seconds
        self._logger = component_logger(logger, __name__, event_type="scheduler")
        self._running = False
        self._in_flight = False
        self._task: Optional[asyncio.Task] = None
        self._wakeup: Optional[asyncio.Event] = None
        # Loop of a released scheduler whose last cycle may still be running.
        self._predecessor = predecessor

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self) -> None:
        """Start the loop; a no-op when it is already running."""

        if self._running:
            return

        self._running = True
        self._wakeup = asyncio.Event()
        previous = self._task if self._task is not None and not self._task.done() else None
        if previous is None and self._predecessor is not None and not self._predecessor.done():
            previous = self._predecessor
        self._task = asyncio.create_task(self._loop(previous, self._wakeup))
        self._logger.info(
            "Started redlock watchdog loop",
            extra={"delay_ms": int(self._delay * 1000)},
        )

    def stop(self) -> Awaitable[None]:
        """Stop scheduling new cycles.

        Returns an awaitable resolving once the in-flight cycle, if any, has
        completed.
        """

        was_running = self._running
        self._running = False
        if self._wakeup is not None:
            self._wakeup.set()

        task = self._task
        if was_running:
            self._logger.info("Stopping redlock watchdog loop")
        if task is None or task.done():
            future: asyncio.Future = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future
        return task

    def halt(self) -> Optional[asyncio.Task]:
        """Synchronously stop scheduling without waiting for the in-flight cycle.

        Returns the loop task while it is still finishing, ``None`` otherwise.
        """

        self._running = False
        if self._wakeup is not None:
            self._wakeup.set()
        if self._task is not None and not self._task.done():
            return self._task
        return None

    async def _loop(
        self, previous: Optional[asyncio.Task], wakeup: asyncio.Event
    ) -> None:
        if previous is not None:
            # A restart right after stop() must not overlap the cycle the
            # previous loop is still finishing.
            await asyncio.shield(previous)

        while self._running and not wakeup.is_set():
            self._in_flight = True
            try:
                await self._run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._logger.error(
                    "Redlock watchdog check failed",
                    extra={"error_type": type(exc).__name__},
                    exc_info=True,
                )
            finally:
                self._in_flight = False

            if not self._running or wakeup.is_set():
                break

            try:
                await asyncio.wait_for(wakeup.wait(), timeout=self._delay)
            except asyncio.TimeoutError:
                continue
            break


__all__ = ["SchedulerLoop", "CycleRunner"]
