"""A single heartbeat-and-reclaim round of the watchdog."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from redlock_watchdog import metrics
from redlock_watchdog.config import WatchdogOptions
from redlock_watchdog.events import REMOVE_STALED, EventSink
from redlock_watchdog.gateway import KeyValueGateway
from redlock_watchdog.heartbeats import HeartbeatRegistry
from redlock_watchdog.staleness import StalenessTracker
from redlock_watchdog.utils.logging_helpers import LoggerLike, component_logger


@dataclass
class CycleReport:
    """Summary of what one :meth:`CheckCycle.run` call did."""

    cycle: int
    heartbeats_sent: List[str] = field(default_factory=list)
    heartbeat_failures: List[str] = field(default_factory=list)
    scanned: bool = False
    snapshot_size: int = 0
    snapshot_error: Optional[str] = None
    stale: List[str] = field(default_factory=list)
    reclaimed: List[str] = field(default_factory=list)
    failed_deletions: List[str] = field(default_factory=list)
    reconciled: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def outcome(self) -> str:
        if self.snapshot_error is not None:
            return "snapshot_failed"
        if self.heartbeat_failures or self.failed_deletions:
            return "partial"
        return "ok"


class CheckCycle:
    """Increment local heartbeats, then reclaim locks whose counters stalled.

    :meth:`run` never raises for store failures: every failure is logged and
    confined to the affected key or phase so the scheduler keeps its pace.
    At most one cycle runs at a time per instance.
    """

    def __init__(
        self,
        gateway: KeyValueGateway,
        options: WatchdogOptions,
        heartbeats: HeartbeatRegistry,
        tracker: StalenessTracker,
        events: EventSink,
        *,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        self._gateway = gateway
        self._options = options
        self._heartbeats = heartbeats
        self._tracker = tracker
        self._events = events
        self._logger = component_logger(logger, __name__, event_type="check_cycle")
        self._cycle = 0
        self._lock = asyncio.Lock()

    @property
    def cycles_run(self) -> int:
        return self._cycle

    async def run(self) -> CycleReport:
        """Run one cycle; concurrent callers are queued behind the running one."""

        async with self._lock:
            return await self._run_locked()

    async def _run_locked(self) -> CycleReport:
        self._cycle += 1
        report = CycleReport(cycle=self._cycle)
        start_time = time.monotonic()

        await self._send_heartbeats(report)

        if not self._options.only_heartbeat:
            await self._scan(report)

        report.duration_seconds = time.monotonic() - start_time
        metrics.CHECK_CYCLES_TOTAL.labels(outcome=report.outcome).inc()
        metrics.CHECK_CYCLE_DURATION.observe(report.duration_seconds)
        self._trace(report)
        return report

    async def _send_heartbeats(self, report: CycleReport) -> None:
        keys = self._heartbeats.keys()
        if not keys:
            return

        hash_key = self._options.redlock_hash_key
        results = await asyncio.gather(
            *(self._gateway.hincrby(hash_key, key, 1) for key in keys),
            return_exceptions=True,
        )
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                report.heartbeat_failures.append(key)
                metrics.HEARTBEATS_TOTAL.labels(status="failure").inc()
                self._logger.warning(
                    "Heartbeat increment failed",
                    extra={
                        "cycle": report.cycle,
                        "phase": "heartbeat",
                        "lock_key": key,
                        "error_type": type(result).__name__,
                    },
                    exc_info=result,
                )
            else:
                report.heartbeats_sent.append(key)
                metrics.HEARTBEATS_TOTAL.labels(status="success").inc()

    async def _scan(self, report: CycleReport) -> None:
        try:
            snapshot: Dict[str, str] = dict(
                await self._gateway.hgetall(self._options.redlock_hash_key) or {}
            )
        except Exception as exc:
            report.snapshot_error = type(exc).__name__
            self._logger.error(
                "Failed to read redlock counters; skipping staleness scan",
                extra={
                    "cycle": report.cycle,
                    "phase": "snapshot",
                    "hash_key": self._options.redlock_hash_key,
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return

        report.scanned = True
        report.snapshot_size = len(snapshot)

        observation = self._tracker.observe(snapshot)
        report.stale = list(observation.stale)
        report.reconciled = list(observation.reconciled)

        if not observation.stale:
            return

        results = await asyncio.gather(
            *(self._reclaim(key, report.cycle) for key in observation.stale),
            return_exceptions=True,
        )
        for key, result in zip(observation.stale, results):
            if result is True:
                report.reclaimed.append(key)
            else:
                report.failed_deletions.append(key)

    async def _reclaim(self, key: str, cycle: int) -> bool:
        """Delete a zombie lock and its bookkeeping; return ``True`` on success."""

        log_extra: Dict[str, Any] = {"cycle": cycle, "phase": "reclaim", "lock_key": key}
        try:
            await self._gateway.delete(key)
            await self._gateway.hdel(self._options.redlock_hash_key, key)
            await self._gateway.hdel(self._options.redlock_info_key, key)
        except Exception as exc:
            metrics.STALE_LOCK_DELETE_FAILURES_TOTAL.inc()
            self._logger.error(
                "Failed to delete stale redlock",
                extra={**log_extra, "error_type": type(exc).__name__},
                exc_info=True,
            )
            return False

        self._tracker.forget(key)
        metrics.STALE_LOCKS_RECLAIMED_TOTAL.inc()
        self._logger.info("Removed stale redlock", extra=log_extra)
        self._events.emit(REMOVE_STALED, key)
        return True

    def _trace(self, report: CycleReport) -> None:
        if not self._options.debug:
            return
        self._logger.debug(
            "Check cycle finished",
            extra={
                "cycle": report.cycle,
                "debug_mode": True,
                "only_heartbeat": self._options.only_heartbeat,
                "heartbeats": report.heartbeats_sent,
                "heartbeat_failures": report.heartbeat_failures,
                "snapshot_size": report.snapshot_size,
                "streaks": dict(self._tracker.streaks),
                "previous": dict(self._tracker.previous),
                "stale": report.stale,
                "reclaimed": report.reclaimed,
                "failed_deletions": report.failed_deletions,
                "reconciled": report.reconciled,
                "duration_seconds": round(report.duration_seconds, 4),
            },
        )


__all__ = ["CheckCycle", "CycleReport"]
