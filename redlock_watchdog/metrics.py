"""Centralised Prometheus metric definitions for the watchdog."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


CHECK_CYCLES_TOTAL = Counter(
    "redlock_watchdog_check_cycles_total",
    "Number of check cycles executed",
    labelnames=["outcome"],
)

HEARTBEATS_TOTAL = Counter(
    "redlock_watchdog_heartbeats_total",
    "Heartbeat counter increments issued for locally owned locks",
    labelnames=["status"],
)

STALE_LOCKS_RECLAIMED_TOTAL = Counter(
    "redlock_watchdog_stale_locks_reclaimed_total",
    "Zombie locks deleted after their heartbeat stopped advancing",
)

STALE_LOCK_DELETE_FAILURES_TOTAL = Counter(
    "redlock_watchdog_stale_lock_delete_failures_total",
    "Deletion jobs that failed and will be retried on the next cycle",
)

CHECK_CYCLE_DURATION = Histogram(
    "redlock_watchdog_check_cycle_duration_seconds",
    "Latency distribution for a full check cycle",
)

REDIS_OPERATION_DURATION = Histogram(
    "redlock_watchdog_redis_operation_duration_seconds",
    "Latency distribution for Redis operations issued by the watchdog",
    labelnames=["method", "status"],
)


def record_redis_operation(method: str, elapsed: float, status: str) -> None:
    """``RedisSafeOps`` metrics recorder feeding :data:`REDIS_OPERATION_DURATION`."""

    REDIS_OPERATION_DURATION.labels(method=method, status=status).observe(elapsed)


__all__ = [
    "CHECK_CYCLES_TOTAL",
    "HEARTBEATS_TOTAL",
    "STALE_LOCKS_RECLAIMED_TOTAL",
    "STALE_LOCK_DELETE_FAILURES_TOTAL",
    "CHECK_CYCLE_DURATION",
    "REDIS_OPERATION_DURATION",
    "record_redis_operation",
]
