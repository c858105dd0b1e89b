"""Detect and reclaim zombie redlocks whose owners stopped heartbeating."""

from redlock_watchdog.check_cycle import CheckCycle, CycleReport
from redlock_watchdog.config import WatchdogOptions
from redlock_watchdog.errors import (
    AlreadyInitializedError,
    ConfigurationError,
    NotInitializedError,
    WatchdogError,
)
from redlock_watchdog.events import REMOVE_STALED, EventSink
from redlock_watchdog.gateway import KeyValueGateway, RedisGateway
from redlock_watchdog.heartbeats import HeartbeatRegistry
from redlock_watchdog.scheduler import SchedulerLoop
from redlock_watchdog.staleness import StalenessTracker
from redlock_watchdog.watchdog import RedlockWatchdog

__all__ = [
    "AlreadyInitializedError",
    "CheckCycle",
    "ConfigurationError",
    "CycleReport",
    "EventSink",
    "HeartbeatRegistry",
    "KeyValueGateway",
    "NotInitializedError",
    "REMOVE_STALED",
    "RedisGateway",
    "RedlockWatchdog",
    "SchedulerLoop",
    "StalenessTracker",
    "WatchdogError",
    "WatchdogOptions",
]
