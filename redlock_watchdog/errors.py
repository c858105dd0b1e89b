"""Exception hierarchy raised by the watchdog public API."""

from __future__ import annotations


class WatchdogError(Exception):
    """Base class for all watchdog errors."""


class ConfigurationError(WatchdogError, ValueError):
    """Raised when watchdog options are invalid."""


class AlreadyInitializedError(WatchdogError):
    """Raised when ``init`` is called on a watchdog that is already bound."""

    def __init__(self) -> None:
        super().__init__("redlock watchdog already initialized")


class NotInitializedError(WatchdogError):
    """Raised when an operation requires a bound store gateway."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"redlock watchdog is not initialized; call init() before {operation}()"
        )
        self.operation = operation


__all__ = [
    "WatchdogError",
    "ConfigurationError",
    "AlreadyInitializedError",
    "NotInitializedError",
]
