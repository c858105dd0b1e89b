"""Single-slot event listeners notified by the watchdog."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from redlock_watchdog.utils.logging_helpers import LoggerLike, component_logger

#: Fired with the reclaimed lock key after a zombie lock was fully deleted.
REMOVE_STALED = "removeStaled"

EVENT_NAMES = (REMOVE_STALED,)

Listener = Callable[..., Any]


class EventSink:
    """Holds at most one handler per event name.

    Registering a handler for an event replaces the previous one.  Emitting an
    event without a handler is a no-op.
    """

    def __init__(self, *, logger: Optional[LoggerLike] = None) -> None:
        self._logger = component_logger(logger, __name__, event_type="listener")
        self._listeners: Dict[str, Optional[Listener]] = {
            name: None for name in EVENT_NAMES
        }

    def listen(self, event_name: str, handler: Optional[Listener]) -> None:
        if event_name not in self._listeners:
            raise ValueError(
                f"Unknown watchdog event {event_name!r}; expected one of {EVENT_NAMES}"
            )
        if handler is not None and not callable(handler):
            raise TypeError("event handler must be callable")
        self._listeners[event_name] = handler

    def has_listener(self, event_name: str) -> bool:
        return self._listeners.get(event_name) is not None

    def emit(self, event_name: str, *args: Any) -> None:
        handler = self._listeners.get(event_name)
        if handler is None:
            return
        try:
            handler(*args)
        except Exception as exc:
            self._logger.error(
                "Watchdog event handler raised",
                extra={
                    "event_type": event_name,
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    def clear(self) -> None:
        for name in self._listeners:
            self._listeners[name] = None


__all__ = ["EventSink", "REMOVE_STALED", "EVENT_NAMES", "Listener"]
