"""Helper utilities for structured logging across the watchdog."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, MutableMapping, Tuple, Union


LoggerLike = Union[logging.Logger, logging.LoggerAdapter]

#: Watchdog log records carry these context keys so that downstream
#: processing pipelines can rely on a consistent schema.
REQUIRED_LOG_KEYS: Tuple[str, ...] = (
    "lock_key",
    "phase",
    "event_type",
)

#: Baseline context included in every logger adapter to guarantee the
#: ``REQUIRED_LOG_KEYS`` are present in the payload, even when a specific
#: operation does not have values for all fields.
DEFAULT_LOG_CONTEXT: Dict[str, Any] = {key: None for key in REQUIRED_LOG_KEYS}


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that keeps structured context values attached."""

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        super().__init__(logger, dict(extra or {}))

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        extra = dict(self.extra)
        provided = kwargs.get("extra")
        if provided:
            extra.update(provided)
        kwargs["extra"] = extra
        return msg, kwargs

    def getChild(self, suffix: str) -> "ContextLoggerAdapter":  # noqa: N802 - mirror logging API
        child = self.logger.getChild(suffix)
        return ContextLoggerAdapter(child, dict(self.extra))

    def bind(self, **kwargs: Any) -> "ContextLoggerAdapter":
        return add_context(self, **kwargs)


def _unwrap_logger(logger: LoggerLike) -> tuple[logging.Logger, Mapping[str, Any]]:
    if isinstance(logger, logging.LoggerAdapter):
        base_logger = logger.logger
        base_extra = getattr(logger, "extra", None) or {}
        return base_logger, dict(base_extra)
    return logger, {}


def add_context(logger: LoggerLike, **kwargs: Any) -> ContextLoggerAdapter:
    """Return a :class:`ContextLoggerAdapter` with merged structured context."""

    base_logger, base_extra = _unwrap_logger(logger)
    merged: Dict[str, Any] = {**DEFAULT_LOG_CONTEXT, **base_extra}
    merged.update(kwargs)
    return ContextLoggerAdapter(base_logger, merged)


def component_logger(
    logger: LoggerLike | None, name: str, **context: Any
) -> ContextLoggerAdapter:
    """Return a context logger for a watchdog component.

    ``logger`` is the parent supplied by the caller; when omitted the module
    logger named ``name`` is used instead.
    """

    if logger is None:
        return add_context(logging.getLogger(name), **context)
    return add_context(logger, **context)


__all__ = [
    "LoggerLike",
    "REQUIRED_LOG_KEYS",
    "DEFAULT_LOG_CONTEXT",
    "ContextLoggerAdapter",
    "add_context",
    "component_logger",
]
