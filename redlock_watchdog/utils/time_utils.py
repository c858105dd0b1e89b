"""Timezone-aware datetime helpers used across the watchdog."""

from __future__ import annotations

import datetime as dt


UTC = dt.timezone.utc


def now_utc() -> dt.datetime:
    """Return the current time as an aware ``datetime`` in UTC."""

    return dt.datetime.now(UTC)


def isoformat_utc(value: dt.datetime | None = None) -> str:
    """Return ``value`` (or the current time) as an ISO-8601 UTC string."""

    if value is None:
        return now_utc().isoformat()
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


__all__ = ["UTC", "now_utc", "isoformat_utc"]
