import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from redlock_watchdog.errors import ConfigurationError


logger = logging.getLogger(__name__)


_BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_DELAY_MS = 60000
DEFAULT_REDLOCK_HASH_KEY = "redlock_list"
DEFAULT_REDLOCK_INFO_KEY = "redlock_info"
DEFAULT_MAX_STALE_RETRIES = 5
MIN_STALE_RETRIES = 2

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}

#: Option names accepted by :meth:`WatchdogOptions.from_mapping` mapped to
#: their dataclass field.  The camelCase spellings are kept for callers
#: migrating configuration written for the JavaScript watchdog.
_OPTION_ALIASES: Dict[str, str] = {
    "delayMs": "delay_ms",
    "redlockHashKey": "redlock_hash_key",
    "redlockInfoKey": "redlock_info_key",
    "maxStaleRetries": "max_stale_retries",
    "onlyHeartbeat": "only_heartbeat",
}


def _coerce_bool(value: Any, *, option: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    raise ConfigurationError(f"{option} must be a boolean, got {value!r}")


def _coerce_int(value: Any, *, option: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{option} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{option} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class WatchdogOptions:
    """Validated watchdog settings.

    ``delay_ms`` is the polling interval; a lock is reclaimed once its
    heartbeat counter stays unchanged for ``max_stale_retries`` consecutive
    polls.  ``only_heartbeat`` limits the process to keeping its own locks
    alive without taking part in reclamation.
    """

    delay_ms: int = DEFAULT_DELAY_MS
    redlock_hash_key: str = DEFAULT_REDLOCK_HASH_KEY
    redlock_info_key: str = DEFAULT_REDLOCK_INFO_KEY
    max_stale_retries: int = DEFAULT_MAX_STALE_RETRIES
    only_heartbeat: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        if self.max_stale_retries < MIN_STALE_RETRIES:
            raise ConfigurationError(
                f"max_stale_retries must be {MIN_STALE_RETRIES} or more, "
                f"got {self.max_stale_retries}"
            )
        if self.delay_ms <= 0:
            raise ConfigurationError(
                f"delay_ms must be greater than zero, got {self.delay_ms}"
            )
        if not self.redlock_hash_key:
            raise ConfigurationError("redlock_hash_key must not be empty")
        if not self.redlock_info_key:
            raise ConfigurationError("redlock_info_key must not be empty")
        if self.redlock_hash_key == self.redlock_info_key:
            raise ConfigurationError(
                "redlock_hash_key and redlock_info_key must name different hashes"
            )

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "WatchdogOptions":
        """Build options from a loosely typed mapping.

        Missing or ``None`` values keep their defaults; unknown keys are
        logged and ignored.
        """

        if not raw:
            return cls()

        known = {field.name for field in fields(cls)}
        values: Dict[str, Any] = {}
        for raw_key, raw_value in raw.items():
            key = _OPTION_ALIASES.get(raw_key, raw_key)
            if key not in known:
                logger.warning(
                    "Ignoring unknown watchdog option %s",
                    raw_key,
                    extra={"category": "config"},
                )
                continue
            if raw_value is None:
                continue
            values[key] = raw_value

        for key in ("delay_ms", "max_stale_retries"):
            if key in values:
                values[key] = _coerce_int(values[key], option=key)
        for key in ("only_heartbeat", "debug"):
            if key in values:
                values[key] = _coerce_bool(values[key], option=key)
        for key in ("redlock_hash_key", "redlock_info_key"):
            if key in values:
                values[key] = str(values[key])

        return cls(**values)


def _resolve_config_path(candidate: Optional[str]) -> Optional[Path]:
    if not candidate:
        return None
    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = _BASE_DIR / path
    return path


def load_options_file(path: Optional[Path]) -> Dict[str, Any]:
    """Read watchdog options from a YAML document.

    The document may either hold the options at the top level or under a
    ``watchdog`` section.  A missing file yields an empty mapping.
    """

    if path is None:
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except FileNotFoundError:
        logger.warning(
            "Watchdog options file %s not found; using defaults.",
            path,
            extra={"category": "config", "config_path": str(path)},
        )
        return {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{path} must contain a mapping of options")
    section = data.get("watchdog", data)
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"'watchdog' section of {path} must be a mapping")
    return dict(section)


class Config:
    """Process configuration read from the environment.

    Watchdog options come from the optional YAML file named by
    ``REDLOCK_WATCHDOG_OPTIONS_FILE``; individual environment variables
    override the file.  Options are validated lazily by :meth:`options` so a
    bad value surfaces as a :class:`ConfigurationError` at initialisation.
    """

    def __init__(self) -> None:
        self.REDIS_HOST: str = os.getenv(
            "REDLOCK_WATCHDOG_REDIS_HOST",
            default="localhost",
        )
        self.REDIS_PORT: int = self._parse_int_env(
            os.getenv("REDLOCK_WATCHDOG_REDIS_PORT"),
            default=6379,
            env_var="REDLOCK_WATCHDOG_REDIS_PORT",
        )
        self.REDIS_PASS: str = os.getenv(
            "REDLOCK_WATCHDOG_REDIS_PASS",
            default="",
        )
        self.REDIS_DB: int = self._parse_int_env(
            os.getenv("REDLOCK_WATCHDOG_REDIS_DB"),
            default=0,
            env_var="REDLOCK_WATCHDOG_REDIS_DB",
        )
        self.REDIS_TIMEOUT_SECONDS: float = (
            self._parse_positive_float(
                os.getenv("REDLOCK_WATCHDOG_REDIS_TIMEOUT_SECONDS"),
                env_var="REDLOCK_WATCHDOG_REDIS_TIMEOUT_SECONDS",
            )
            or 5.0
        )
        self.REDIS_MAX_RETRIES: int = max(
            self._parse_int_env(
                os.getenv("REDLOCK_WATCHDOG_REDIS_MAX_RETRIES"),
                default=3,
                env_var="REDLOCK_WATCHDOG_REDIS_MAX_RETRIES",
            ),
            0,
        )
        self.METRICS_PORT: Optional[int] = self._parse_positive_int(
            os.getenv("REDLOCK_WATCHDOG_METRICS_PORT"),
            env_var="REDLOCK_WATCHDOG_METRICS_PORT",
        )
        self.DEBUG: bool = (
            os.getenv("REDLOCK_WATCHDOG_DEBUG", "0").strip().lower() in _TRUTHY
        )
        self.OPTIONS_FILE: Optional[Path] = _resolve_config_path(
            os.getenv("REDLOCK_WATCHDOG_OPTIONS_FILE", "").strip()
        )

        raw_options = load_options_file(self.OPTIONS_FILE)
        env_overrides = {
            "delay_ms": os.getenv("REDLOCK_WATCHDOG_DELAY_MS"),
            "redlock_hash_key": os.getenv("REDLOCK_WATCHDOG_HASH_KEY"),
            "redlock_info_key": os.getenv("REDLOCK_WATCHDOG_INFO_KEY"),
            "max_stale_retries": os.getenv("REDLOCK_WATCHDOG_MAX_STALE_RETRIES"),
            "only_heartbeat": os.getenv("REDLOCK_WATCHDOG_ONLY_HEARTBEAT"),
        }
        for key, value in env_overrides.items():
            if value is not None and value.strip():
                raw_options[key] = value.strip()
        if self.DEBUG:
            raw_options["debug"] = True
        self.RAW_OPTIONS: Dict[str, Any] = raw_options

    def options(self) -> WatchdogOptions:
        return WatchdogOptions.from_mapping(self.RAW_OPTIONS)

    @staticmethod
    def _parse_positive_int(
        raw_value: Optional[str], *, env_var: str
    ) -> Optional[int]:
        if not raw_value:
            return None
        try:
            value = int(raw_value)
        except ValueError:
            logger.warning(
                "Invalid integer value '%s' for %s; ignoring it.",
                raw_value,
                env_var,
            )
            return None
        if value <= 0:
            logger.warning(
                "%s must be greater than zero; ignoring %s.",
                env_var,
                raw_value,
            )
            return None
        return value

    @staticmethod
    def _parse_int_env(
        raw_value: Optional[str], *, default: int, env_var: str
    ) -> int:
        if raw_value is None:
            return default
        raw_value = raw_value.strip()
        if not raw_value:
            return default
        try:
            return int(raw_value)
        except ValueError:
            logger.warning(
                "Invalid integer value '%s' for %s; falling back to default %s.",
                raw_value,
                env_var,
                default,
            )
            return default

    @staticmethod
    def _parse_positive_float(
        raw_value: Optional[str], *, env_var: str
    ) -> Optional[float]:
        if not raw_value:
            return None
        try:
            value = float(raw_value)
        except ValueError:
            logger.warning(
                "Invalid float value '%s' for %s; ignoring it.",
                raw_value,
                env_var,
            )
            return None
        if value <= 0:
            logger.warning(
                "%s must be greater than zero; ignoring %s.",
                env_var,
                raw_value,
            )
            return None
        return value
