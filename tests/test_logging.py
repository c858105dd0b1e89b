import io
import json
import logging

from redlock_watchdog.logging_config import ContextJsonFormatter
from redlock_watchdog.utils.logging_helpers import REQUIRED_LOG_KEYS, add_context


def _capture(name: str):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ContextJsonFormatter())
    logger = logging.getLogger(name)
    logger.addHandler(handler)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    return logger, handler, stream


def test_context_json_formatter_includes_common_fields():
    logger, handler, stream = _capture("test.logging.formatter")

    logger.info(
        "structured message",
        extra={"lock_key": "a", "phase": "reclaim", "error_type": "ExampleError"},
    )

    handler.flush()
    logger.removeHandler(handler)
    payload = json.loads(stream.getvalue().strip())
    assert payload["lock_key"] == "a"
    assert payload["phase"] == "reclaim"
    assert payload["error_type"] == "ExampleError"
    assert payload["message"] == "structured message"
    assert payload["timestamp"].endswith("+00:00")


def test_logger_adapter_injects_required_context_fields():
    base_logger, handler, stream = _capture("test.logging.adapter")
    adapter = add_context(base_logger, cycle=7)

    adapter.warning("with context", extra={"streaks": {"a": 2}})

    handler.flush()
    base_logger.removeHandler(handler)
    payload = json.loads(stream.getvalue().strip())
    for key in REQUIRED_LOG_KEYS:
        assert key in payload
    assert payload["cycle"] == 7
    assert payload["extra"]["streaks"] == {"a": 2}
