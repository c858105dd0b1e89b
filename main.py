#!/usr/bin/env python3

import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv
from prometheus_client import start_http_server

from redlock_watchdog.bootstrap import build_services
from redlock_watchdog.config import Config
from redlock_watchdog.errors import ConfigurationError
from redlock_watchdog.logging_config import setup_logging


async def run(cfg: Config) -> None:
    services = build_services(cfg)
    logger = services.logger.getChild(__name__)
    watchdog = services.watchdog

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    if cfg.METRICS_PORT is not None:
        start_http_server(cfg.METRICS_PORT)
        logger.info(
            "Metrics endpoint listening",
            extra={"category": "startup", "metrics_port": cfg.METRICS_PORT},
        )

    watchdog.start()
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down redlock watchdog", extra={"category": "shutdown"})
        await watchdog.stop()
        watchdog.release()
        await services.kv_async.aclose()


def main() -> None:
    load_dotenv()
    try:
        cfg = Config()
        asyncio.run(run(cfg))
    except ConfigurationError as exc:
        setup_logging()
        logging.getLogger("redlock_watchdog").error(
            "Invalid watchdog configuration: %s",
            exc,
            extra={"category": "startup", "error_type": type(exc).__name__},
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
