#!/usr/bin/env python3
"""Print the redlock heartbeat counters and metadata tracked in Redis."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import redis.asyncio as aioredis
from dotenv import load_dotenv

from redlock_watchdog.bootstrap import _build_redis_client_kwargs
from redlock_watchdog.config import Config
from redlock_watchdog.gateway import RedisGateway
from redlock_watchdog.utils.redis_safeops import RedisSafeOps


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--json", action="store_true", help="Emit a JSON document instead of a table")
    return parser.parse_args()


def _describe(raw: Optional[str]) -> str:
    if not raw:
        return "-"
    try:
        data = json.loads(raw)
    except ValueError:
        return raw
    if not isinstance(data, dict):
        return raw
    return f"{data.get('host', '?')}:{data.get('pid', '?')} since {data.get('registered_at', '?')}"


async def _collect(cfg: Config) -> Dict[str, Dict[str, Optional[str]]]:
    options = cfg.options()
    client = aioredis.Redis(**_build_redis_client_kwargs(cfg))
    try:
        gateway = RedisGateway(RedisSafeOps(client, max_retries=cfg.REDIS_MAX_RETRIES))
        counters = await gateway.hgetall(options.redlock_hash_key)
        info = await gateway.hgetall(options.redlock_info_key)
    finally:
        await client.aclose()
    return {
        key: {"counter": counter, "metadata": info.get(key)}
        for key, counter in sorted(counters.items())
    }


def main() -> None:
    args = _parse_args()
    load_dotenv()
    locks = asyncio.run(_collect(Config()))

    if args.json:
        print(json.dumps(locks, indent=2, ensure_ascii=False))
        return

    if not locks:
        print("No redlocks registered.")
        return

    width = max(len(key) for key in locks)
    for key, entry in locks.items():
        print(f"  {key.ljust(width)}  {entry['counter']:>8}  {_describe(entry['metadata'])}")


if __name__ == "__main__":
    main()
