#!/usr/bin/env python3
"""
Run the climate cache warmer against a database and report the outcome.

This helper mirrors the service's startup warm but can be executed manually
from a developer workstation or CI job to check that every warm target
returns data before a deployment.
"""

import argparse
import asyncio
import json
from pathlib import Path
import sys
import os

from service_climate.app.adapters.climate_store import ClimateDataStore
from service_climate.app.caching.response_cache import ResponseCache
from service_climate.app.caching.warmer import (
    CacheWarmer,
    DEFAULT_BATCH_SIZE,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_PERIOD,
    DEFAULT_SCENARIO,
)
from shared.logging import configure_logging


async def warm(
    *,
    dsn: str,
    scenario: str,
    period: str,
    batch_size: int,
    timeout: float,
    max_size: int,
    dry_run: bool,
) -> dict:
    """Execute cache warming and return the summary."""
    store = ClimateDataStore(dsn, min_size=1, max_size=max(2, batch_size))
    cache = ResponseCache(max_size=max_size)
    warmer = CacheWarmer(
        store,
        scenario=scenario,
        period=period,
        batch_size=batch_size,
        fetch_timeout=timeout,
        dry_run=dry_run,
    )

    await store.start()
    try:
        report = await warmer.warm(cache)
    finally:
        await store.stop()

    return {
        "report": report.to_dict(),
        "cache": cache.stats().to_dict(),
        "keys": cache.keys(),
    }


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warm the climate response cache and report results.")
    parser.add_argument("--dsn", default=os.getenv("CLIMATE_POSTGRES_DSN", "postgresql://postgres@localhost:5432/sarva"), help="PostgreSQL DSN")
    parser.add_argument("--scenario", default=os.getenv("CLIMATE_CACHE_WARM_SCENARIO", DEFAULT_SCENARIO), help="Emission scenario to warm")
    parser.add_argument("--period", default=os.getenv("CLIMATE_CACHE_WARM_PERIOD", DEFAULT_PERIOD), help="Time period to warm")
    parser.add_argument("--batch-size", type=int, default=int(os.getenv("CLIMATE_CACHE_WARM_BATCH_SIZE", DEFAULT_BATCH_SIZE)), help="Concurrent fetches per batch")
    parser.add_argument("--timeout", type=float, default=float(os.getenv("CLIMATE_CACHE_WARM_TIMEOUT", DEFAULT_FETCH_TIMEOUT)), help="Seconds allowed per fetch")
    parser.add_argument("--max-size", type=int, default=int(os.getenv("CLIMATE_CACHE_MAX_SIZE", 200)), help="Cache capacity")
    parser.add_argument("--dry-run", action="store_true", help="Fetch but do not insert into the cache")
    parser.add_argument("--log-level", default=os.getenv("CLIMATE_LOG_LEVEL", "info"), help="Log level")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("climate", args.log_level)
    try:
        summary = asyncio.run(
            warm(
                dsn=args.dsn,
                scenario=args.scenario,
                period=args.period,
                batch_size=args.batch_size,
                timeout=args.timeout,
                max_size=args.max_size,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-warm] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[cache-warm] DRY RUN - no cache inserts executed")

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
