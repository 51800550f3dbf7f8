#!/usr/bin/env python3
"""Run one aggregation pass (or seed the registry) outside the API process.

Usage:
    python scripts/run_aggregation.py            # one pass over AGGREGATOR_FEED_GROUPS
    python scripts/run_aggregation.py --seed     # register the default feed sources first
    python scripts/run_aggregation.py --stats    # print statistics only
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from govsignals.aggregation.factory import build_aggregator, build_statistics_reporter
from govsignals.config import settings
from govsignals.database import async_session, engine, init_db
from govsignals.errors import SourceRegistryError
from govsignals.logging_config import setup_logging
from govsignals.storage.registry import SqlFeedSourceRegistry


async def _main(args: argparse.Namespace) -> int:
    await init_db()
    try:
        if args.seed:
            count = await SqlFeedSourceRegistry(async_session).seed_defaults()
            print(f"Registered {count} default feed sources")

        if args.stats:
            stats = await build_statistics_reporter().get_statistics()
            print(json.dumps(stats.model_dump(), indent=2))
            return 0

        try:
            summary = await build_aggregator().process_all_feeds()
        except SourceRegistryError as exc:
            print(f"Aggregation failed: {exc}", file=sys.stderr)
            return 1

        print(json.dumps(summary.model_dump(), indent=2, ensure_ascii=False))
        return 0
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--seed", action="store_true", help="register default feed sources before running")
    parser.add_argument("--stats", action="store_true", help="print statistics instead of running")
    args = parser.parse_args()

    setup_logging(settings.log_level)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
