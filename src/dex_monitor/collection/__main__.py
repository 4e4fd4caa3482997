"""Scheduled DEX collector entry point.

Usage: python -m dex_monitor.collection

Runs a collection cycle over every registered company, then repeats on a
fixed interval. Configure via environment variables:
    DEX_DB                - DuckDB file path
    DEX_SOURCE_DIR        - Root of per-company DEX exports
    DEX_COLLECT_INTERVAL  - Seconds between cycles (default: 1200)
    DEX_COMPANY_DELAY     - Seconds between companies (default: 2.0)
    DEX_HISTORY_LIMIT     - dex_history entries kept per machine (default: 100)
    DEX_RECENT_HOURS      - Window for the recent-capture counter (default: 4)
"""

from __future__ import annotations

import logging
import signal
import sys

from dex_monitor.collection.config import CollectorConfig
from dex_monitor.collection.runner import CollectionScheduler, build_cycle
from dex_monitor.storage.database import Database

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("dex_collector")


def main() -> None:
    config = CollectorConfig.from_env()
    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Config error: %s", err)
        sys.exit(1)

    logger.info("Starting DEX collector")
    logger.info("  Database: %s", config.db_path)
    logger.info("  Sources: %s", config.source_dir or "(per-company source_path)")

    db = Database(config.db_path)
    db.initialize()
    scheduler = CollectionScheduler(build_cycle(db, config), config.interval_seconds)

    def shutdown(sig, frame):
        logger.info("Shutting down...")
        scheduler.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    scheduler.run()

    db.close()
    logger.info("Collector stopped.")


if __name__ == "__main__":
    main()
