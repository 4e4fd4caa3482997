"""Wires the DuckDB store and directory sources into a collection cycle."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable

from dex_monitor.collection.config import CollectorConfig
from dex_monitor.collection.cycle import CollectionCycle
from dex_monitor.collection.models import Company
from dex_monitor.collection.sources import DirectoryDexSource
from dex_monitor.storage.database import Database
from dex_monitor.storage.repositories import DuckDBMachineStore

logger = logging.getLogger(__name__)


def build_cycle(
    db: Database,
    config: CollectorConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> CollectionCycle:
    def source_for(company: Company) -> DirectoryDexSource:
        return DirectoryDexSource.for_company(company, config.source_dir)

    return CollectionCycle(
        store=DuckDBMachineStore(db),
        source_factory=source_for,
        company_delay=config.company_delay,
        history_limit=config.history_limit,
        recent_window=timedelta(hours=config.recent_hours),
        sleep=sleep,
    )


class CollectionScheduler:
    """Runs a collection cycle every `interval_seconds` until stopped."""

    def __init__(self, cycle: CollectionCycle, interval_seconds: int = 1200) -> None:
        self._cycle = cycle
        self._interval = interval_seconds
        self._running = False

    def run(self) -> None:
        self._running = True
        logger.info("Scheduling DEX collection every %ds", self._interval)
        while self._running:
            try:
                self._cycle.run()
            except Exception as e:
                logger.error("Error during collection cycle: %s", e)
            # Wait in 1s steps; stop() ends the wait early
            deadline = time.monotonic() + self._interval
            while self._running and time.monotonic() < deadline:
                time.sleep(max(0.0, min(1.0, deadline - time.monotonic())))

    def stop(self) -> None:
        self._running = False
