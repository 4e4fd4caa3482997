"""Collector configuration from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dex_monitor.storage.database import resolve_db_path


@dataclass
class CollectorConfig:
    """Configuration for the scheduled DEX collector."""

    # DuckDB file path (":memory:" for a throwaway store)
    db_path: str = ""
    # Root of per-company DEX exports (<source_dir>/<company_id>/...)
    source_dir: str = ""
    # Seconds between scheduled collection cycles
    interval_seconds: int = 1200
    # Seconds to wait between companies
    company_delay: float = 2.0
    # Entries kept in each machine's dex_history
    history_limit: int = 100
    # Window for the "captures in the last N hours" counter
    recent_hours: int = 4

    @classmethod
    def from_env(cls) -> CollectorConfig:
        """Load configuration from environment variables."""
        return cls(
            db_path=resolve_db_path(),
            source_dir=os.environ.get("DEX_SOURCE_DIR", ""),
            interval_seconds=int(os.environ.get("DEX_COLLECT_INTERVAL", "1200")),
            company_delay=float(os.environ.get("DEX_COMPANY_DELAY", "2.0")),
            history_limit=int(os.environ.get("DEX_HISTORY_LIMIT", "100")),
            recent_hours=int(os.environ.get("DEX_RECENT_HOURS", "4")),
        )

    def validate(self) -> list[str]:
        """Return list of validation errors, empty if config is valid."""
        errors = []
        if self.source_dir and not Path(self.source_dir).is_dir():
            errors.append(f"DEX_SOURCE_DIR does not exist: {self.source_dir}")
        if self.interval_seconds <= 0:
            errors.append("DEX_COLLECT_INTERVAL must be positive")
        if self.company_delay < 0:
            errors.append("DEX_COMPANY_DELAY must not be negative")
        if self.history_limit <= 0:
            errors.append("DEX_HISTORY_LIMIT must be positive")
        if self.recent_hours <= 0:
            errors.append("DEX_RECENT_HOURS must be positive")
        return errors
