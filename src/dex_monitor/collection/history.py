"""Per-machine DEX history bookkeeping."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from dex_monitor.collection.models import DexHistoryEntry

HISTORY_LIMIT = 100
RECENT_WINDOW = timedelta(hours=4)


def merge_history(
    history: Iterable[DexHistoryEntry],
    new_entries: Iterable[DexHistoryEntry],
    limit: int = HISTORY_LIMIT,
) -> list[DexHistoryEntry]:
    """Add entries not already present (by dex_id), newest first, capped."""
    merged = list(history)
    seen = {entry.dex_id for entry in merged}
    for entry in new_entries:
        if entry.dex_id not in seen:
            merged.append(entry)
            seen.add(entry.dex_id)
    merged.sort(key=lambda e: e.created, reverse=True)
    return merged[:limit]


def count_recent(
    history: Iterable[DexHistoryEntry],
    now: datetime,
    window: timedelta = RECENT_WINDOW,
) -> int:
    """Number of captures created within `window` before `now`."""
    cutoff = now - window
    return sum(1 for entry in history if entry.created > cutoff)
