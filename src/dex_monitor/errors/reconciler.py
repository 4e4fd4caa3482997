"""Merges freshly captured fault codes into a machine's stored error list.

EA1 and MA5 faults follow different rules:

* EA1 is a historical event log. Each (code, timestamp) is one event. An
  actioned event is kept until a capture reports the same code again; an
  unactioned one is replaced by whatever the newest capture reports.
* MA5 is the machine's currently-active fault list. A code that disappears
  from a capture is gone; a code that persists keeps its actioned flag.

Re-running a merge with its own output as the existing list yields the same
result.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Mapping, Optional

from dex_monitor.errors.models import (
    EA1,
    MA5,
    ErrorRecord,
    UtcTimestamp,
    decode_event_timestamp,
    format_utc,
)

EA1_DATE_KEY = re.compile(r"^ea1_event_(.+)_date$")


def extract_event_errors(key_values: Mapping[str, str]) -> list[ErrorRecord]:
    """Build unactioned EA1 candidates from ea1_event_{code}_date/_time keys."""
    candidates = []
    for key, date in key_values.items():
        m = EA1_DATE_KEY.match(key)
        if not m:
            continue
        code = m.group(1)
        timestamp = decode_event_timestamp(date, key_values.get(f"ea1_event_{code}_time", ""))
        if timestamp is None:
            continue
        candidates.append(ErrorRecord(type=EA1, code=code, timestamp=timestamp))
    return candidates


def extract_fault_errors(
    key_values: Mapping[str, str], capture_timestamp: UtcTimestamp
) -> list[ErrorRecord]:
    """Build unactioned MA5 candidates stamped with the capture time."""
    raw = key_values.get("ma5_error_codes") or ""
    stamp = format_utc(capture_timestamp)
    return [
        ErrorRecord(type=MA5, code=code, timestamp=stamp)
        for code in raw.split(",")
        if code
    ]


def _find_match(record: ErrorRecord, existing: Iterable[ErrorRecord]) -> Optional[ErrorRecord]:
    for old in existing:
        if record.matches(old):
            return old
    return None


def reconcile(
    existing_errors: Iterable[ErrorRecord],
    key_values: Mapping[str, str],
    capture_timestamp: UtcTimestamp,
) -> list[ErrorRecord]:
    """Return the machine's error list after applying one capture.

    Args:
        existing_errors: The machine's stored error list.
        key_values: Flat key-value map of the new capture.
        capture_timestamp: Creation time of the capture itself; MA5 faults
            have no time of their own and are stamped with it.

    Order of the result is not significant.
    """
    existing = list(existing_errors)
    candidates = extract_event_errors(key_values) + extract_fault_errors(
        key_values, capture_timestamp
    )

    merged: list[ErrorRecord] = []
    for candidate in candidates:
        old = _find_match(candidate, existing)
        if old is not None:
            candidate = replace(
                candidate, actioned=old.actioned, actioned_at=old.actioned_at
            )
        merged.append(candidate)

    fresh_event_codes = {c.code for c in candidates if c.type == EA1}
    for old in existing:
        # A candidate with the same code covers both the exact-match case
        # (already carried over above) and supersession by a newer event.
        if old.type == EA1 and old.actioned and old.code not in fresh_event_codes:
            merged.append(old)

    return merged


def set_actioned(
    errors: Iterable[ErrorRecord],
    code: str,
    timestamp: str,
    actioned: bool,
    now: datetime,
) -> list[ErrorRecord]:
    """Mark (or unmark) the error with this code and timestamp as actioned."""
    updated = []
    for error in errors:
        if error.code == code and error.timestamp == timestamp:
            error = replace(
                error,
                actioned=actioned,
                actioned_at=format_utc(now) if actioned else None,
            )
        updated.append(error)
    return updated


def sort_for_display(errors: Iterable[ErrorRecord]) -> list[ErrorRecord]:
    """Newest first.

    EA1 local times and MA5 UTC stamps share the same ISO prefix, so text
    order is good enough for display.
    """
    return sorted(errors, key=lambda e: e.timestamp, reverse=True)
