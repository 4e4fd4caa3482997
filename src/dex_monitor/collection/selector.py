"""Decides which upstream DEX records are new for each machine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Mapping, Optional

from dex_monitor.collection.models import UpstreamDexRecord

logger = logging.getLogger(__name__)


def select_records_to_fetch(
    upstream: Iterable[UpstreamDexRecord],
    machine_state: Mapping[str, Optional[datetime]],
) -> list[UpstreamDexRecord]:
    """Keep records for known machines that are newer than what is stored.

    Args:
        upstream: The portal's DEX list, in any order.
        machine_state: case_serial -> latest stored DEX timestamp (None when
            nothing has been collected for the machine yet).

    Records for case serials with no matching machine are skipped with a
    warning. Upstream order is preserved.
    """
    selected = []
    unknown: set[str] = set()
    for record in upstream:
        if record.case_serial not in machine_state:
            if record.case_serial not in unknown:
                logger.warning("Machine not found for case_serial: %s", record.case_serial)
                unknown.add(record.case_serial)
            continue
        latest = machine_state[record.case_serial]
        if latest is None or record.created_at > latest:
            selected.append(record)
    return selected
