"""Decodes DEX segments into typed records and the flat key-value map.

Only the segment families the dashboard uses are decoded (CA17, PA1, PA2,
VA1, EA1, EA2, MA5). Anything else is ignored, and segments with missing or
non-numeric fields are skipped rather than reported: upstream data is
routinely irregular and partial data beats no data.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Iterator, Optional

from dex_monitor.ingestion.models import (
    CoinTube,
    DexRecord,
    EventActivity,
    EventCount,
    MachineFaults,
    SalesTotal,
    Segment,
    SelectionPrice,
    SelectionSales,
    TemperatureReading,
)

logger = logging.getLogger(__name__)

ONE_DECIMAL = Decimal("0.1")


def cents_to_dollars(cents: int) -> str:
    """Format an integer cent amount as a 2-decimal dollar string."""
    return f"{Decimal(cents) / 100:.2f}"


def decode_temperature(raw: str) -> Optional[Decimal]:
    """Scale a raw MA5 temperature reading.

    Readings above 100 carry two implied decimals, the rest carry one.
    Returns None when the reading is not a number.
    """
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    divisor = 100 if value > 100 else 10
    return (value / divisor).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


class DexExtractor:
    """Single-pass decoder from segments to typed records.

    PA2 segments carry no selection id of their own; they belong to the PA1
    immediately before them. The extractor keeps that selection as state and
    a PA2 consumes it, so a PA2 without a fresh PA1 is dropped.
    """

    def __init__(self) -> None:
        self._current_selection: Optional[str] = None

    def process_segments(self, segments: Iterable[Segment]) -> Iterator[DexRecord]:
        """Yield decoded records in document order."""
        self._current_selection = None
        for segment in segments:
            try:
                record = self._decode(segment)
            except (ValueError, InvalidOperation) as e:
                logger.debug(
                    "Skipping malformed %s segment on line %d: %s",
                    segment.code,
                    segment.line_number,
                    e,
                )
                continue
            if record is not None:
                yield record

    def _decode(self, segment: Segment) -> Optional[DexRecord]:
        code = segment.code
        if code == "CA17":
            return self._coin_tube(segment)
        if code == "PA1":
            return self._selection_price(segment)
        if code == "PA2":
            return self._selection_sales(segment)
        if code == "VA1":
            return SalesTotal(
                value_cents=int(segment.field(0)),
                count=segment.field(1),
            )
        if code == "EA1":
            if not segment.field(0):
                return None
            return EventActivity(
                code=segment.field(0),
                date=segment.field(1),
                time=segment.field(2),
            )
        if code == "EA2":
            if not segment.field(0):
                return None
            return EventCount(
                code=segment.field(0),
                count=segment.field(1),
                value=segment.field(2),
            )
        if code == "MA5":
            return self._machine_setting(segment)
        return None

    def _coin_tube(self, segment: Segment) -> Optional[CoinTube]:
        row, denomination, count = (segment.field(i) for i in range(3))
        if not (row and denomination and count):
            return None
        return CoinTube(
            row=row,
            denomination_cents=int(denomination),
            count=int(count),
        )

    def _selection_price(self, segment: Segment) -> SelectionPrice:
        selection = segment.field(0)
        # The selection is remembered even if the price turns out malformed
        self._current_selection = selection
        return SelectionPrice(selection=selection, price_cents=int(segment.field(1)))

    def _selection_sales(self, segment: Segment) -> Optional[SelectionSales]:
        selection = self._current_selection
        self._current_selection = None
        if selection is None:
            return None
        return SelectionSales(
            selection=selection,
            count=segment.field(0),
            value_cents=int(segment.field(1)),
        )

    def _machine_setting(self, segment: Segment) -> Optional[DexRecord]:
        name = segment.field(0)
        if name == "ERROR":
            codes = tuple(c for c in segment.fields[1:] if c)
            return MachineFaults(codes=codes) if codes else None
        upper = name.upper()
        if "TEMP" in upper:
            kind = "desired" if "DESIRED" in upper else "detected"
            return TemperatureReading(
                kind=kind,
                value=decode_temperature(segment.field(1)),
                unit=segment.field(2),
            )
        return None


def extract_records(segments: Iterable[Segment]) -> list[DexRecord]:
    """Decode segments into typed records."""
    return list(DexExtractor().process_segments(segments))


def to_key_values(records: Iterable[DexRecord]) -> dict[str, str]:
    """Render typed records into the flat, prefix-namespaced key-value map.

    Later records overwrite earlier ones that produce the same key.
    """
    kv: dict[str, str] = {}
    for record in records:
        if isinstance(record, CoinTube):
            prefix = f"ca17_tube_{record.row}"
            kv[f"{prefix}_denomination"] = cents_to_dollars(record.denomination_cents)
            kv[f"{prefix}_count"] = str(record.count)
            kv[f"{prefix}_total_value"] = cents_to_dollars(
                record.denomination_cents * record.count
            )
        elif isinstance(record, SelectionPrice):
            kv[f"pa1_selection_{record.selection}_price"] = cents_to_dollars(
                record.price_cents
            )
        elif isinstance(record, SelectionSales):
            prefix = f"pa2_selection_{record.selection}"
            kv[f"{prefix}_sales_count"] = record.count
            kv[f"{prefix}_sales_value"] = cents_to_dollars(record.value_cents)
        elif isinstance(record, SalesTotal):
            kv["va1_total_sales_value"] = cents_to_dollars(record.value_cents)
            kv["va1_total_sales_count"] = record.count
        elif isinstance(record, EventActivity):
            kv[f"ea1_event_{record.code}_date"] = record.date
            kv[f"ea1_event_{record.code}_time"] = record.time
        elif isinstance(record, EventCount):
            kv[f"ea2_event_{record.code}_count"] = record.count
            kv[f"ea2_event_{record.code}_value"] = record.value
        elif isinstance(record, MachineFaults):
            kv["ma5_error_codes"] = ",".join(record.codes)
            for n, code in enumerate(record.codes, start=1):
                kv[f"ma5_error_{n}"] = code
        elif isinstance(record, TemperatureReading):
            prefix = f"ma5_{record.kind}_temperature"
            if record.value is not None:
                kv[prefix] = str(record.value)
            if record.unit:
                kv[f"{prefix}_unit"] = record.unit
    return kv


def extract(segments: Iterable[Segment]) -> dict[str, str]:
    """Decode segments straight to the flat key-value map."""
    return to_key_values(DexExtractor().process_segments(segments))
