"""Data models for the DEX ingestion layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class Segment:
    """Single tokenized DEX line: CODE*field*field..."""

    code: str  # CA17, PA1, PA2, VA1, EA1, EA2, MA5, ...
    fields: tuple[str, ...]
    line_number: int = 0

    def field(self, index: int) -> str:
        """Positional field (0-based, after the code), '' when absent."""
        if index < len(self.fields):
            return self.fields[index]
        return ""


# Typed records, one per segment family we decode.


@dataclass(frozen=True)
class CoinTube:
    row: str
    denomination_cents: int
    count: int


@dataclass(frozen=True)
class SelectionPrice:
    selection: str
    price_cents: int


@dataclass(frozen=True)
class SelectionSales:
    """PA2 sales, bound to the selection of the PA1 that preceded it."""

    selection: str
    count: str
    value_cents: int


@dataclass(frozen=True)
class SalesTotal:
    value_cents: int
    count: str


@dataclass(frozen=True)
class EventActivity:
    code: str
    date: str  # YYMMDD, undecoded
    time: str  # HHMM, undecoded


@dataclass(frozen=True)
class EventCount:
    code: str
    count: str
    value: str


@dataclass(frozen=True)
class MachineFaults:
    codes: tuple[str, ...]


@dataclass(frozen=True)
class TemperatureReading:
    kind: str  # "desired" or "detected"
    value: Optional[Decimal]
    unit: str = ""


DexRecord = Union[
    CoinTube,
    SelectionPrice,
    SelectionSales,
    SalesTotal,
    EventActivity,
    EventCount,
    MachineFaults,
    TemperatureReading,
]


@dataclass
class KeyValueGroups:
    """Flat key-value map partitioned by key prefix."""

    products: dict[str, str] = field(default_factory=dict)
    sales: dict[str, str] = field(default_factory=dict)
    diagnostics: dict[str, str] = field(default_factory=dict)
    events: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            "products": dict(self.products),
            "sales": dict(self.sales),
            "diagnostics": dict(self.diagnostics),
            "events": dict(self.events),
        }


@dataclass
class DexSummary:
    """Compact per-document summary used by device cards."""

    total_sales: Decimal = Decimal("0.00")
    total_vends: int = 0
    has_errors: bool = False
    temperature: Optional[Decimal] = None
    temperature_unit: Optional[str] = None
    desired_temperature: Optional[Decimal] = None
    error_codes: Optional[str] = None
    has_events: bool = False

    def to_dict(self) -> dict:
        return {
            "total_sales": f"{self.total_sales:.2f}",
            "total_vends": self.total_vends,
            "has_errors": self.has_errors,
            "temperature": str(self.temperature) if self.temperature is not None else None,
            "temperature_unit": self.temperature_unit,
            "desired_temperature": (
                str(self.desired_temperature)
                if self.desired_temperature is not None
                else None
            ),
            "error_codes": self.error_codes,
            "has_events": self.has_events,
        }


@dataclass
class ParsedDex:
    """Everything derived from one raw DEX document."""

    key_values: dict[str, str] = field(default_factory=dict)
    groups: KeyValueGroups = field(default_factory=KeyValueGroups)
    summary: DexSummary = field(default_factory=DexSummary)

    def to_dict(self) -> dict:
        return {
            "key_values": dict(self.key_values),
            "groups": self.groups.to_dict(),
            "summary": self.summary.to_dict(),
        }
