"""Groups the flat key-value map and builds the per-document summary."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dex_monitor.ingestion.extractor import extract
from dex_monitor.ingestion.models import DexSummary, KeyValueGroups, ParsedDex
from dex_monitor.ingestion.tokenizer import tokenize

# Group name -> key prefixes routed into it
GROUP_PREFIXES: dict[str, tuple[str, ...]] = {
    "products": ("pa1_", "pa2_"),
    "sales": ("va1_", "ca17_"),
    "diagnostics": ("ma5_",),
    "events": ("ea1_", "ea2_"),
}

EVENT_PREFIXES = GROUP_PREFIXES["events"]


def format_groups(key_values: Mapping[str, str]) -> KeyValueGroups:
    """Partition keys by prefix. Keys with other prefixes are left out."""
    groups = KeyValueGroups()
    for key, value in key_values.items():
        for group_name, prefixes in GROUP_PREFIXES.items():
            if key.startswith(prefixes):
                getattr(groups, group_name)[key] = value
                break
    return groups


def _decimal_or(value: Optional[str], default: Optional[Decimal]) -> Optional[Decimal]:
    if not value:
        return default
    try:
        return Decimal(value)
    except InvalidOperation:
        return default


def _int_or_zero(value: Optional[str]) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        return 0


def summarize(key_values: Mapping[str, str]) -> DexSummary:
    """Project the fixed summary keys out of the map, with defaults."""
    error_codes = key_values.get("ma5_error_codes") or None
    return DexSummary(
        total_sales=_decimal_or(key_values.get("va1_total_sales_value"), Decimal("0.00")),
        total_vends=_int_or_zero(key_values.get("va1_total_sales_count")),
        has_errors=error_codes is not None,
        temperature=_decimal_or(key_values.get("ma5_detected_temperature"), None),
        temperature_unit=key_values.get("ma5_detected_temperature_unit") or None,
        desired_temperature=_decimal_or(key_values.get("ma5_desired_temperature"), None),
        error_codes=error_codes,
        has_events=any(k.startswith(EVENT_PREFIXES) for k in key_values),
    )


def from_key_values(key_values: Mapping[str, str]) -> ParsedDex:
    """Rebuild groups and summary around an existing key-value map."""
    kv = dict(key_values)
    return ParsedDex(key_values=kv, groups=format_groups(kv), summary=summarize(kv))


def parse_dex(raw: Optional[str]) -> ParsedDex:
    """Tokenize, extract, group and summarize one raw DEX document."""
    return from_key_values(extract(tokenize(raw)))
