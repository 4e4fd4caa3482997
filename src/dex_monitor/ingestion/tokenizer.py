"""Splits raw DEX text into segments."""

from __future__ import annotations

import re
from typing import Iterator, Optional

from dex_monitor.ingestion.models import Segment

FIELD_SEPARATOR = "*"
LINE_BREAK = re.compile(r"\r?\n")


def tokenize_line(raw: str, line_number: int = 0) -> Optional[Segment]:
    """Tokenize one DEX line, or return None for a blank line."""
    if not raw.strip():
        return None
    parts = raw.split(FIELD_SEPARATOR)
    return Segment(
        code=parts[0].strip(),
        fields=tuple(parts[1:]),
        line_number=line_number,
    )


def tokenize(raw: Optional[str]) -> Iterator[Segment]:
    """Yield segments for every non-blank line of a DEX document.

    Lines end in \\r\\n or \\n only; other control characters stay inside
    the line. Lines are not validated here; consumers skip segments that
    lack the fields they need.
    """
    if not raw:
        return
    for line_number, line in enumerate(LINE_BREAK.split(raw), start=1):
        segment = tokenize_line(line, line_number)
        if segment is not None:
            yield segment
