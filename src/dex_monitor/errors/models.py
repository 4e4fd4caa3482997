"""Error record and timestamp types for machine fault tracking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NewType, Optional, Union

# Machine-local wall clock time from an EA1 segment: "YYYY-MM-DDTHH:MM:00",
# never carries an offset and must not be converted to UTC.
LocalTimestamp = NewType("LocalTimestamp", str)

# Timezone-aware UTC datetime (upstream capture creation times).
UtcTimestamp = NewType("UtcTimestamp", datetime)

EA1 = "EA1"
MA5 = "MA5"


def to_utc(value: Union[str, datetime]) -> UtcTimestamp:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Naive values are taken to already be in UTC. Raises TypeError for
    anything else.
    """
    if not isinstance(value, (str, datetime)):
        raise TypeError(f"expected ISO-8601 text or datetime, got {type(value).__name__}")
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return UtcTimestamp(value.astimezone(timezone.utc))


def format_utc(value: datetime) -> str:
    """Render a UTC datetime as ISO-8601 with a Z suffix."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def decode_event_timestamp(date: str, time: str) -> Optional[LocalTimestamp]:
    """Decode EA1 YYMMDD + HHMM into a local timestamp string.

    HHMM may arrive without leading zeros ("930"). Returns None when either
    part is not numeric or has the wrong length.
    """
    date = (date or "").strip()
    time = (time or "").strip().zfill(4)
    if len(date) != 6 or len(time) != 4:
        return None
    if not (date.isdigit() and time.isdigit()):
        return None
    return LocalTimestamp(
        f"20{date[0:2]}-{date[2:4]}-{date[4:6]}T{time[0:2]}:{time[2:4]}:00"
    )


@dataclass(frozen=True)
class ErrorRecord:
    """One fault on a machine, with its operator acknowledgement state.

    EA1 records are historical events keyed by (code, timestamp); MA5
    records are currently-active conditions keyed by code alone, stamped
    with the capture time they were last seen in.
    """

    type: str  # EA1 or MA5
    code: str
    timestamp: str  # LocalTimestamp for EA1, ISO UTC capture time for MA5
    actioned: bool = False
    actioned_at: Optional[str] = None

    def matches(self, other: ErrorRecord) -> bool:
        """Identity check: EA1 by (code, timestamp), MA5 by code."""
        if self.type != other.type or self.code != other.code:
            return False
        if self.type == EA1:
            return self.timestamp == other.timestamp
        return True

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "code": self.code,
            "timestamp": self.timestamp,
            "actioned": self.actioned,
            "actioned_at": self.actioned_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ErrorRecord:
        return cls(
            type=data["type"],
            code=data["code"],
            timestamp=data.get("timestamp", ""),
            actioned=bool(data.get("actioned", False)),
            actioned_at=data.get("actioned_at"),
        )
