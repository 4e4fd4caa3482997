"""Data models for the collection layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from dex_monitor.errors.models import ErrorRecord, UtcTimestamp, format_utc, to_utc
from dex_monitor.ingestion.models import ParsedDex


@dataclass
class Company:
    company_id: str
    company_name: str = "Unknown"
    source_path: str = ""


@dataclass
class UpstreamDexRecord:
    """One entry of the portal's DEX list (metadata only, no content)."""

    case_serial: str
    dex_id: str
    created_at: UtcTimestamp
    customer_name: str = ""
    firmware: str = ""
    parsed: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> UpstreamDexRecord:
        """Build from the portal's camelCase JSON shape.

        Raises ValueError when the serial, id or creation time is missing
        or empty.
        """
        for key in ("caseSerial", "dexId", "createdAt"):
            if data.get(key) in (None, ""):
                raise ValueError(f"missing {key}")
        return cls(
            case_serial=str(data["caseSerial"]),
            dex_id=str(data["dexId"]),
            created_at=to_utc(data["createdAt"]),
            customer_name=data.get("customerName") or "",
            firmware=data.get("firmware") or "",
            parsed=bool(data.get("parsed", False)),
        )


@dataclass
class MachineRef:
    """A known machine and the newest DEX timestamp stored for it."""

    machine_id: str
    case_serial: str
    latest_dex_timestamp: Optional[UtcTimestamp] = None


@dataclass(frozen=True)
class DexHistoryEntry:
    dex_id: str
    created: UtcTimestamp

    def to_dict(self) -> dict:
        return {"dexId": self.dex_id, "created": format_utc(self.created)}

    @classmethod
    def from_dict(cls, data: dict) -> DexHistoryEntry:
        return cls(dex_id=str(data["dexId"]), created=to_utc(data["created"]))


@dataclass
class MachineDexState:
    """Per-machine DEX state written once per successful collection."""

    case_serial: str
    latest_dex_timestamp: Optional[UtcTimestamp] = None
    dex_history: list[DexHistoryEntry] = field(default_factory=list)  # newest first
    latest_parsed: Optional[ParsedDex] = None
    latest_errors: list[ErrorRecord] = field(default_factory=list)


@dataclass
class DexCapture:
    """A fetched and parsed DEX document, ready to store."""

    dex_id: str
    machine_id: str
    case_serial: str
    company_id: str
    raw_content: str
    parsed: ParsedDex
    created_at: UtcTimestamp

    @property
    def has_errors(self) -> bool:
        return self.parsed.summary.has_errors

    @property
    def record_count(self) -> int:
        return len(self.raw_content.split("\n"))


@dataclass
class CompanyResult:
    """Outcome of one company's collection run."""

    company_id: str
    company_name: str
    success: bool
    records_collected: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {
            "companyId": self.company_id,
            "companyName": self.company_name,
            "success": self.success,
        }
        if self.success:
            data["recordsCollected"] = self.records_collected
        else:
            data["error"] = self.error
        return data


def summarize_results(results: list[CompanyResult]) -> dict:
    """JSON envelope returned by a collection trigger."""
    return {
        "success": True,
        "companiesProcessed": len(results),
        "successfulCollections": sum(1 for r in results if r.success),
        "totalRecords": sum(r.records_collected for r in results),
        "results": [r.to_dict() for r in results],
    }
