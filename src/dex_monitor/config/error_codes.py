"""Known EA1 event and MA5 fault codes with operator-facing descriptions."""

from __future__ import annotations

import re
from dataclasses import dataclass

from dex_monitor.errors.models import EA1, ErrorRecord

# EA1: timestamped events reported in the machine's event log
EA1_DESCRIPTIONS: dict[str, str] = {
    "EGS": "Door Open",
    "EJB": "Motor Jam",
    "EJH": "Health Rules Violated",
    "EJL": "Delivery Sensor Error",
    "ENA": "Bill Validator Path Blocked",
    "ENE": "Cash Box Full",
    "ENF": "Cash Box not seated correctly",
    "EAR": "Coin Mech Error",
    "OCM": "Operating System Failure",
    "OFA": "Coin box emptied",
}

# MA5: active faults, cleared by the machine once fixed. Codes are
# case-sensitive ("dS" and "DS" are different codes).
MA5_DESCRIPTIONS: dict[str, str] = {
    "dS": "Door switch",
    "rAn": "RAM corrupted",
    "ACLo": "Rectified voltage under 20 VDC for more than 30 seconds",
    "SF": "Incompatible scaling factor",
    "IS": "Inlet sensor blocked",
    "Ib": "Inlet chute blocked",
    "CC": "Changer communication",
    "tS": "Changer tube sensor",
    "IC": "Inlet chute blocked",
    "CrCH": "Changer ROM checksum",
    "EE": "Excessive escrow",
    "nJ": "Acceptor coin jam",
    "LA": "Low acceptance rate",
    "CS": "Chute sensor active five minutes or more",
    "SEnS": "Temperature sensor",
    "COLd": "Temperature 1.5°C or more below cut-out",
    "HOt": "Temperature 1.5°C or more above cut-in",
    "CnPr": "Not cooling 0.5°C per hour or better",
    "Htr": "Not heating 0.5°C per hour or better",
}


@dataclass
class CodePattern:
    pattern: re.Pattern
    description: str


# Numbered fault families: SS01, tJ03, CJ12, UA09 ...
MA5_PATTERNS: list[CodePattern] = [
    CodePattern(re.compile(r"^SS(\d{2}|XX)$"), "Selection switch closed"),
    CodePattern(re.compile(r"^tJ(\d{2}|XX)$"), "Changer tube jam"),
    CodePattern(re.compile(r"^CJ(\d{2}|XX)$"), "Column jam"),
    CodePattern(re.compile(r"^UA(\d{2}|xx)$"), "Unassigned column"),
]

UNKNOWN_EVENT = "Unknown event"
UNKNOWN_ERROR = "Unknown error"


def describe_ea1(code: str) -> str:
    return EA1_DESCRIPTIONS.get(code, UNKNOWN_EVENT)


def describe_ma5(code: str) -> str:
    if code in MA5_DESCRIPTIONS:
        return MA5_DESCRIPTIONS[code]
    for p in MA5_PATTERNS:
        if p.pattern.match(code):
            return p.description
    return UNKNOWN_ERROR


def describe_error(error: ErrorRecord) -> str:
    """Human-readable description for an error record."""
    if error.type == EA1:
        return describe_ea1(error.code)
    return describe_ma5(error.code)
