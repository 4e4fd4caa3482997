"""Shared test fixtures and sample DEX data."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dex_monitor.storage.database import Database


# A small but complete capture: coin tubes, two priced selections with sales,
# totals, two events, a fault list and both temperatures.
SAMPLE_DEX = "\r\n".join([
    "DXS*9252131001*VA*V0/6*1",
    "ST*001*0001",
    "ID1*123456789012*VMC*1234",
    "CA17*0*25*4",
    "CA17*1*100*12",
    "PA1*10*150",
    "PA2*5*750",
    "PA1*11*200",
    "PA2*3*600",
    "VA1*1350*8",
    "EA1*EJL*240115*930",
    "EA1*EGS*240116*1405",
    "EA2*EJL*3*0",
    "MA5*ERROR*dS*SS01",
    "MA5*DETECTED TEMP*355*C",
    "MA5*DESIRED TEMP*35*C",
    "G85*1234",
    "SE*17*0001",
    "DXE*1*1",
])


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary DuckDB database for testing."""
    db_path = str(tmp_path / "test.duckdb")
    with Database(db_path) as db:
        yield db


@pytest.fixture
def sample_dex():
    return SAMPLE_DEX


@pytest.fixture
def dex_export(tmp_path):
    """Write a company export directory: metadata.json + raw/<dexId>.txt.

    Returns a callable taking {dex_id: (case_serial, created_at, raw)}.
    """

    def _write(records: dict, company_id: str = "co1") -> Path:
        root = tmp_path / "exports" / company_id
        (root / "raw").mkdir(parents=True, exist_ok=True)
        metadata = []
        for dex_id, (serial, created, raw) in records.items():
            metadata.append({"caseSerial": serial, "dexId": dex_id, "createdAt": created})
            if raw is not None:
                (root / "raw" / f"{dex_id}.txt").write_text(raw, encoding="utf-8")
        (root / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
        return root

    return _write
