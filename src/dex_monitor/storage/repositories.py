"""Data access objects for companies, machines and DEX captures."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

import polars as pl

from dex_monitor.collection.models import (
    Company,
    DexCapture,
    DexHistoryEntry,
    MachineDexState,
    MachineRef,
)
from dex_monitor.errors.models import ErrorRecord, to_utc
from dex_monitor.errors.reconciler import set_actioned
from dex_monitor.ingestion.formatter import from_key_values
from dex_monitor.storage.database import Database


def _to_db(ts: Optional[datetime]) -> Optional[datetime]:
    """Aware datetime -> naive UTC for TIMESTAMP columns."""
    if ts is None:
        return None
    return to_utc(ts).replace(tzinfo=None)


def _from_db(ts: Optional[datetime]) -> Optional[datetime]:
    return to_utc(ts) if ts is not None else None


def _load_json(text: Optional[str], default):
    return json.loads(text) if text else default


class CompanyRepo:
    """Operations on the companies table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, company_id: str, company_name: str = "", source_path: str = "") -> None:
        """Insert a company, or update its name/source if it exists."""
        existing = self.get(company_id)
        if existing is None:
            self._db.conn.execute(
                "INSERT INTO companies (company_id, company_name, source_path) VALUES (?, ?, ?)",
                [company_id, company_name or "Unknown", source_path or None],
            )
            return
        self._db.conn.execute(
            """UPDATE companies SET
                company_name = CASE WHEN ? != '' THEN ? ELSE company_name END,
                source_path = COALESCE(?, source_path)
               WHERE company_id = ?""",
            [company_name, company_name, source_path or None, company_id],
        )

    def get(self, company_id: str) -> Optional[Company]:
        row = self._db.conn.execute(
            "SELECT company_id, company_name, source_path FROM companies WHERE company_id = ?",
            [company_id],
        ).fetchone()
        if row is None:
            return None
        return Company(company_id=row[0], company_name=row[1], source_path=row[2] or "")

    def list_companies(self) -> list[Company]:
        rows = self._db.conn.execute(
            "SELECT company_id, company_name, source_path FROM companies ORDER BY company_id"
        ).fetchall()
        return [Company(company_id=r[0], company_name=r[1], source_path=r[2] or "") for r in rows]


class MachineRepo:
    """Operations on the machines table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, company_id: str, case_serial: str) -> str:
        """Register a machine. Returns its machine_id (existing or new)."""
        row = self._db.conn.execute(
            "SELECT machine_id FROM machines WHERE company_id = ? AND case_serial = ?",
            [company_id, case_serial],
        ).fetchone()
        if row is not None:
            return row[0]
        machine_id = uuid.uuid4().hex[:12]
        self._db.conn.execute(
            """INSERT INTO machines (machine_id, company_id, case_serial, latest_errors, dex_history)
               VALUES (?, ?, ?, '[]', '[]')""",
            [machine_id, company_id, case_serial],
        )
        return machine_id

    def find_by_serial(self, case_serial: str) -> Optional[MachineRef]:
        row = self._db.conn.execute(
            "SELECT machine_id, case_serial, latest_dex_data FROM machines WHERE case_serial = ?",
            [case_serial],
        ).fetchone()
        if row is None:
            return None
        return MachineRef(machine_id=row[0], case_serial=row[1], latest_dex_timestamp=_from_db(row[2]))

    def get_machines_by_company(self, company_id: str) -> list[MachineRef]:
        rows = self._db.conn.execute(
            """SELECT machine_id, case_serial, latest_dex_data FROM machines
               WHERE company_id = ? ORDER BY case_serial""",
            [company_id],
        ).fetchall()
        return [
            MachineRef(machine_id=r[0], case_serial=r[1], latest_dex_timestamp=_from_db(r[2]))
            for r in rows
        ]

    def get_errors_for_machine(self, machine_id: str) -> list[ErrorRecord]:
        row = self._db.conn.execute(
            "SELECT latest_errors FROM machines WHERE machine_id = ?", [machine_id]
        ).fetchone()
        if row is None:
            return []
        return [ErrorRecord.from_dict(e) for e in _load_json(row[0], [])]

    def get_machine_state(self, machine_id: str) -> Optional[MachineDexState]:
        row = self._db.conn.execute(
            """SELECT case_serial, latest_dex_data, dex_history, latest_dex_parsed, latest_errors
               FROM machines WHERE machine_id = ?""",
            [machine_id],
        ).fetchone()
        if row is None:
            return None
        parsed = _load_json(row[3], None)
        return MachineDexState(
            case_serial=row[0],
            latest_dex_timestamp=_from_db(row[1]),
            dex_history=[DexHistoryEntry.from_dict(e) for e in _load_json(row[2], [])],
            latest_parsed=from_key_values(parsed["key_values"]) if parsed else None,
            latest_errors=[ErrorRecord.from_dict(e) for e in _load_json(row[4], [])],
        )

    def upsert_machine_dex_state(self, machine_id: str, state: MachineDexState) -> None:
        latest = _to_db(state.latest_dex_timestamp)
        self._db.conn.execute(
            """UPDATE machines SET
                latest_dex_data = ?,
                latest_dex_parsed = ?,
                latest_errors = ?,
                dex_history = ?,
                dex_last_capture = ?,
                updated_at = ?
               WHERE machine_id = ?""",
            [
                latest,
                json.dumps(state.latest_parsed.to_dict()) if state.latest_parsed else None,
                json.dumps([e.to_dict() for e in state.latest_errors]),
                json.dumps([h.to_dict() for h in state.dex_history]),
                latest,
                _to_db(datetime.now(timezone.utc)),
                machine_id,
            ],
        )

    def save_errors(self, machine_id: str, errors: list[ErrorRecord]) -> None:
        self._db.conn.execute(
            "UPDATE machines SET latest_errors = ?, updated_at = ? WHERE machine_id = ?",
            [
                json.dumps([e.to_dict() for e in errors]),
                _to_db(datetime.now(timezone.utc)),
                machine_id,
            ],
        )

    def set_error_actioned(
        self,
        machine_id: str,
        code: str,
        timestamp: str,
        actioned: bool,
        now: datetime,
    ) -> bool:
        """Update one error's actioned flag. Returns False if no such error."""
        errors = self.get_errors_for_machine(machine_id)
        if not any(e.code == code and e.timestamp == timestamp for e in errors):
            return False
        self.save_errors(machine_id, set_actioned(errors, code, timestamp, actioned, now))
        return True

    def list_all_histories(self) -> dict[str, list[DexHistoryEntry]]:
        rows = self._db.conn.execute("SELECT machine_id, dex_history FROM machines").fetchall()
        return {
            r[0]: [DexHistoryEntry.from_dict(e) for e in _load_json(r[1], [])]
            for r in rows
        }

    def update_recent_counts(self, counts: dict[str, int]) -> None:
        for machine_id, count in counts.items():
            self._db.conn.execute(
                "UPDATE machines SET dex_last_4hrs = ? WHERE machine_id = ?",
                [count, machine_id],
            )

    def list_overview(self, company_id: str = "") -> list[dict]:
        """Machine rows for status listings, newest capture first."""
        query = """SELECT m.machine_id, m.company_id, c.company_name, m.case_serial,
                          m.latest_dex_data, m.dex_last_4hrs, m.latest_errors, m.latest_dex_parsed
                   FROM machines m JOIN companies c ON m.company_id = c.company_id"""
        params: list = []
        if company_id:
            query += " WHERE m.company_id = ?"
            params.append(company_id)
        query += " ORDER BY m.latest_dex_data DESC NULLS LAST, m.case_serial"
        rows = self._db.conn.execute(query, params).fetchall()
        overview = []
        for r in rows:
            errors = [ErrorRecord.from_dict(e) for e in _load_json(r[6], [])]
            parsed = _load_json(r[7], None)
            overview.append({
                "machine_id": r[0],
                "company_id": r[1],
                "company_name": r[2],
                "case_serial": r[3],
                "latest_dex_data": _from_db(r[4]),
                "dex_last_4hrs": r[5] or 0,
                "errors": errors,
                "summary": parsed["summary"] if parsed else None,
            })
        return overview


class DexCaptureRepo:
    """Batch operations on the dex_captures table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def existing_ids(self, dex_ids: list[str]) -> set[str]:
        if not dex_ids:
            return set()
        placeholders = ", ".join(["?"] * len(dex_ids))
        rows = self._db.conn.execute(
            f"SELECT dex_id FROM dex_captures WHERE dex_id IN ({placeholders})", dex_ids
        ).fetchall()
        return {r[0] for r in rows}

    def insert_batch(self, captures: list[DexCapture]) -> int:
        """Insert captures not already stored, using Polars for bulk insert.

        Returns the number of rows inserted. Re-inserting the same dex_id is
        a no-op, so a retried cycle does not duplicate captures.
        """
        skip = self.existing_ids([c.dex_id for c in captures])
        fresh: dict[str, DexCapture] = {}
        for c in captures:
            if c.dex_id not in skip:
                fresh.setdefault(c.dex_id, c)
        if not fresh:
            return 0

        rows = list(fresh.values())
        df = pl.DataFrame({
            "dex_id": [c.dex_id for c in rows],
            "machine_id": [c.machine_id for c in rows],
            "case_serial": [c.case_serial for c in rows],
            "company_id": [c.company_id for c in rows],
            "raw_content": [c.raw_content for c in rows],
            "parsed_data": [json.dumps(c.parsed.to_dict()) for c in rows],
            "has_errors": [c.has_errors for c in rows],
            "record_count": [c.record_count for c in rows],
            "created_at": [_to_db(c.created_at) for c in rows],
        })
        self._db.conn.execute("INSERT INTO dex_captures SELECT * FROM df")
        return len(rows)

    def count_for_machine(self, machine_id: str) -> int:
        result = self._db.conn.execute(
            "SELECT COUNT(*) FROM dex_captures WHERE machine_id = ?", [machine_id]
        ).fetchone()
        return result[0]


class DuckDBMachineStore:
    """MachineStore backed by the DuckDB repositories."""

    def __init__(self, db: Database) -> None:
        self.companies = CompanyRepo(db)
        self.machines = MachineRepo(db)
        self.captures = DexCaptureRepo(db)

    def list_companies(self) -> list[Company]:
        return self.companies.list_companies()

    def get_machines_by_company(self, company_id: str) -> list[MachineRef]:
        return self.machines.get_machines_by_company(company_id)

    def get_errors_for_machine(self, machine_id: str) -> list[ErrorRecord]:
        return self.machines.get_errors_for_machine(machine_id)

    def get_machine_state(self, machine_id: str) -> Optional[MachineDexState]:
        return self.machines.get_machine_state(machine_id)

    def upsert_machine_dex_state(self, machine_id: str, state: MachineDexState) -> None:
        self.machines.upsert_machine_dex_state(machine_id, state)

    def insert_dex_captures(self, captures: list[DexCapture]) -> int:
        return self.captures.insert_batch(captures)

    def list_all_histories(self) -> dict[str, list[DexHistoryEntry]]:
        return self.machines.list_all_histories()

    def update_recent_counts(self, counts: dict[str, int]) -> None:
        self.machines.update_recent_counts(counts)
