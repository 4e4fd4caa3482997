"""Scheduled DEX collection cycle.

One cycle walks every company sequentially:

    Idle -> Authenticating -> FetchingMetadata -> Selecting
         -> FetchingRaw/Parsing (per record) -> Reconciling (per machine)
         -> Persisting -> Idle

Failures are contained at the smallest unit that can fail: a record that
cannot be fetched or parsed is skipped and its machine's timestamp is held
below it so the next cycle selects it again, a machine that cannot be updated does not
affect its neighbours, and a company whose source cannot be opened is
reported as failed while the others continue. `run()` never raises.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol

from dex_monitor.collection.history import (
    HISTORY_LIMIT,
    RECENT_WINDOW,
    count_recent,
    merge_history,
)
from dex_monitor.collection.models import (
    Company,
    CompanyResult,
    DexCapture,
    DexHistoryEntry,
    MachineDexState,
    MachineRef,
    UpstreamDexRecord,
)
from dex_monitor.collection.selector import select_records_to_fetch
from dex_monitor.collection.sources import DexSource
from dex_monitor.errors.models import ErrorRecord
from dex_monitor.errors.reconciler import reconcile
from dex_monitor.ingestion.formatter import parse_dex

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_DELAY = 2.0


class CycleStage(Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    FETCHING_METADATA = "fetching_metadata"
    SELECTING = "selecting"
    FETCHING_RAW = "fetching_raw"
    PARSING = "parsing"
    RECONCILING = "reconciling"
    PERSISTING = "persisting"


class MachineStore(Protocol):
    """Persistence operations the cycle depends on."""

    def list_companies(self) -> list[Company]:
        ...

    def get_machines_by_company(self, company_id: str) -> list[MachineRef]:
        ...

    def get_errors_for_machine(self, machine_id: str) -> list[ErrorRecord]:
        ...

    def get_machine_state(self, machine_id: str) -> Optional[MachineDexState]:
        ...

    def upsert_machine_dex_state(self, machine_id: str, state: MachineDexState) -> None:
        ...

    def insert_dex_captures(self, captures: list[DexCapture]) -> int:
        ...

    def list_all_histories(self) -> dict[str, list[DexHistoryEntry]]:
        ...

    def update_recent_counts(self, counts: dict[str, int]) -> None:
        ...


SourceFactory = Callable[[Company], DexSource]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CollectionCycle:
    """Runs one collection pass over every company in the store."""

    def __init__(
        self,
        store: MachineStore,
        source_factory: SourceFactory,
        company_delay: float = DEFAULT_COMPANY_DELAY,
        history_limit: int = HISTORY_LIMIT,
        recent_window: timedelta = RECENT_WINDOW,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._source_factory = source_factory
        self._company_delay = company_delay
        self._history_limit = history_limit
        self._recent_window = recent_window
        self._sleep = sleep
        self._clock = clock
        self.stage = CycleStage.IDLE

    def _enter(self, stage: CycleStage) -> None:
        if stage != self.stage:
            logger.debug("Cycle stage: %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def run(self) -> list[CompanyResult]:
        """Collect for every company. Always returns one result per company."""
        try:
            companies = self._store.list_companies()
        except Exception as e:
            logger.error("Failed to list companies: %s", e, exc_info=True)
            return []

        logger.info("Starting DEX collection for %d companies", len(companies))
        results: list[CompanyResult] = []
        for i, company in enumerate(companies):
            if i > 0 and self._company_delay > 0:
                self._sleep(self._company_delay)
            results.append(self.collect_company(company))

        try:
            self.refresh_recent_counts()
        except Exception as e:
            logger.error("Failed to update recent capture counts: %s", e, exc_info=True)

        succeeded = sum(1 for r in results if r.success)
        total = sum(r.records_collected for r in results)
        logger.info(
            "Collection complete: %d/%d companies, %d records",
            succeeded,
            len(results),
            total,
        )
        return results

    def collect_company(self, company: Company) -> CompanyResult:
        """Collect one company, turning any failure into a failed result."""
        logger.info("Collecting DEX for %s (%s)", company.company_name, company.company_id)
        try:
            collected = self._collect(company)
        except Exception as e:
            logger.error(
                "Collection failed for company %s: %s", company.company_id, e, exc_info=True
            )
            return CompanyResult(
                company_id=company.company_id,
                company_name=company.company_name,
                success=False,
                error=str(e),
            )
        finally:
            self._enter(CycleStage.IDLE)

        logger.info("%s: %d records collected", company.company_name, collected)
        return CompanyResult(
            company_id=company.company_id,
            company_name=company.company_name,
            success=True,
            records_collected=collected,
        )

    def _collect(self, company: Company) -> int:
        self._enter(CycleStage.AUTHENTICATING)
        source = self._source_factory(company)

        self._enter(CycleStage.FETCHING_METADATA)
        upstream = source.list_records()
        if not upstream:
            logger.info("No DEX metadata found for %s", company.company_id)
            return 0
        logger.info("Fetched %d DEX records from upstream", len(upstream))

        machines = self._store.get_machines_by_company(company.company_id)
        by_serial = {m.case_serial: m for m in machines}

        self._enter(CycleStage.SELECTING)
        selected = select_records_to_fetch(
            upstream, {s: m.latest_dex_timestamp for s, m in by_serial.items()}
        )
        logger.info("Found %d new DEX records to fetch", len(selected))
        if not selected:
            return 0

        captures = []
        # machine_id -> created_at of the oldest record skipped this cycle
        pending: dict[str, datetime] = {}
        for record in selected:
            machine = by_serial[record.case_serial]
            capture = self._capture(company, machine, source, record)
            if capture is not None:
                captures.append(capture)
                continue
            oldest = pending.get(machine.machine_id)
            if oldest is None or record.created_at < oldest:
                pending[machine.machine_id] = record.created_at

        states = self._reconcile_machines(captures, pending)

        self._enter(CycleStage.PERSISTING)
        # Captures go in before machine state so a machine's timestamp never
        # moves past documents that were not stored.
        if captures:
            stored = self._store.insert_dex_captures(captures)
            logger.info("Saved %d DEX records (%d already present)", stored, len(captures) - stored)
        for machine_id, state in states.items():
            try:
                self._store.upsert_machine_dex_state(machine_id, state)
            except Exception as e:
                logger.error("Failed to update machine %s: %s", state.case_serial, e, exc_info=True)
                continue
            logger.info(
                "Updated machine %s - %d errors tracked",
                state.case_serial,
                len(state.latest_errors),
            )
        return len(captures)

    def _capture(
        self,
        company: Company,
        machine: MachineRef,
        source: DexSource,
        record: UpstreamDexRecord,
    ) -> Optional[DexCapture]:
        """Fetch and parse one record; None when it has to be skipped."""
        self._enter(CycleStage.FETCHING_RAW)
        try:
            raw = source.fetch_raw(record.dex_id)
        except Exception as e:
            logger.warning("Skipping DEX %s for %s: %s", record.dex_id, record.case_serial, e)
            return None
        if not raw:
            logger.warning("Skipping DEX %s for %s: empty document", record.dex_id, record.case_serial)
            return None

        self._enter(CycleStage.PARSING)
        try:
            parsed = parse_dex(raw)
        except Exception as e:
            logger.warning("Failed to parse DEX %s: %s", record.dex_id, e, exc_info=True)
            return None

        logger.info(
            "Parsed DEX %s for %s - %d vends, $%s",
            record.dex_id,
            record.case_serial,
            parsed.summary.total_vends,
            f"{parsed.summary.total_sales:.2f}",
        )
        return DexCapture(
            dex_id=record.dex_id,
            machine_id=machine.machine_id,
            case_serial=record.case_serial,
            company_id=company.company_id,
            raw_content=raw,
            parsed=parsed,
            created_at=record.created_at,
        )

    def _reconcile_machines(
        self,
        captures: Iterable[DexCapture],
        pending: Optional[dict[str, datetime]] = None,
    ) -> dict[str, MachineDexState]:
        pending = pending or {}
        self._enter(CycleStage.RECONCILING)
        by_machine: dict[str, list[DexCapture]] = {}
        for capture in captures:
            by_machine.setdefault(capture.machine_id, []).append(capture)

        states = {}
        for machine_id, machine_captures in by_machine.items():
            try:
                states[machine_id] = self.build_machine_state(
                    machine_id, machine_captures, pending.get(machine_id)
                )
            except Exception as e:
                logger.error("Failed to reconcile machine %s: %s", machine_id, e, exc_info=True)
        return states

    def build_machine_state(
        self,
        machine_id: str,
        captures: list[DexCapture],
        pending_since: Optional[datetime] = None,
    ) -> MachineDexState:
        """New state for a machine from this cycle's captures of it.

        `pending_since` is the creation time of the oldest record of this
        machine that was skipped this cycle. The returned timestamp stays
        strictly below it, so that record is selected again next cycle.
        """
        latest = max(captures, key=lambda c: c.created_at)
        previous = self._store.get_machine_state(machine_id)
        history = previous.dex_history if previous else []

        errors = reconcile(
            self._store.get_errors_for_machine(machine_id),
            latest.parsed.key_values,
            latest.created_at,
        )
        history = merge_history(
            history,
            (DexHistoryEntry(dex_id=c.dex_id, created=c.created_at) for c in captures),
            limit=self._history_limit,
        )
        latest_ts: Optional[datetime] = history[0].created if history else latest.created_at
        if pending_since is not None:
            below = [h.created for h in history if h.created < pending_since]
            if previous is not None and previous.latest_dex_timestamp is not None:
                below.append(previous.latest_dex_timestamp)
            latest_ts = max(below) if below else None
        return MachineDexState(
            case_serial=latest.case_serial,
            latest_dex_timestamp=latest_ts,
            dex_history=history,
            latest_parsed=latest.parsed,
            latest_errors=errors,
        )

    def refresh_recent_counts(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Recount each machine's captures inside the recent window."""
        now = now or self._clock()
        counts = {
            machine_id: count_recent(history, now, self._recent_window)
            for machine_id, history in self._store.list_all_histories().items()
        }
        self._store.update_recent_counts(counts)
        with_recent = sum(1 for c in counts.values() if c)
        logger.info(
            "Updated recent DEX counts: %d with recent DEX, %d without",
            with_recent,
            len(counts) - with_recent,
        )
        return counts
