"""FastAPI app for triggering collection and acknowledging machine errors.

Run with: uvicorn dex_monitor.api.app:app
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dex_monitor.collection.config import CollectorConfig
from dex_monitor.collection.models import summarize_results
from dex_monitor.collection.runner import build_cycle
from dex_monitor.config.error_codes import describe_error
from dex_monitor.errors.reconciler import sort_for_display
from dex_monitor.storage.database import Database
from dex_monitor.storage.repositories import MachineRepo

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title="DEX Monitor", version="0.1.0")

# Handlers are all async and call DuckDB without awaiting, so requests run one
# at a time on the event loop and never share the connection across threads.
_db: Database | None = None


def _get_db() -> Database:
    global _db
    if _db is None:
        db = Database(CollectorConfig.from_env().db_path)
        db.initialize()
        _db = db
    return _db


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.post("/collect")
async def collect():
    """Run one collection cycle over every registered company.

    Company failures are reported in the per-company results; the request
    itself only fails if the collector is misconfigured.
    """
    config = CollectorConfig.from_env()
    problems = config.validate()
    if problems:
        logger.error("Collector misconfigured: %s", "; ".join(problems))
        return JSONResponse(status_code=500, content={"success": False, "error": problems})

    # No inter-company pause for triggered runs
    config.company_delay = 0
    results = build_cycle(_get_db(), config).run()
    return summarize_results(results)


@app.get("/machines/{machine_id}/errors")
async def machine_errors(machine_id: str):
    """A machine's tracked errors, newest first, with descriptions."""
    repo = MachineRepo(_get_db())
    if repo.get_machine_state(machine_id) is None:
        return JSONResponse(status_code=404, content={"error": f"Machine {machine_id} not found"})

    errors = sort_for_display(repo.get_errors_for_machine(machine_id))
    return {
        "machineId": machine_id,
        "errors": [dict(e.to_dict(), description=describe_error(e)) for e in errors],
    }


@app.post("/machines/{machine_id}/errors/action")
async def action_error(machine_id: str, request: Request):
    """Mark one error as actioned (or unactioned).

    Body: {"code": "...", "timestamp": "...", "actioned": true}
    """
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
    if not isinstance(body, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    code = body.get("code")
    timestamp = body.get("timestamp")
    actioned = body.get("actioned", True)
    if not code or not timestamp or not isinstance(actioned, bool):
        return JSONResponse(
            status_code=400,
            content={"error": "code and timestamp are required; actioned must be boolean"},
        )

    repo = MachineRepo(_get_db())
    if repo.get_machine_state(machine_id) is None:
        return JSONResponse(status_code=404, content={"error": f"Machine {machine_id} not found"})

    now = datetime.now(timezone.utc)
    if not repo.set_error_actioned(machine_id, code, timestamp, actioned, now):
        return JSONResponse(
            status_code=404,
            content={"error": f"No error {code} at {timestamp} on machine {machine_id}"},
        )

    logger.info(
        "Error %s at %s on %s marked %s",
        code,
        timestamp,
        machine_id,
        "actioned" if actioned else "unactioned",
    )
    errors = sort_for_display(repo.get_errors_for_machine(machine_id))
    return {"success": True, "errors": [e.to_dict() for e in errors]}
