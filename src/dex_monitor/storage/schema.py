"""DuckDB table definitions.

Timestamps are stored as naive UTC. JSON payloads (history, errors, parsed
data) are stored as TEXT.
"""

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS companies (
    company_id    TEXT PRIMARY KEY,
    company_name  TEXT NOT NULL,
    source_path   TEXT,
    created_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS machines (
    machine_id        TEXT PRIMARY KEY,
    company_id        TEXT NOT NULL,
    case_serial       TEXT NOT NULL,
    latest_dex_data   TIMESTAMP,
    latest_dex_parsed TEXT,
    latest_errors     TEXT,
    dex_history       TEXT,
    dex_last_capture  TIMESTAMP,
    dex_last_4hrs     INTEGER DEFAULT 0,
    created_at        TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at        TIMESTAMP,
    UNIQUE (company_id, case_serial)
);

CREATE TABLE IF NOT EXISTS dex_captures (
    dex_id        TEXT PRIMARY KEY,
    machine_id    TEXT NOT NULL,
    case_serial   TEXT NOT NULL,
    company_id    TEXT NOT NULL,
    raw_content   TEXT NOT NULL,
    parsed_data   TEXT,
    has_errors    BOOLEAN,
    record_count  INTEGER,
    created_at    TIMESTAMP NOT NULL
);
"""
