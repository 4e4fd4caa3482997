"""DuckDB connection for the DEX store."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import duckdb

from dex_monitor.storage.schema import SCHEMA_DDL

DEFAULT_DB_PATH = "./data/dex_monitor.duckdb"
IN_MEMORY = ":memory:"


def resolve_db_path(db_path: Optional[str] = None) -> str:
    """Explicit path, else $DEX_DB, else the local default file."""
    return db_path or os.environ.get("DEX_DB", DEFAULT_DB_PATH)


class Database:
    """Lazily opened DuckDB connection with the DEX schema applied on entry.

    Use as a context manager; `:memory:` gives a throwaway store.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self.db_path = db_path
        self._conn: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            if self.db_path != IN_MEMORY:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(self.db_path)
        return self._conn

    def initialize(self) -> None:
        """Create the companies, machines and dex_captures tables if missing."""
        self.conn.execute(SCHEMA_DDL)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> Database:
        self.initialize()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
