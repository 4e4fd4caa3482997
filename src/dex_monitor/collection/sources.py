"""Upstream DEX sources.

The live portal is scraped by a separate client; collection only needs the
two calls below. `DirectoryDexSource` reads what that client exports:

    <source_dir>/metadata.json     - list of DEX list entries (camelCase)
    <source_dir>/raw/<dexId>.txt   - raw DEX documents
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from dex_monitor.collection.models import Company, UpstreamDexRecord

logger = logging.getLogger(__name__)


class SourceUnavailableError(Exception):
    """The company's upstream cannot be reached or authenticated at all."""


class DexFetchError(Exception):
    """A single raw DEX document could not be fetched."""


class DexSource(Protocol):
    def list_records(self) -> list[UpstreamDexRecord]:
        ...

    def fetch_raw(self, dex_id: str) -> str:
        ...


class DirectoryDexSource:
    """Reads DEX metadata and raw documents from a local export directory."""

    METADATA_FILE = "metadata.json"
    RAW_DIR = "raw"

    def __init__(self, source_dir: str) -> None:
        self._dir = Path(source_dir)
        if not self._dir.is_dir():
            raise SourceUnavailableError(f"DEX source directory not found: {source_dir}")

    @classmethod
    def for_company(cls, company: Company, root: str = "") -> DirectoryDexSource:
        """Source for a company: its own source_path, else <root>/<company_id>."""
        if company.source_path:
            return cls(company.source_path)
        if not root:
            raise SourceUnavailableError(
                f"No DEX source configured for company {company.company_id}"
            )
        return cls(str(Path(root) / company.company_id))

    def list_records(self) -> list[UpstreamDexRecord]:
        path = self._dir / self.METADATA_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceUnavailableError(f"Cannot read {path}: {e}") from e

        records = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping DEX list entry that is not an object: %r", entry)
                continue
            try:
                records.append(UpstreamDexRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping DEX list entry without serial/id/date: %s", e)
        return records

    def fetch_raw(self, dex_id: str) -> str:
        path = self._dir / self.RAW_DIR / f"{dex_id}.txt"
        try:
            # newline="" keeps \r\n line endings as captured
            with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
                return f.read()
        except OSError as e:
            raise DexFetchError(f"Failed to fetch raw DEX {dex_id}: {e}") from e
