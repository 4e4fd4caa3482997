"""Smoke tests for the typer CLI."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from dex_monitor.cli.app import app
from dex_monitor.storage.database import Database
from dex_monitor.storage.repositories import MachineRepo

runner = CliRunner()


class TestParseCommand:
    """Test offline parsing."""

    def test_json_output(self, tmp_path, sample_dex):
        path = tmp_path / "capture.txt"
        path.write_text(sample_dex, encoding="utf-8")
        result = runner.invoke(app, ["parse", str(path), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"]["total_sales"] == "13.50"
        assert data["key_values"]["ma5_error_codes"] == "dS,SS01"

    def test_table_output(self, tmp_path, sample_dex):
        path = tmp_path / "capture.txt"
        path.write_text(sample_dex, encoding="utf-8")
        result = runner.invoke(app, ["parse", str(path)])
        assert result.exit_code == 0
        assert "13.50" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["parse", str(tmp_path / "nope.txt")])
        assert result.exit_code == 1


class TestCollectionCommands:
    """Test register -> collect -> status -> errors."""

    def _setup(self, tmp_path, dex_export, sample_dex):
        db_path = str(tmp_path / "cli.duckdb")
        dex_export({"d1": ("VM1", "2024-01-20T12:00:00Z", sample_dex)}, company_id="co1")
        result = runner.invoke(
            app, ["register", "co1", "VM1", "--company-name", "Acme", "--db-path", db_path]
        )
        assert result.exit_code == 0
        result = runner.invoke(
            app,
            ["collect", "--db-path", db_path, "--source-dir", str(tmp_path / "exports"), "--json"],
        )
        assert result.exit_code == 0
        return db_path, json.loads(result.output)

    def test_collect_envelope(self, tmp_path, dex_export, sample_dex):
        _, envelope = self._setup(tmp_path, dex_export, sample_dex)
        assert envelope["success"] is True
        assert envelope["companiesProcessed"] == 1
        assert envelope["totalRecords"] == 1
        assert envelope["results"][0]["companyId"] == "co1"

    def test_status(self, tmp_path, dex_export, sample_dex):
        db_path, _ = self._setup(tmp_path, dex_export, sample_dex)
        result = runner.invoke(app, ["status", "--db-path", db_path])
        assert result.exit_code == 0
        assert "VM1" in result.output

    def test_errors_list_and_action(self, tmp_path, dex_export, sample_dex):
        db_path, _ = self._setup(tmp_path, dex_export, sample_dex)
        result = runner.invoke(app, ["errors", "VM1", "--db-path", db_path])
        assert result.exit_code == 0
        assert "EJL" in result.output

        result = runner.invoke(
            app,
            ["errors", "VM1", "action", "--code", "EJL",
             "--timestamp", "2024-01-15T09:30:00", "--db-path", db_path],
        )
        assert result.exit_code == 0

        with Database(db_path) as db:
            repo = MachineRepo(db)
            machine = repo.find_by_serial("VM1")
            errors = {e.code: e for e in repo.get_errors_for_machine(machine.machine_id)}
        assert errors["EJL"].actioned is True

        result = runner.invoke(
            app,
            ["errors", "VM1", "clear", "--code", "EJL",
             "--timestamp", "2024-01-15T09:30:00", "--db-path", db_path],
        )
        assert result.exit_code == 0

    def test_errors_unknown_machine(self, tmp_path):
        db_path = str(tmp_path / "cli.duckdb")
        result = runner.invoke(app, ["errors", "NOPE", "--db-path", db_path])
        assert result.exit_code == 1

    def test_errors_unknown_error(self, tmp_path, dex_export, sample_dex):
        db_path, _ = self._setup(tmp_path, dex_export, sample_dex)
        result = runner.invoke(
            app,
            ["errors", "VM1", "action", "--code", "ZZZ",
             "--timestamp", "2024-01-15T09:30:00", "--db-path", db_path],
        )
        assert result.exit_code == 1

    def test_collect_without_companies(self, tmp_path):
        db_path = str(tmp_path / "cli.duckdb")
        result = runner.invoke(app, ["collect", "--db-path", db_path])
        assert result.exit_code == 0
        assert "No companies registered" in result.output
