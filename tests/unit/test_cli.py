"""Unit tests for CLI commands that do not need the embedding model."""

from unittest.mock import patch

from typer.testing import CliRunner

from regindex.cli.main import app

runner = CliRunner()


class TestUnitsCommand:
    def test_lists_category(self):
        result = runner.invoke(app, ["units", "county"])
        assert result.exit_code == 0
        assert "harris" in result.stdout
        assert "TX-48201" in result.stdout

    def test_rejects_unknown_category(self):
        result = runner.invoke(app, ["units", "galactic"])
        assert result.exit_code != 0


class TestSweepCommand:
    def test_uses_explicit_max_age(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REGINDEX_STORAGE_PATH", str(tmp_path))
        with patch("regindex.cli.maintenance.sweep_stale_state", return_value=3) as sweep:
            result = runner.invoke(app, ["sweep", "--max-age-hours", "12"])

        assert result.exit_code == 0
        assert "Deleted 3 state objects" in result.stdout
        assert sweep.call_args.args[1].total_seconds() == 12 * 3600


class TestStatusCommand:
    def test_unknown_instance(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REGINDEX_RUNTIME_DB", str(tmp_path / "runtime.db"))
        result = runner.invoke(app, ["status", "missing"])
        assert result.exit_code == 1
        assert "not found" in result.stdout
