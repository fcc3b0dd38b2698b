# tests/unit/test_cli_commands.py
"""Tests for the tst command line."""

import csv

import pytest
import yaml
from typer.testing import CliRunner

from txn_stress_test.cli.main import app
from txn_stress_test.cli.utils import format_duration, parse_properties
from txn_stress_test.db.memory import default_store

runner = CliRunner()


@pytest.fixture(autouse=True)
def empty_default_store():
    default_store().clear()
    yield
    default_store().clear()


@pytest.mark.unit
class TestUtils:
    """Test CLI helpers."""

    def test_parse_properties(self):
        assert parse_properties(["recordcount=10", " truesingleton = false "]) == {
            "recordcount": "10",
            "truesingleton": "false",
        }

    @pytest.mark.parametrize("item", ["recordcount", "=10"])
    def test_parse_properties_rejects_malformed(self, item):
        with pytest.raises(ValueError):
            parse_properties([item])

    @pytest.mark.parametrize("seconds,expected", [
        (0.5, "500.0ms"),
        (2.5, "2.50s"),
        (125, "2m 5s"),
        (7260, "2h 1m"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


@pytest.mark.unit
class TestInfoCommands:
    """Test the info commands."""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "txn-stress-test version" in result.output

    def test_verbose_and_quiet_conflict(self):
        result = runner.invoke(app, ["-v", "-q", "version"])
        assert result.exit_code == 1

    def test_workloads(self):
        result = runner.invoke(app, ["info", "workloads"])
        assert result.exit_code == 0
        assert "singleton" in result.output
        assert "transactional" in result.output

    def test_backends(self):
        result = runner.invoke(app, ["info", "backends"])
        assert result.exit_code == 0
        assert "memory" in result.output
        assert "redis" in result.output

    def test_system(self):
        result = runner.invoke(app, ["info", "system"])
        assert result.exit_code == 0
        assert "CPU Count" in result.output

    def test_redis_unreachable(self, mocker):
        mocker.patch("txn_stress_test.cli.commands.info._get_redis_info",
                     return_value={"error": "Connection refused"})

        result = runner.invoke(app, ["info", "redis", "--port", "1"])
        assert "Connection failed" in result.output

    def test_redis_info(self, mocker):
        mocker.patch("txn_stress_test.cli.commands.info._get_redis_info", return_value={
            "redis_version": "7.2.0",
            "used_memory_human": "1M",
            "db0": {"keys": 10, "expires": 0},
        })

        result = runner.invoke(app, ["info", "redis"])
        assert result.exit_code == 0
        assert "7.2.0" in result.output
        assert "db0" in result.output


@pytest.mark.unit
class TestValidateCommand:
    """Test configuration validation."""

    def test_valid_config(self, config_file):
        result = runner.invoke(app, ["validate", "config", str(config_file)])

        assert result.exit_code == 0
        assert "validation successful" in result.output
        assert "recordcount: 50" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate", "config", str(tmp_path / "none.yaml")])
        assert result.exit_code == 1

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"client": {"threads": 0}}))

        result = runner.invoke(app, ["validate", "config", str(path)])
        assert result.exit_code == 1

    def test_unknown_workload(self, tmp_path):
        path = tmp_path / "unknown.yaml"
        path.write_text(yaml.dump({"client": {"workload": "nope"}}))

        result = runner.invoke(app, ["validate", "config", str(path)])
        assert result.exit_code == 1

    def test_property_override(self, config_file):
        result = runner.invoke(app, ["validate", "config", str(config_file), "-p", "recordcount=77"])

        assert result.exit_code == 0
        assert "recordcount: 77" in result.output


@pytest.mark.unit
class TestRunCommands:
    """Test the load and transactions commands on the memory backend."""

    def test_load(self, config_file, tmp_path):
        out = tmp_path / "results"
        result = runner.invoke(app, ["run", "load", "-c", str(config_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert default_store().record_count("usertable") == 50
        assert (out / "load_results.yaml").exists()

        with open(out / "summary.csv", newline='') as f:
            rows = list(csv.DictReader(f))
        assert {row["operation"] for row in rows} == {"INSERT", "TOTAL"}

    def test_transactions_with_load(self, config_file, tmp_path):
        out = tmp_path / "results"
        result = runner.invoke(app, [
            "run", "transactions", "-c", str(config_file), "-o", str(out), "--load",
            "-p", "operationcount=300", "-t", "3",
        ])

        assert result.exit_code == 0, result.output
        assert (out / "load_results.yaml").exists()

        with open(out / "run_results.yaml") as f:
            saved = yaml.safe_load(f)
        assert saved["result"]["phase"] == "run"
        assert saved["result"]["success_count"] + saved["result"]["failure_count"] == 300
        assert saved["result"]["threads_used"] == 3
        assert saved["config"]["workload"]["operationcount"] == 300

    def test_summary_keeps_every_phase(self, config_file, tmp_path):
        out = tmp_path / "results"
        result = runner.invoke(app, [
            "run", "transactions", "-c", str(config_file), "-o", str(out), "--load",
            "-p", "operationcount=100",
        ])

        assert result.exit_code == 0, result.output
        with open(out / "summary.csv", newline='') as f:
            rows = list(csv.DictReader(f))

        assert {row["phase"] for row in rows} == {"load", "run"}
        load_rows = [row for row in rows if row["phase"] == "load"]
        run_rows = [row for row in rows if row["phase"] == "run"]
        assert {row["operation"] for row in load_rows} == {"INSERT", "TOTAL"}
        assert "TOTAL" in {row["operation"] for row in run_rows}
        assert rows.index(load_rows[-1]) < rows.index(run_rows[0])

    def test_transactions_without_config(self, tmp_path):
        result = runner.invoke(app, [
            "run", "transactions", "-o", str(tmp_path), "--load",
            "-w", "transactional", "-p", "recordcount=20", "-p", "operationcount=50",
        ])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "summary.csv").exists()

    def test_bad_property(self, tmp_path):
        result = runner.invoke(app, ["run", "load", "-o", str(tmp_path), "-p", "nosuch=1"])
        assert result.exit_code == 1

    def test_unknown_backend(self, tmp_path):
        result = runner.invoke(app, ["run", "load", "-o", str(tmp_path), "-b", "cassandra"])
        assert result.exit_code == 1
