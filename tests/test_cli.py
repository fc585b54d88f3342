"""
Tests for the crashwatch command line interface.
"""

import json

import pytest
import yaml

from crashwatch.cli import EXIT_CONFIG_ERROR, EXIT_INPUT_ERROR, EXIT_OK, main, parse_args

SCENARIO = {
    "cape": 38.0,
    "yieldCurve": 0.5,
    "marginDebt": None,
    "creditSpreads": 4.2,
    "buffett": 145.0,
    "vix": 18.0,
}


@pytest.fixture(autouse=True)
def _root_logger(restore_root_logger):
    """main() reconfigures the root logger."""
    yield


@pytest.fixture
def readings_file(tmp_path):
    path = tmp_path / "readings.json"
    path.write_text(json.dumps(SCENARIO))
    return path


class TestParseArgs:
    def test_evaluate_defaults(self):
        args = parse_args(["evaluate", "readings.json"])

        assert args.command == "evaluate"
        assert args.format == "json"
        assert args.config is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestEvaluate:
    def test_json_output(self, readings_file, capsys):
        code = main(["evaluate", str(readings_file)])

        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_OK
        assert output["risk_level"] == "moderate"
        assert output["total_score"] == pytest.approx(46.588, abs=1e-3)
        assert output["critical_warning_count"] == 1
        assert output["missing"][0]["indicator"] == "margin_debt"

    def test_yaml_input(self, tmp_path, capsys):
        path = tmp_path / "readings.yaml"
        path.write_text(yaml.safe_dump(SCENARIO))

        assert main(["evaluate", str(path)]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["display_score"] == 47

    def test_table_output(self, readings_file, capsys):
        code = main(["evaluate", str(readings_file), "--format", "table"])

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert "Crash risk: 46.6 / 100 (Moderate)" in out
        assert "Critical warnings: 1" in out
        assert "margin_debt" in out

    def test_empty_file_is_insufficient_data(self, tmp_path, capsys):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert main(["evaluate", str(path), "--format", "table"]) == EXIT_OK
        assert "data unavailable" in capsys.readouterr().out

    def test_missing_readings_file(self, tmp_path):
        assert main(["evaluate", str(tmp_path / "absent.json")]) == EXIT_INPUT_ERROR

    def test_non_mapping_readings(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")

        assert main(["evaluate", str(path)]) == EXIT_INPUT_ERROR

    def test_custom_config(self, tmp_path, readings_file, risk_model, capsys):
        document = risk_model.to_dict()
        document["version"] = "cli-test"
        config = tmp_path / "model.yaml"
        config.write_text(yaml.safe_dump(document))

        assert main(["evaluate", str(readings_file), "--config", str(config)]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["model_version"] == "cli-test"


class TestConfigErrors:
    def test_invalid_model_exits_with_config_error(self, tmp_path, readings_file, risk_model, capsys):
        document = risk_model.to_dict()
        document["indicators"]["cape"]["weight"] = 0.10
        config = tmp_path / "model.yaml"
        config.write_text(yaml.safe_dump(document))

        code = main(["evaluate", str(readings_file), "--config", str(config)])

        captured = capsys.readouterr()
        assert code == EXIT_CONFIG_ERROR
        assert captured.out == ""
        error = json.loads(captured.err[captured.err.index('{\n  "error"'):])["error"]
        assert error["code"] == "CONFIGURATION_1001"

    def test_env_model_path(self, monkeypatch, tmp_path, readings_file):
        monkeypatch.setenv("CRASHWATCH_RISK_MODEL_PATH", str(tmp_path / "absent.yaml"))

        assert main(["evaluate", str(readings_file)]) == EXIT_CONFIG_ERROR


class TestShowModel:
    def test_prints_yaml(self, capsys):
        assert main(["show-model"]) == EXIT_OK

        document = yaml.safe_load(capsys.readouterr().out)
        assert document["version"] == "2025.11"
        assert document["indicators"]["yield_curve"]["polarity"] == "lower_is_worse"
        assert [band["level"] for band in document["risk_bands"]] == [
            "low",
            "moderate",
            "elevated",
            "high",
            "extreme",
        ]

    def test_with_config(self, tmp_path, risk_model, capsys):
        document = risk_model.to_dict()
        document["version"] = "shown"
        config = tmp_path / "model.yaml"
        config.write_text(yaml.safe_dump(document))

        assert main(["show-model", "--config", str(config)]) == EXIT_OK
        assert yaml.safe_load(capsys.readouterr().out)["version"] == "shown"

    def test_log_level_case_insensitive(self, capsys):
        assert main(["--log-level", "warning", "show-model"]) == EXIT_OK
