"""Tests for the catalog command line tool."""

import json
import logging

import pytest
import structlog
import yaml

from motionlab.config.scoring_config_loader import ScoringConfigLoader
from scripts.tools.catalog_cli import create_parser, load_catalog_file, main


@pytest.fixture(autouse=True)
def bundled_config():
    """Use the bundled scoring_engine.yaml."""
    ScoringConfigLoader.reset_instance()
    yield
    ScoringConfigLoader.reset_instance()


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures logging onto the captured stderr; undo it afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def catalog_json(tmp_path, catalog_data):
    """Write the fixture catalog as JSON."""
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(catalog_data))
    return str(path)


@pytest.fixture
def catalog_yaml(tmp_path, catalog_data):
    """Write the fixture catalog as YAML."""
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.safe_dump(catalog_data))
    return str(path)


class TestLoadCatalogFile:
    """Test reading catalog dumps from disk."""

    def test_json_and_yaml_load_the_same_data(self, catalog_json, catalog_yaml, catalog_data):
        """Test JSON and YAML dumps decode alike."""
        assert load_catalog_file(catalog_json) == catalog_data
        assert load_catalog_file(catalog_yaml) == catalog_data

    def test_top_level_must_be_object(self, tmp_path):
        """Test a top-level array is rejected."""
        path = tmp_path / "list.json"
        path.write_text("[]")

        with pytest.raises(ValueError):
            load_catalog_file(str(path))


class TestCommands:
    """Test the lint, score and groups commands."""

    def test_no_command_prints_help(self, capsys):
        """Test running without a command."""
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_lint_warnings_only(self, catalog_json, capsys):
        """Test warnings alone exit with 0."""
        assert main(["lint", catalog_json]) == 0

        out = capsys.readouterr().out
        assert "[WRN] stances/NARROW -> delta_rules.SQUAT_PAUSE.CORE" in out
        assert "Summary: 0 errors, 1 warnings, 0 info" in out

    def test_lint_errors_fail(self, tmp_path, catalog_data, capsys):
        """Test errors exit with 1."""
        catalog_data["modifier_tables"]["stances"][0]["delta_rules"]["DEADLIFT"] = {"QUADS": 1}
        path = tmp_path / "broken.json"
        path.write_text(json.dumps(catalog_data))

        assert main(["lint", str(path)]) == 1
        assert 'Unknown motion ID "DEADLIFT"' in capsys.readouterr().out

    def test_score(self, catalog_yaml, capsys):
        """Test the text report of a composition."""
        assert main(["score", catalog_yaml, "SQUAT_PAUSE", "--select", "stances:WIDE", "-s", "paths:ARC"]) == 0

        out = capsys.readouterr().out
        assert "Selections: paths:ARC, stances:WIDE" in out
        assert "GLUTES: 4.25" in out
        assert "HAMSTRINGS: 0.5" in out
        assert "LEGS: 9.25" in out
        assert "[SQUAT_PAUSE -> SQUAT]" in out

    def test_score_json(self, catalog_json, capsys):
        """Test --json prints only a JSON document on stdout."""
        assert main(["score", catalog_json, "CURL", "--select", "grips:SUPINATED", "--json"]) == 0

        captured = capsys.readouterr()
        data = json.loads(captured.out)
        assert data["final_scores"]["BICEPS_SHORT"] == 0.5
        assert data["effective_motion_id"] == "CURL"
        assert data["rules_fired"] == []
        assert "catalog_snapshot_built" in captured.err

    def test_score_unknown_motion(self, catalog_json, capsys):
        """Test scoring a motion the catalog lacks."""
        assert main(["score", catalog_json, "GHOST"]) == 1
        assert "Motion not found: GHOST" in capsys.readouterr().out

    def test_score_malformed_selection(self, catalog_json, capsys):
        """Test a selection without a row."""
        assert main(["score", catalog_json, "SQUAT", "--select", "stances"]) == 1
        assert "table:row" in capsys.readouterr().out

    def test_groups(self, catalog_json, capsys):
        """Test the grouping options report."""
        assert main(["groups", catalog_json, "SQUAT"]) == 0

        out = capsys.readouterr().out
        assert "Default: LEGS" in out
        assert "LEGS  (Legs)" in out

    def test_groups_custom_threshold(self, catalog_json, capsys):
        """Test --min-score overrides the configured threshold."""
        assert main(["groups", catalog_json, "SQUAT", "--min-score", "100"]) == 0
        assert "Default: -" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        """Test a catalog path that does not exist."""
        assert main(["lint", str(tmp_path / "missing.json")]) == 1
        assert "missing.json" in capsys.readouterr().out

    def test_parser_defaults(self):
        """Test score command defaults."""
        args = create_parser().parse_args(["score", "catalog.json", "SQUAT"])

        assert args.select is None
        assert not args.json

    def test_score_reports_combo_rules(self, tmp_path, catalog_data, capsys):
        """Test the report names the scored motion and the rules that fired."""
        catalog_data["combo_rules"] = [
            {
                "id": "narrow_is_pause",
                "motion_id": "SQUAT",
                "action_type": "SWITCH_MOTION",
                "trigger_conditions": [{"tableKey": "stances", "operator": "eq", "value": "NARROW"}],
                "action_payload": {"proxy_motion_id": "SQUAT_PAUSE"},
            },
        ]
        path = tmp_path / "combo.json"
        path.write_text(json.dumps(catalog_data))

        assert main(["score", str(path), "SQUAT", "-s", "stances:NARROW"]) == 0

        out = capsys.readouterr().out
        assert "Scored as: SQUAT_PAUSE" in out
        assert "Combo rule: narrow_is_pause SWITCH_MOTION (only match)" in out
        assert "QUADS: 6.5" in out

    def test_verbose_logs_debug_to_stderr(self, catalog_json, capsys):
        """Test -v enables debug events on stderr only."""
        assert main(["-v", "score", catalog_json, "CURL", "--json"]) == 0

        captured = capsys.readouterr()
        assert "composition_cache_miss" in captured.err
        assert "composition_cache_miss" not in captured.out
        json.loads(captured.out)
