"""Unit tests for raw catalog decoding and the catalog snapshot."""

import json

import pytest

from motionlab.config.scoring_config_loader import ScoringConfigLoader
from motionlab.schemas import CatalogSchema, ComboRuleSchema, ModifierRowSchema, MotionSchema, MuscleSchema
from motionlab.scoring.catalog import CatalogSnapshot
from motionlab.scoring.delta_rules import Explicit, Inherit
from motionlab.scoring.exceptions import CatalogLoadError, ScoringException


class TestMuscleSchema:
    """Test MuscleSchema decoding."""

    def test_parent_ids_as_json_string(self):
        """Test parent_ids stored as a JSON string."""
        record = MuscleSchema.model_validate({"id": "BICEPS", "parent_ids": json.dumps(["ARMS"])}).to_record()

        assert record.parent_ids == ("ARMS",)
        assert record.primary_parent_id == "ARMS"

    @pytest.mark.parametrize("raw", [None, "not json", '"ARMS"'])
    def test_unusable_parent_ids_become_empty(self, raw):
        """Test parent_ids that cannot be read as a list."""
        assert MuscleSchema.model_validate({"id": "ARMS", "parent_ids": raw}).parent_ids == []

    def test_scorable_defaults(self):
        """Test is_scorable defaults to True, including null."""
        assert MuscleSchema.model_validate({"id": "ARMS"}).is_scorable is True
        assert MuscleSchema.model_validate({"id": "ARMS", "is_scorable": None}).is_scorable is True
        assert MuscleSchema.model_validate({"id": "CORE", "is_scorable": False}).is_scorable is False


class TestMotionSchema:
    """Test MotionSchema decoding."""

    def test_muscle_targets_alias(self):
        """Test muscle_targets is accepted for base_targets."""
        motion = MotionSchema.model_validate({"id": "SQUAT", "muscle_targets": {"QUADS": 5}})

        assert motion.to_record().base_targets == {"QUADS": 5.0}

    def test_blank_parent_is_none(self):
        """Test a blank parent_id means no parent."""
        assert MotionSchema.model_validate({"id": "SQUAT", "parent_id": "  "}).parent_id is None

    def test_bad_targets_are_dropped(self):
        """Test non-numeric and non-finite targets are dropped."""
        record = MotionSchema.model_validate(
            {"id": "SQUAT", "base_targets": {"QUADS": "x", "GLUTES": 3, "ABS": float("nan")}}
        ).to_record()

        assert record.base_targets == {"GLUTES": 3.0}

    def test_non_mapping_targets(self):
        """Test base_targets that is not an object."""
        assert MotionSchema.model_validate({"id": "SQUAT", "base_targets": [1, 2]}).to_record().base_targets == {}


class TestModifierRowSchema:
    """Test ModifierRowSchema decoding."""

    def test_to_row_decodes_rules(self):
        """Test delta_rules stored as a JSON string."""
        row = ModifierRowSchema.model_validate(
            {"id": "WIDE", "label": "Wide", "delta_rules": '{"SQUAT": {"GLUTES": 1}, "SQUAT_PAUSE": "inherit"}'}
        ).to_row()

        assert isinstance(row.delta_rules.entry_for("SQUAT"), Explicit)
        assert isinstance(row.delta_rules.entry_for("SQUAT_PAUSE"), Inherit)
        assert row.is_active

    @pytest.mark.parametrize("raw, expected", [(None, True), (True, True), (False, False)])
    def test_is_active(self, raw, expected):
        """Test is_active decoding, null meaning active."""
        row = ModifierRowSchema.model_validate({"id": "WIDE", "is_active": raw}).to_row()

        assert row.is_active is expected


class TestComboRuleSchema:
    """Test ComboRuleSchema decoding."""

    def test_json_columns(self):
        """Test the *_json column names holding JSON strings."""
        schema = ComboRuleSchema.model_validate({
            "id": "wide_pause",
            "motion_id": "SQUAT",
            "action_type": "SWITCH_MOTION",
            "trigger_conditions_json": '[{"tableKey": "stances", "operator": "eq", "value": "WIDE"}]',
            "action_payload_json": '{"proxy_motion_id": "SQUAT_PAUSE"}',
            "priority": None,
            "is_active": None,
        })

        rule = schema.to_rule()

        assert rule.payload.proxy_motion_id == "SQUAT_PAUSE"
        assert rule.priority == 0
        assert rule.is_active
        assert rule.specificity == 1

    def test_malformed_rule_decodes_to_none(self):
        """Test a rule with an unsupported action is dropped."""
        schema = ComboRuleSchema.model_validate({
            "id": "clamp",
            "motion_id": "SQUAT",
            "action_type": "CLAMP_MUSCLE",
            "trigger_conditions": [{"tableKey": "stances", "operator": "eq", "value": "WIDE"}],
            "action_payload": {"muscle_id": "QUADS", "max": 3},
        })

        assert schema.to_rule() is None


class TestCatalogSnapshot:
    """Test CatalogSnapshot construction and versioning."""

    def test_from_raw_builds_indexes(self, catalog):
        """Test the snapshot lookups."""
        assert len(catalog.muscles) == 11
        assert len(catalog.motions) == 4
        assert sorted(catalog.axis_tables) == ["grips", "paths", "stances"]
        assert catalog.base_targets_of("SQUAT") == {"QUADS": 5.0, "GLUTES": 3.0}
        assert catalog.base_targets_of("GHOST") == {}
        assert catalog.motion("CURL").label == "Curl"
        assert catalog.axis_table("tempos") is None

    def test_non_scorable_deltas_stripped_on_load(self, catalog):
        """Test non-scorable muscles leave delta maps at decode."""
        row = catalog.axis_table("stances").get("NARROW")

        assert row.delta_rules.entry_for("SQUAT_PAUSE").as_dict() == {"QUADS": 1.5}

    def test_version_ignores_record_order(self, catalog_data, catalog):
        """Test the version is independent of record order."""
        catalog_data["muscles"].reverse()
        catalog_data["motions"].reverse()

        assert CatalogSnapshot.from_raw(catalog_data).version == catalog.version

    def test_version_changes_with_content(self, catalog_data, catalog):
        """Test the version tracks content changes."""
        catalog_data["motions"][0]["base_targets"]["QUADS"] = 6

        assert CatalogSnapshot.from_raw(catalog_data).version != catalog.version

    @pytest.mark.parametrize("data", [
        {"muscles": "nope"},
        {"muscles": [{"label": "no id"}]},
        {"modifier_tables": {"stances": {"id": "WIDE"}}},
    ])
    def test_invalid_data(self, data):
        """Test malformed dumps raise CatalogLoadError."""
        with pytest.raises(CatalogLoadError) as exc_info:
            CatalogSnapshot.from_raw(data)

        assert isinstance(exc_info.value, ScoringException)
        assert exc_info.value.details["errors"]

    def test_empty_catalog(self):
        """Test an empty dump gives an empty snapshot."""
        catalog = CatalogSnapshot.from_raw({})

        assert len(catalog.muscles) == 0
        assert catalog.axis_tables == {}

    def test_schema_axis_tables(self, catalog_data):
        """Test CatalogSchema builds axis tables."""
        schema = CatalogSchema.model_validate(catalog_data)

        tables = schema.axis_tables()

        assert tables["grips"].rows_applicable_to("CURL") == ["NEUTRAL", "SUPINATED"]

    def test_version_changes_with_row_activity(self, catalog_data, catalog):
        """Test deactivating a row changes the version."""
        catalog_data["modifier_tables"]["stances"][0]["is_active"] = False

        assert CatalogSnapshot.from_raw(catalog_data).version != catalog.version

    def test_inactive_rows_not_applicable(self, catalog_data):
        """Test inactive rows are not offered for a motion."""
        catalog_data["modifier_tables"]["grips"][0]["is_active"] = False

        tables = CatalogSchema.model_validate(catalog_data).axis_tables()

        assert tables["grips"].rows_applicable_to("CURL") == ["NEUTRAL"]


class TestUnknownMuscleDefault:
    """Test the unknown muscle default follows the scoring config."""

    @pytest.fixture
    def strict_config(self, tmp_path):
        path = tmp_path / "scoring_engine.yaml"
        path.write_text("scorability:\n  unknown_is_scorable: false\n")
        ScoringConfigLoader.reset_instance()
        ScoringConfigLoader(path)
        yield
        ScoringConfigLoader.reset_instance()

    def test_bundled_config_treats_unknown_as_scorable(self, catalog):
        """Test the bundled config keeps unknown muscles."""
        assert catalog.scorability.unknown_is_scorable is True

    def test_loaded_config_is_the_default(self, strict_config, catalog_data):
        """Test a loaded config with unknown_is_scorable=false drops unknown deltas."""
        catalog_data["modifier_tables"]["stances"][0]["delta_rules"]["SQUAT"]["GHOST"] = 1

        catalog = CatalogSnapshot.from_raw(catalog_data)

        assert catalog.scorability.unknown_is_scorable is False
        row = catalog.axis_table("stances").get("WIDE")
        assert row.delta_rules.entry_for("SQUAT").as_dict() == {"GLUTES": 1.0, "QUADS": -0.5}

    def test_explicit_argument_wins(self, strict_config, catalog_data):
        """Test an explicit unknown_is_scorable overrides the config."""
        catalog = CatalogSnapshot.from_raw(catalog_data, unknown_is_scorable=True)

        assert catalog.scorability.unknown_is_scorable is True
