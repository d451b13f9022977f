"""Unit tests for delta rule decoding and the per-row store.

Covers:
- Three-state decoding (absent / explicit / inherit) at the store boundary
- Lenient read-side decoding vs strict write-side validation
- Scorability stripping on store
- Axis selections and modifier tables
"""

import json
import math

import pytest

from motionlab.scoring.delta_rules import (
    INHERIT,
    NO_OVERRIDE,
    AxisSelection,
    DeltaEntryKind,
    DeltaRuleStore,
    Explicit,
    Inherit,
    ModifierAxisTable,
    ModifierRow,
    NoOverride,
    decode_entry,
    encode_entry,
)
from motionlab.scoring.exceptions import DeltaRuleError, InvalidScoreError, ValidationException
from motionlab.scoring.scorability import ScorabilityFilter


class TestDecodeEntry:
    """Raw value -> DeltaEntry."""

    def test_none_is_no_override(self):
        """Test null decodes to no override."""
        assert decode_entry("M", None) is NO_OVERRIDE

    @pytest.mark.parametrize("raw", ["inherit", "INHERIT", " Inherit "])
    def test_inherit_token(self, raw):
        """Test the inherit token in any case and padding."""
        entry = decode_entry("M", raw)

        assert isinstance(entry, Inherit)
        assert entry.kind is DeltaEntryKind.INHERIT

    def test_mapping_is_explicit(self):
        """Test a delta map decodes to an explicit entry."""
        entry = decode_entry("M", {"QUADS": 1, "GLUTES": -0.5})

        assert isinstance(entry, Explicit)
        assert entry.as_dict() == {"QUADS": 1.0, "GLUTES": -0.5}

    def test_empty_mapping_is_explicit_no_effect(self):
        """Test an empty map is explicit, not absent."""
        entry = decode_entry("M", {})

        assert isinstance(entry, Explicit)
        assert entry.as_dict() == {}

    def test_lenient_drops_bad_values(self):
        """Test read-side decoding drops bad values."""
        entry = decode_entry("M", {"QUADS": "x", "GLUTES": math.nan, "ABS": True, "HAMSTRINGS": 2})

        assert entry.as_dict() == {"HAMSTRINGS": 2.0}

    def test_strict_rejects_bad_values(self):
        """Test write-side decoding raises on bad values."""
        with pytest.raises(InvalidScoreError) as exc_info:
            decode_entry("M", {"QUADS": math.inf}, strict=True)

        assert exc_info.value.details["muscle_id"] == "QUADS"
        assert isinstance(exc_info.value, ValidationException)

    def test_invalid_entry_type(self):
        """Test entries that are neither a map nor inherit."""
        assert decode_entry("M", [1, 2]) is NO_OVERRIDE
        assert decode_entry("M", "sometimes") is NO_OVERRIDE

        with pytest.raises(DeltaRuleError):
            decode_entry("M", 42, strict=True)

    def test_scorability_strips_muscles(self, muscle_hierarchy):
        """Test non-scorable muscles are stripped while decoding."""
        entry = decode_entry("M", {"CORE": 2, "QUADS": 1}, scorability=ScorabilityFilter(muscle_hierarchy))

        assert entry.as_dict() == {"QUADS": 1.0}

    def test_explicit_deltas_are_read_only(self):
        """Test explicit deltas cannot be mutated."""
        entry = Explicit({"QUADS": 1.0})

        with pytest.raises(TypeError):
            entry.deltas["QUADS"] = 2.0

    def test_encode_entry(self):
        """Test encoding entries back to raw values."""
        assert encode_entry(Explicit({"QUADS": 1.0})) == {"QUADS": 1.0}
        assert encode_entry(INHERIT) == "inherit"
        assert encode_entry(NO_OVERRIDE) is None


class TestDeltaRuleStore:
    """Store decoding, lookup and write boundary."""

    @pytest.fixture
    def store(self):
        return DeltaRuleStore.from_raw({
            "SQUAT": {"QUADS": 0.5, "GLUTES": -0.25},
            "SQUAT_PAUSE": "inherit",
            "SQUAT_TEMPO": {},
            "DEADLIFT": None,
        })

    def test_entry_for(self, store):
        """Test lookups for stored and missing motions."""
        assert isinstance(store.entry_for("SQUAT"), Explicit)
        assert isinstance(store.entry_for("SQUAT_PAUSE"), Inherit)
        assert isinstance(store.entry_for("SQUAT_TEMPO"), Explicit)
        assert isinstance(store.entry_for("DEADLIFT"), NoOverride)
        assert isinstance(store.entry_for("GHOST"), NoOverride)

    def test_absent_entries_are_not_stored(self, store):
        """Test null entries are not kept."""
        assert "DEADLIFT" not in store
        assert "SQUAT_TEMPO" in store
        assert len(store) == 3
        assert sorted(store) == ["SQUAT", "SQUAT_PAUSE", "SQUAT_TEMPO"]

    def test_to_raw(self, store):
        """Test the raw form of a store."""
        assert store.to_raw() == {
            "SQUAT": {"QUADS": 0.5, "GLUTES": -0.25},
            "SQUAT_PAUSE": "inherit",
            "SQUAT_TEMPO": {},
        }
        assert DeltaRuleStore.from_raw(store.to_raw()).to_raw() == store.to_raw()

    @pytest.mark.parametrize("raw", [None, [], "", "[]", "{}"])
    def test_empty_raw_values(self, raw):
        """Test the accepted empty encodings."""
        assert len(DeltaRuleStore.from_raw(raw)) == 0

    def test_json_string(self):
        """Test a JSON-encoded delta_rules value."""
        store = DeltaRuleStore.from_raw(json.dumps({"SQUAT": {"QUADS": 1}}))

        assert store.entry_for("SQUAT").as_dict() == {"QUADS": 1.0}

    def test_invalid_json(self):
        """Test broken JSON, lenient and strict."""
        assert len(DeltaRuleStore.from_raw("{not json")) == 0

        with pytest.raises(DeltaRuleError):
            DeltaRuleStore.from_raw("{not json", strict=True)

    def test_non_mapping_raw(self):
        """Test non-object delta_rules, lenient and strict."""
        assert len(DeltaRuleStore.from_raw(5)) == 0

        with pytest.raises(DeltaRuleError):
            DeltaRuleStore.from_raw([{"SQUAT": {}}], strict=True)

    def test_set_entry_returns_new_store(self, store):
        """Test set_entry leaves the original store untouched."""
        updated = store.set_entry("DEADLIFT", {"HAMSTRINGS": 1})

        assert "DEADLIFT" not in store
        assert updated.entry_for("DEADLIFT").as_dict() == {"HAMSTRINGS": 1.0}

    def test_set_entry_none_removes(self, store):
        """Test setting None removes an entry."""
        updated = store.set_entry("SQUAT", None)

        assert "SQUAT" not in updated
        assert "SQUAT" in store
        assert "SQUAT_PAUSE" not in store.without("SQUAT_PAUSE")

    def test_set_entry_is_strict(self, store):
        """Test set_entry validates its input."""
        with pytest.raises(InvalidScoreError):
            store.set_entry("SQUAT", {"QUADS": "lots"})

        with pytest.raises(DeltaRuleError):
            store.set_entry("SQUAT", ["QUADS"])

    def test_set_entry_strips_non_scorable(self, store, muscle_hierarchy):
        """Test set_entry strips non-scorable muscles."""
        updated = store.set_entry(
            "SQUAT", {"CORE": 1, "QUADS": 2}, scorability=ScorabilityFilter(muscle_hierarchy)
        )

        assert updated.to_raw()["SQUAT"] == {"QUADS": 2.0}

    def test_from_raw_with_scorability(self, muscle_hierarchy):
        """Test from_raw strips non-scorable muscles."""
        store = DeltaRuleStore.from_raw(
            {"SQUAT": {"CORE": 2, "ABS": 1}}, scorability=ScorabilityFilter(muscle_hierarchy)
        )

        assert store.entry_for("SQUAT").as_dict() == {"ABS": 1.0}


class TestAxisSelection:
    """Test AxisSelection parsing."""

    def test_parse(self):
        """Test parsing a table:row token."""
        selection = AxisSelection.parse("grips:WIDE")

        assert selection == AxisSelection("grips", "WIDE")
        assert str(selection) == "grips:WIDE"

    @pytest.mark.parametrize("token", ["grips", ":WIDE", "grips:", ""])
    def test_parse_malformed(self, token):
        """Test malformed tokens raise ValueError."""
        with pytest.raises(ValueError):
            AxisSelection.parse(token)

    def test_hashable(self):
        """Test equal selections hash alike."""
        assert len({AxisSelection("a", "b"), AxisSelection("a", "b")}) == 1


class TestModifierAxisTable:
    """Test ModifierAxisTable lookups."""

    @pytest.fixture
    def table(self):
        """Two stance rows, one with an inherit entry."""
        return ModifierAxisTable("stances", [
            ModifierRow("WIDE", "Wide", DeltaRuleStore.from_raw({"SQUAT": {"GLUTES": 1}, "SQUAT_PAUSE": "inherit"})),
            ModifierRow("NARROW", "Narrow", DeltaRuleStore.from_raw({"SQUAT": {"QUADS": 1}})),
        ])

    def test_get(self, table):
        """Test row lookup, membership and length."""
        assert table.get("WIDE").label == "Wide"
        assert table.get("GHOST") is None
        assert "NARROW" in table
        assert len(table) == 2

    def test_rows_applicable_to(self, table):
        """Test rows carrying an entry for a motion."""
        assert table.rows_applicable_to("SQUAT") == ["NARROW", "WIDE"]
        assert table.rows_applicable_to("SQUAT_PAUSE") == ["WIDE"]
        assert table.rows_applicable_to("CURL") == []

    def test_inactive_rows_are_not_applicable(self, table):
        """Test an inactive row is never offered."""
        table = ModifierAxisTable("stances", [
            *table,
            ModifierRow("SUMO", "Sumo", DeltaRuleStore.from_raw({"SQUAT": {"GLUTES": 2}}), is_active=False),
        ])

        assert table.rows_applicable_to("SQUAT") == ["NARROW", "WIDE"]
        assert not table.get("SUMO").is_active
