"""Pydantic schemas for the raw catalog shapes exchanged with the persistence layer.

Shapes:
    muscle:   { id, label, parent_ids: string[], is_scorable?: boolean }
    motion:   { id, label, parent_id?: string, base_targets: {muscle: number} }
    modifier: { id, label, delta_rules: {motion: {muscle: number} | "inherit"}, is_active? }
    combo:    { id, motion_id, action_type, trigger_conditions, action_payload, priority?, is_active? }

Read-side decoding is lenient: bad score values are dropped with a warning
rather than rejected, since catalog data may be mid-edit.
"""
from __future__ import annotations

import json
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from motionlab.scoring.combo_rules import ComboRule, decode_combo_rule
from motionlab.scoring.delta_rules import DeltaRuleStore, ModifierAxisTable, ModifierRow
from motionlab.scoring.records import MotionRecord, MuscleRecord, clean_flat_scores
from motionlab.scoring.scorability import ScorabilityFilter


class MuscleSchema(BaseModel):
    """Raw muscle row."""

    model_config = ConfigDict(extra="ignore")

    id: str
    label: str = ""
    parent_ids: list[str] = Field(default_factory=list)
    is_scorable: bool = True

    @field_validator("parent_ids", mode="before")
    @classmethod
    def parse_parent_ids(cls, value: Any) -> list[str]:
        """Accept a list, a JSON-encoded list, or nothing."""
        if value is None:
            return []
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return []
            return decoded if isinstance(decoded, list) else []
        return value

    @field_validator("is_scorable", mode="before")
    @classmethod
    def default_scorable(cls, value: Any) -> Any:
        return True if value is None else value

    def to_record(self) -> MuscleRecord:
        return MuscleRecord(
            id=self.id,
            label=self.label,
            parent_ids=tuple(p for p in self.parent_ids if p),
            is_scorable=self.is_scorable,
        )


class MotionSchema(BaseModel):
    """Raw motion row. ``muscle_targets`` is accepted as an alias of ``base_targets``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    label: str = ""
    parent_id: str | None = None
    base_targets: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("base_targets", "muscle_targets"),
    )

    @field_validator("parent_id", mode="before")
    @classmethod
    def blank_parent_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("base_targets", mode="before")
    @classmethod
    def non_mapping_targets_are_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    def to_record(self) -> MotionRecord:
        return MotionRecord(
            id=self.id,
            label=self.label,
            parent_id=self.parent_id,
            base_targets=clean_flat_scores(self.base_targets, context=f"(motion '{self.id}')"),
        )


class ModifierRowSchema(BaseModel):
    """Raw modifier row; ``delta_rules`` is decoded by DeltaRuleStore."""

    model_config = ConfigDict(extra="ignore")

    id: str
    label: str = ""
    delta_rules: Any = None
    is_active: bool = True

    @field_validator("is_active", mode="before")
    @classmethod
    def default_active(cls, value: Any) -> Any:
        return True if value is None else value

    def to_row(self, scorability: ScorabilityFilter | None = None) -> ModifierRow:
        return ModifierRow(
            id=self.id,
            label=self.label,
            delta_rules=DeltaRuleStore.from_raw(self.delta_rules, scorability=scorability),
            is_active=self.is_active,
        )


class ComboRuleSchema(BaseModel):
    """Raw combo rule row.

    ``trigger_conditions_json``/``action_payload_json`` are accepted as
    aliases, and either field may hold a JSON string. Structural problems are
    not rejected here: ``to_rule`` drops a malformed rule with a warning.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    motion_id: str
    label: str = ""
    action_type: Any = None
    trigger_conditions: Any = Field(
        default=None,
        validation_alias=AliasChoices("trigger_conditions", "trigger_conditions_json"),
    )
    action_payload: Any = Field(
        default=None,
        validation_alias=AliasChoices("action_payload", "action_payload_json"),
    )
    priority: int = 0
    is_active: bool = True

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("is_active", mode="before")
    @classmethod
    def default_active(cls, value: Any) -> Any:
        return True if value is None else value

    def to_rule(self) -> ComboRule | None:
        return decode_combo_rule(
            rule_id=self.id,
            motion_id=self.motion_id,
            action_type=self.action_type,
            conditions=self.trigger_conditions,
            payload=self.action_payload,
            label=self.label,
            priority=self.priority,
            is_active=self.is_active,
        )


class CatalogSchema(BaseModel):
    """A full catalog dump: muscles, motions, modifier axis tables and combo rules."""

    model_config = ConfigDict(extra="ignore")

    muscles: list[MuscleSchema] = Field(default_factory=list)
    motions: list[MotionSchema] = Field(default_factory=list)
    modifier_tables: dict[str, list[ModifierRowSchema]] = Field(default_factory=dict)
    combo_rules: list[ComboRuleSchema] = Field(default_factory=list)

    def combo_rule_records(self) -> list[ComboRule]:
        rules = (schema.to_rule() for schema in self.combo_rules)
        return [rule for rule in rules if rule is not None]

    def muscle_records(self) -> list[MuscleRecord]:
        return [m.to_record() for m in self.muscles]

    def motion_records(self) -> list[MotionRecord]:
        return [m.to_record() for m in self.motions]

    def axis_tables(self, scorability: ScorabilityFilter | None = None) -> dict[str, ModifierAxisTable]:
        return {
            key: ModifierAxisTable(key, [row.to_row(scorability) for row in rows])
            for key, rows in self.modifier_tables.items()
        }
