"""Catalog snapshot: every index the engine needs, built once per load.

A snapshot is immutable. Its ``version`` is a content hash of the records,
so memoised compositions keyed by it are invalidated by any catalog change.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from motionlab.config.scoring_config_loader import get_scoring_config
from motionlab.core.logging import get_logger
from motionlab.scoring.combo_rules import ComboRule, rule_rank
from motionlab.scoring.delta_rules import ModifierAxisTable
from motionlab.scoring.exceptions import CatalogLoadError
from motionlab.scoring.hierarchy import MotionHierarchy, MuscleHierarchy
from motionlab.scoring.records import FlatScores, MotionRecord, MuscleRecord
from motionlab.scoring.scorability import ScorabilityFilter

logger = get_logger(__name__)


def compute_catalog_version(
    muscles: Iterable[MuscleRecord],
    motions: Iterable[MotionRecord],
    axis_tables: Mapping[str, ModifierAxisTable],
    combo_rules: Iterable[ComboRule] = (),
) -> str:
    """Content hash of a catalog, stable across record ordering."""
    key_data = {
        "muscles": sorted(
            [m.id, m.label, list(m.parent_ids), m.is_scorable] for m in muscles
        ),
        "motions": sorted(
            [m.id, m.label, m.parent_id or "", sorted(m.base_targets.items())] for m in motions
        ),
        "axis_tables": {
            key: {row.id: [row.is_active, row.delta_rules.to_raw()] for row in table}
            for key, table in axis_tables.items()
        },
        "combo_rules": sorted(
            (rule.to_dict() for rule in combo_rules), key=lambda r: r["id"]
        ),
    }
    digest = hashlib.sha256(json.dumps(key_data, sort_keys=True, default=str).encode()).hexdigest()
    return digest[:16]


def _configured_unknown_is_scorable(unknown_is_scorable: bool | None) -> bool:
    if unknown_is_scorable is None:
        return get_scoring_config().scorability.unknown_is_scorable
    return unknown_is_scorable


class CatalogSnapshot:
    """Muscle and motion hierarchies, modifier axis tables and combo rules.

    ``unknown_is_scorable`` defaults to the ``scorability`` section of the
    scoring engine config.

    Example:
        >>> catalog = CatalogSnapshot.from_raw({
        ...     "muscles": [{"id": "ARMS", "label": "Arms", "parent_ids": []}],
        ...     "motions": [{"id": "CURL", "label": "Curl", "base_targets": {"ARMS": 3}}],
        ...     "modifier_tables": {"grips": [{"id": "SUPINATED", "delta_rules": {}}]},
        ... })
        >>> catalog.base_targets_of("CURL")
        {'ARMS': 3.0}
    """

    def __init__(
        self,
        muscles: Iterable[MuscleRecord],
        motions: Iterable[MotionRecord],
        axis_tables: Mapping[str, ModifierAxisTable] | Iterable[ModifierAxisTable] = (),
        combo_rules: Iterable[ComboRule] = (),
        unknown_is_scorable: bool | None = None,
    ) -> None:
        muscle_records = list(muscles)
        motion_records = list(motions)
        if isinstance(axis_tables, Mapping):
            tables = dict(axis_tables)
        else:
            tables = {table.key: table for table in axis_tables}

        rules_by_motion: dict[str, list[ComboRule]] = {}
        for rule in combo_rules:
            rules_by_motion.setdefault(rule.motion_id, []).append(rule)

        self.muscles = MuscleHierarchy(muscle_records)
        self.motions = MotionHierarchy(motion_records)
        self.axis_tables: dict[str, ModifierAxisTable] = tables
        self.combo_rules: dict[str, tuple[ComboRule, ...]] = {
            motion_id: tuple(sorted(rules, key=rule_rank))
            for motion_id, rules in rules_by_motion.items()
        }
        self.scorability = ScorabilityFilter(
            self.muscles, _configured_unknown_is_scorable(unknown_is_scorable)
        )
        self.version = compute_catalog_version(
            muscle_records,
            motion_records,
            tables,
            (rule for rules in self.combo_rules.values() for rule in rules),
        )

        logger.info(
            "catalog_snapshot_built",
            version=self.version,
            muscles=len(self.muscles),
            motions=len(self.motions),
            axis_tables=len(self.axis_tables),
            combo_rules=sum(len(rules) for rules in self.combo_rules.values()),
        )

    @classmethod
    def from_raw(cls, data: Mapping[str, Any], unknown_is_scorable: bool | None = None) -> CatalogSnapshot:
        """Decode a raw catalog dump (``muscles``, ``motions``, ``modifier_tables``, ``combo_rules``).

        Non-scorable muscles are stripped from delta maps while the rows are
        decoded. Malformed combo rules are dropped with a warning.

        Raises:
            CatalogLoadError: If the dump does not match the catalog shapes.
        """
        from motionlab.schemas.catalog import CatalogSchema

        try:
            schema = CatalogSchema.model_validate(data)
        except ValidationError as e:
            raise CatalogLoadError(
                f"Invalid catalog data: {e.error_count()} error(s)",
                details={"errors": e.errors(include_url=False)},
            ) from e

        unknown_is_scorable = _configured_unknown_is_scorable(unknown_is_scorable)
        muscles = schema.muscle_records()
        scorability = ScorabilityFilter(MuscleHierarchy(muscles), unknown_is_scorable)
        return cls(
            muscles=muscles,
            motions=schema.motion_records(),
            axis_tables=schema.axis_tables(scorability),
            combo_rules=schema.combo_rule_records(),
            unknown_is_scorable=unknown_is_scorable,
        )

    def __repr__(self) -> str:
        return (
            f"CatalogSnapshot(version={self.version!r}, muscles={len(self.muscles)}, "
            f"motions={len(self.motions)}, axis_tables={sorted(self.axis_tables)!r})"
        )

    def motion(self, motion_id: str) -> MotionRecord | None:
        return self.motions.get(motion_id)

    def base_targets_of(self, motion_id: str) -> FlatScores:
        motion = self.motions.get(motion_id)
        return dict(motion.base_targets) if motion else {}

    def axis_table(self, table_key: str) -> ModifierAxisTable | None:
        return self.axis_tables.get(table_key)

    def combo_rules_for(self, motion_id: str) -> tuple[ComboRule, ...]:
        """Combo rules of a motion, best ranked first."""
        return self.combo_rules.get(motion_id, ())
