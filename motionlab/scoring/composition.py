"""Score composition: base targets plus selected modifier deltas.

For one motion and a set of axis selections (one row per modifier table):

1. combo rules are matched against the selection set; a SWITCH_MOTION
   winner replaces the motion that is scored;
2. the motion's base targets are filtered for scorability and built into a
   ScoreTree;
3. every selection is resolved through the motion ancestry, REPLACE_DELTA
   overrides are swapped in, and the deltas are filtered for scorability
   and gathered per muscle;
4. all gathered deltas are added in one exactly rounded sum per muscle, so
   the order of the selections cannot change any score;
5. totals are derived for display, ``final_scores`` is the flat export.

Results are memoised per engine by ``(catalog version, motion, selections)``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Union

from motionlab.config.scoring_config_loader import ScoringEngineConfig, get_scoring_config
from motionlab.config.settings import get_settings
from motionlab.core.logging import get_logger
from motionlab.scoring.catalog import CatalogSnapshot
from motionlab.scoring.combo_rules import (
    ComboActionType,
    RuleFired,
    apply_delta_overrides,
    resolve_combo_rules,
)
from motionlab.scoring.delta_rules import AxisSelection
from motionlab.scoring.inheritance import InheritanceResolver, ResolvedDelta
from motionlab.scoring.records import FlatScores, clean_flat_scores
from motionlab.scoring.scorability import ScorabilityFilter
from motionlab.scoring.score_tree import ScoreTotals, ScoreTree

logger = get_logger(__name__)

SelectionLike = Union[AxisSelection, tuple[str, str], str]


def normalize_selections(selections: Iterable[SelectionLike]) -> tuple[AxisSelection, ...]:
    """Deduplicate and sort selections into a canonical tuple.

    Accepts AxisSelection instances, ``(table_key, row_id)`` pairs or
    ``"table_key:row_id"`` strings.

    Raises:
        ValueError: If a selection has none of those shapes.
    """
    normalized: set[AxisSelection] = set()
    for selection in selections:
        if isinstance(selection, AxisSelection):
            normalized.add(selection)
        elif isinstance(selection, str):
            normalized.add(AxisSelection.parse(selection))
        elif isinstance(selection, tuple) and len(selection) == 2:
            normalized.add(AxisSelection(str(selection[0]), str(selection[1])))
        else:
            raise ValueError(f"Unsupported axis selection: {selection!r}")
    return tuple(sorted(normalized, key=lambda s: (s.table_key, s.row_id)))


@dataclass(frozen=True)
class CompositionResult:
    """Outcome of composing one motion's scores.

    Attributes:
        motion_id: Motion that was requested
        effective_motion_id: Motion actually scored (differs after a SWITCH_MOTION rule)
        selections: Canonical (deduplicated, sorted) axis selections
        base_scores: Scorable base targets the tree was built from
        resolved_deltas: One resolution per selection that exists in the catalog
        applied_deltas: Summed delta per muscle, as applied to the tree
        tree: Final explicit score tree
        totals: Derived totals view of ``tree``
        catalog_version: Version of the catalog snapshot used
        rules_fired: Combo rules that applied, in ranking order
    """

    motion_id: str
    selections: tuple[AxisSelection, ...] = ()
    base_scores: Mapping[str, float] = field(default_factory=dict)
    resolved_deltas: tuple[ResolvedDelta, ...] = ()
    applied_deltas: Mapping[str, float] = field(default_factory=dict)
    tree: ScoreTree = field(default_factory=ScoreTree)
    totals: ScoreTotals = field(default_factory=ScoreTotals)
    catalog_version: str | None = None
    effective_motion_id: str | None = None
    rules_fired: tuple[RuleFired, ...] = ()

    def __post_init__(self) -> None:
        if self.effective_motion_id is None:
            object.__setattr__(self, "effective_motion_id", self.motion_id)
        object.__setattr__(self, "base_scores", MappingProxyType(dict(self.base_scores)))
        object.__setattr__(self, "applied_deltas", MappingProxyType(dict(self.applied_deltas)))

    @property
    def final_scores(self) -> FlatScores:
        """Flat explicit scores after deltas (the export shape)."""
        return self.tree.flatten()

    @property
    def total_scores(self) -> FlatScores:
        """Flat derived totals for every node in the tree."""
        return self.totals.as_flat()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "motion_id": self.motion_id,
            "effective_motion_id": self.effective_motion_id,
            "catalog_version": self.catalog_version,
            "selections": [str(s) for s in self.selections],
            "base_scores": dict(self.base_scores),
            "applied_deltas": dict(self.applied_deltas),
            "resolved_deltas": [r.to_dict() for r in self.resolved_deltas],
            "rules_fired": [r.to_dict() for r in self.rules_fired],
            "final_scores": self.final_scores,
            "total_scores": self.total_scores,
            "tree": self.tree.to_dict(),
        }


class ScoreCompositionEngine:
    """Compose final muscle scores for motions of one catalog snapshot.

    Example:
        >>> engine = ScoreCompositionEngine(catalog)
        >>> result = engine.compose_scores("SQUAT_PAUSE", ["grips:WIDE", "stances:NARROW"])
        >>> result.final_scores
        {'GLUTES': 2.5, 'QUADS': 6.0}
    """

    def __init__(
        self,
        catalog: CatalogSnapshot,
        config: ScoringEngineConfig | None = None,
        cache_size: int | None = None,
    ) -> None:
        self._catalog = catalog
        self._config = config or get_scoring_config()
        self._resolver = InheritanceResolver(catalog.motions, self._config.inheritance.max_depth)
        self._scorability = ScorabilityFilter(catalog.muscles, self._config.scorability.unknown_is_scorable)
        if cache_size is None:
            cache_size = get_settings().composition_cache_size
        self._cached_compose = lru_cache(maxsize=cache_size)(self._compose_from_catalog)

    @property
    def catalog(self) -> CatalogSnapshot:
        return self._catalog

    @property
    def resolver(self) -> InheritanceResolver:
        return self._resolver

    @property
    def decimal_places(self) -> int:
        return self._config.totals.decimal_places

    def resolve_deltas(self, motion_id: str, selections: Iterable[SelectionLike] = ()) -> list[ResolvedDelta]:
        """Resolved deltas for every selection that exists in the catalog."""
        return self._resolver.resolve_all(
            motion_id, normalize_selections(selections), self._catalog.axis_tables
        )

    def compose_scores(
        self,
        motion_id: str,
        selections: Iterable[SelectionLike] = (),
        base_targets: Mapping[str, Any] | None = None,
    ) -> CompositionResult:
        """Compose base targets and the selected rows' deltas for a motion.

        Args:
            motion_id: Motion to score
            selections: Axis selections, at most one row per table expected
            base_targets: Override for the motion's stored base targets;
                results for an override are not memoised

        Returns:
            CompositionResult with the final tree, totals and provenance.
        """
        canonical = normalize_selections(selections)
        if base_targets is not None:
            return self._compose(motion_id, canonical, clean_flat_scores(base_targets, f"(motion '{motion_id}')"))
        return self._cached_compose(self._catalog.version, motion_id, canonical)

    def cache_info(self):
        return self._cached_compose.cache_info()

    def clear_cache(self) -> None:
        self._cached_compose.cache_clear()

    def _compose_from_catalog(
        self, catalog_version: str, motion_id: str, selections: tuple[AxisSelection, ...]
    ) -> CompositionResult:
        logger.debug(
            "composition_cache_miss",
            catalog_version=catalog_version,
            motion_id=motion_id,
            selections=[str(s) for s in selections],
        )
        if motion_id not in self._catalog.motions:
            logger.warning("composition_unknown_motion", motion_id=motion_id)
        return self._compose(motion_id, selections, None)

    def _compose(
        self, motion_id: str, selections: tuple[AxisSelection, ...], base_targets: FlatScores | None
    ) -> CompositionResult:
        hierarchy = self._catalog.muscles
        scorability = self._scorability

        combo = resolve_combo_rules(motion_id, selections, self._catalog.combo_rules_for(motion_id))
        effective = combo.effective_motion_id
        rules_fired = combo.rules_fired
        if effective not in self._catalog.motions and effective != motion_id:
            logger.warning("combo_switch_unknown_motion", motion_id=motion_id, proxy_motion_id=effective)
            effective = motion_id
            rules_fired = tuple(r for r in rules_fired if r.action_type is not ComboActionType.SWITCH_MOTION)
        if base_targets is None:
            base_targets = self._catalog.base_targets_of(effective)

        base_scores = scorability.filter(base_targets)
        tree = ScoreTree.build_from_flat(base_scores, hierarchy)

        resolved = self._resolver.resolve_all(effective, selections, self._catalog.axis_tables)
        resolved = apply_delta_overrides(resolved, combo.delta_overrides)
        gathered: dict[str, list[float]] = {}
        for item in resolved:
            for muscle_id, delta in scorability.filter(item.deltas).items():
                gathered.setdefault(muscle_id, []).append(delta)
        gathered = {muscle_id: gathered[muscle_id] for muscle_id in sorted(gathered)}

        tree = tree.apply_deltas(gathered, hierarchy)
        totals = tree.recompute_totals(self.decimal_places)

        return CompositionResult(
            motion_id=motion_id,
            selections=selections,
            base_scores=base_scores,
            resolved_deltas=tuple(resolved),
            applied_deltas={muscle_id: math.fsum(deltas) for muscle_id, deltas in gathered.items()},
            tree=tree,
            totals=totals,
            catalog_version=self._catalog.version,
            effective_motion_id=effective,
            rules_fired=rules_fired,
        )


def compose_scores(
    catalog: CatalogSnapshot,
    motion_id: str,
    selections: Iterable[SelectionLike] = (),
    base_targets: Mapping[str, Any] | None = None,
    config: ScoringEngineConfig | None = None,
) -> CompositionResult:
    """One-shot composition without keeping an engine around."""
    engine = ScoreCompositionEngine(catalog, config=config, cache_size=0)
    return engine.compose_scores(motion_id, selections, base_targets)
