"""Muscle grouping helpers.

A motion is grouped under one "grouping muscle": a parent muscle whose
calculated score clears a threshold. The calculated score of a muscle is
its explicit flat score when it has one, else the sum of its children's
calculated scores.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from motionlab.scoring.constants import Grouping, is_finite_number
from motionlab.scoring.hierarchy import MuscleHierarchy
from motionlab.scoring.records import FlatScores, MuscleRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MuscleOption:
    """One selectable grouping muscle with its display path."""

    id: str
    label: str
    path: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "label": self.label, "path": self.path}


@dataclass(frozen=True)
class MuscleOptionGroup:
    """Selectable muscles under one root muscle."""

    primary: MuscleRecord
    options: tuple[MuscleOption, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary": {"id": self.primary.id, "label": self.primary.display_label},
            "options": [option.to_dict() for option in self.options],
        }


def as_flat_targets(raw: Any) -> FlatScores:
    """Keep the numeric entries of a raw targets value; anything else is empty."""
    if not isinstance(raw, Mapping):
        return {}
    return {str(k): float(v) for k, v in raw.items() if is_finite_number(v)}


def muscle_with_max_score(flat: Mapping[str, float]) -> str | None:
    """Id with the highest score; the first one wins ties. None when empty."""
    best_id: str | None = None
    best_score = -math.inf
    for muscle_id, score in flat.items():
        if is_finite_number(score) and score > best_score:
            best_id, best_score = muscle_id, score
    return best_id


def calculated_score(
    muscle_id: str,
    flat: Mapping[str, float],
    hierarchy: MuscleHierarchy,
    cache: dict[str, float] | None = None,
) -> float:
    """Explicit score if set, else the sum of the children's calculated scores."""
    cache = {} if cache is None else cache
    return _calculated(muscle_id, flat, hierarchy, cache, set())


def _calculated(
    muscle_id: str,
    flat: Mapping[str, float],
    hierarchy: MuscleHierarchy,
    cache: dict[str, float],
    in_progress: set[str],
) -> float:
    if muscle_id in cache:
        return cache[muscle_id]
    explicit = flat.get(muscle_id)
    if is_finite_number(explicit):
        cache[muscle_id] = float(explicit)
        return cache[muscle_id]
    if muscle_id in in_progress:
        logger.warning(f"Muscle parent cycle reached '{muscle_id}' while summing children")
        return 0.0

    in_progress.add(muscle_id)
    total = math.fsum(
        _calculated(child_id, flat, hierarchy, cache, in_progress)
        for child_id in hierarchy.child_ids_of(muscle_id)
    )
    in_progress.discard(muscle_id)
    cache[muscle_id] = total
    return total


def selectable_muscle_ids(
    flat: Mapping[str, float],
    hierarchy: MuscleHierarchy,
    min_score: float = Grouping.MIN_SELECTABLE_SCORE,
) -> set[str]:
    """Parent muscles whose calculated score is at least ``min_score``.

    Leaf muscles never qualify as grouping muscles.
    """
    cache: dict[str, float] = {}
    return {
        record.id
        for record in hierarchy
        if hierarchy.is_parent(record.id) and calculated_score(record.id, flat, hierarchy, cache) >= min_score
    }


def muscle_with_max_calculated_score(
    flat: Mapping[str, float],
    hierarchy: MuscleHierarchy,
    selectable_ids: Iterable[str],
) -> str | None:
    """Among ``selectable_ids``, the one with the highest calculated score.

    Ties go to the id that sorts first.
    """
    cache: dict[str, float] = {}
    best_id: str | None = None
    best_score = -math.inf
    for muscle_id in sorted(selectable_ids):
        score = calculated_score(muscle_id, flat, hierarchy, cache)
        if score > best_score:
            best_id, best_score = muscle_id, score
    return best_id


def default_grouping_muscle(
    flat: Mapping[str, float],
    hierarchy: MuscleHierarchy,
    min_score: float = Grouping.MIN_SELECTABLE_SCORE,
) -> str | None:
    """The grouping muscle a motion defaults to when none is chosen."""
    return muscle_with_max_calculated_score(flat, hierarchy, selectable_muscle_ids(flat, hierarchy, min_score))


def build_option_groups(selectable_ids: Iterable[str], hierarchy: MuscleHierarchy) -> list[MuscleOptionGroup]:
    """Dropdown groups: each root with every selectable muscle beneath it.

    Option paths join labels from the root down, e.g. ``"Arms > Biceps"``.
    Roots without any selectable muscle are omitted.
    """
    selectable = set(selectable_ids)
    groups: list[MuscleOptionGroup] = []
    for root in hierarchy.roots():
        options: list[MuscleOption] = []
        stack: list[tuple[str, str]] = [(root.id, "")]
        seen: set[str] = set()
        while stack:
            muscle_id, prefix = stack.pop()
            if muscle_id in seen:
                continue
            seen.add(muscle_id)
            record = hierarchy.get(muscle_id)
            label = record.display_label if record else muscle_id
            path = f"{prefix}{Grouping.PATH_SEPARATOR}{label}" if prefix else label
            if muscle_id in selectable:
                options.append(MuscleOption(muscle_id, label, path))
            stack.extend((child_id, path) for child_id in reversed(hierarchy.child_ids_of(muscle_id)))
        if options:
            groups.append(MuscleOptionGroup(primary=root, options=tuple(options)))
    return groups
