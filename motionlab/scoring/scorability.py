"""Scorability filtering.

Organisational muscles (``is_scorable=False``) group other muscles but never
carry a score of their own. Filtering is applied before an authored flat map
is persisted and again before deltas are composed, so stale data cannot give
such a muscle a nonzero term in a final score.

Muscles the catalog does not know yet are scorable by default, so newly added
muscles are not silently hidden before the catalog sync completes.
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping, TypeVar, Union

from motionlab.scoring.hierarchy import MuscleHierarchy
from motionlab.scoring.records import FlatScores, MuscleRecord

logger = logging.getLogger(__name__)

MuscleCatalog = Union[MuscleHierarchy, Mapping[str, MuscleRecord]]

R = TypeVar("R", bound=MuscleRecord)


def is_scorable(catalog: MuscleCatalog, muscle_id: str, unknown_is_scorable: bool = True) -> bool:
    """Whether a muscle may carry a score.

    Args:
        catalog: Muscle hierarchy or ``id -> MuscleRecord`` mapping
        muscle_id: Muscle to check
        unknown_is_scorable: Result for ids missing from the catalog

    Returns:
        False only for known muscles flagged ``is_scorable=False``
        (or unknown ids when ``unknown_is_scorable`` is off).
    """
    record = catalog.get(muscle_id)
    if record is None:
        return unknown_is_scorable
    return record.is_scorable is not False


def filter_scorable(
    flat: Mapping[str, float], catalog: MuscleCatalog, unknown_is_scorable: bool = True
) -> FlatScores:
    """Return a new map without the entries of non-scorable muscles."""
    out: FlatScores = {}
    for muscle_id, score in flat.items():
        if is_scorable(catalog, muscle_id, unknown_is_scorable):
            out[muscle_id] = score
        else:
            logger.debug(f"Filtered non-scorable muscle '{muscle_id}'")
    return out


def scorable_muscles(records: Iterable[R]) -> list[R]:
    """Candidate list for "add muscle" pickers: scorable records only."""
    return [r for r in records if r.is_scorable is not False]


class ScorabilityFilter:
    """Scorability predicate and filters bound to one muscle catalog.

    Example:
        >>> scorability = ScorabilityFilter(hierarchy)
        >>> scorability.filter({"ARMS": 1.0, "BICEPS": 2.0})
        {'BICEPS': 2.0}
    """

    def __init__(self, catalog: MuscleCatalog, unknown_is_scorable: bool = True) -> None:
        self._catalog = catalog
        self._unknown_is_scorable = unknown_is_scorable

    @property
    def unknown_is_scorable(self) -> bool:
        return self._unknown_is_scorable

    def is_scorable(self, muscle_id: str) -> bool:
        return is_scorable(self._catalog, muscle_id, self._unknown_is_scorable)

    def filter(self, flat: Mapping[str, float]) -> FlatScores:
        return filter_scorable(flat, self._catalog, self._unknown_is_scorable)

    def candidates(self, muscle_ids: Iterable[str]) -> list[str]:
        """Keep only scorable ids from a candidate list, preserving order."""
        return [muscle_id for muscle_id in muscle_ids if self.is_scorable(muscle_id)]

    def non_scorable_ids(self, muscle_ids: Iterable[str]) -> list[str]:
        return [muscle_id for muscle_id in muscle_ids if not self.is_scorable(muscle_id)]
