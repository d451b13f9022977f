"""Catalog records consumed by the scoring engine.

Records are loaded read-only from the persistence layer (see
``motionlab.schemas.catalog`` for decoding raw rows). Flat score maps are
plain ``dict[str, float]`` keyed by muscle id.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from motionlab.scoring.constants import is_finite_number
from motionlab.scoring.exceptions import InvalidScoreError

logger = logging.getLogger(__name__)

FlatScores = dict[str, float]


@dataclass(frozen=True)
class MuscleRecord:
    """A muscle in the hierarchy.

    Attributes:
        id: Unique muscle id
        label: Display label, used for deterministic child ordering
        parent_ids: Recorded parents; only the first is the primary parent
        is_scorable: False for organisational-only muscles
    """

    id: str
    label: str = ""
    parent_ids: tuple[str, ...] = ()
    is_scorable: bool = True

    @property
    def primary_parent_id(self) -> str | None:
        return self.parent_ids[0] if self.parent_ids else None

    @property
    def display_label(self) -> str:
        return self.label or self.id


@dataclass(frozen=True)
class MotionRecord:
    """A primary motion (no parent) or a variation of one.

    Attributes:
        id: Unique motion id
        label: Display label
        parent_id: Parent motion id for variations
        base_targets: The motion's own explicit muscle scores
    """

    id: str
    label: str = ""
    parent_id: str | None = None
    base_targets: Mapping[str, float] = field(default_factory=dict)

    @property
    def is_primary(self) -> bool:
        return not self.parent_id


def validate_flat_scores(flat: Mapping[str, Any], field_name: str = "scores") -> FlatScores:
    """Validate an authored flat score map before it is written anywhere.

    Args:
        flat: Mapping of muscle id to score
        field_name: Name used in error details

    Returns:
        A new dict with float values.

    Raises:
        InvalidScoreError: If any value is non-numeric, boolean, NaN or infinite.
    """
    out: FlatScores = {}
    for muscle_id, value in flat.items():
        if not is_finite_number(value):
            raise InvalidScoreError(
                f"{field_name}: score for '{muscle_id}' must be a finite number, got {value!r}",
                details={"field": field_name, "muscle_id": muscle_id, "value": repr(value)},
            )
        out[str(muscle_id)] = float(value)
    return out


def clean_flat_scores(flat: Mapping[str, Any] | None, context: str = "") -> FlatScores:
    """Read-side counterpart of validate_flat_scores: drop bad values instead of raising."""
    if not flat or not isinstance(flat, Mapping):
        return {}
    out: FlatScores = {}
    for muscle_id, value in flat.items():
        if is_finite_number(value):
            out[str(muscle_id)] = float(value)
        else:
            logger.warning(f"Dropping non-numeric score {value!r} for '{muscle_id}' {context}".rstrip())
    return out
