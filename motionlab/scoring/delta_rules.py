"""Per-axis delta rules.

Each modifier axis (grips, stance widths, motion paths, ...) is a table of
rows. Every row carries ``delta_rules``: for each motion id, either a flat
map of additive muscle deltas or the ``"inherit"`` sentinel.

The raw shape is decoded once, at the store boundary, into a three-state
tagged variant:

- ``NoOverride``: the row says nothing for this motion (absent entry)
- ``Explicit(deltas)``: a concrete delta map, possibly empty ("no effect")
- ``Inherit``: defer to the parent motion's entry

Resolution logic (see ``inheritance.py``) only ever sees these variants.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Union

from motionlab.scoring.constants import DeltaTokens, is_finite_number
from motionlab.scoring.exceptions import DeltaRuleError, InvalidScoreError
from motionlab.scoring.records import FlatScores
from motionlab.scoring.scorability import ScorabilityFilter

logger = logging.getLogger(__name__)


class DeltaEntryKind(str, Enum):
    """Discriminator for the DeltaEntry variants."""

    NO_OVERRIDE = "no_override"
    EXPLICIT = "explicit"
    INHERIT = "inherit"


@dataclass(frozen=True)
class NoOverride:
    """No entry for the motion on this row."""

    kind: DeltaEntryKind = field(default=DeltaEntryKind.NO_OVERRIDE, init=False)


@dataclass(frozen=True)
class Inherit:
    """Use the parent motion's entry."""

    kind: DeltaEntryKind = field(default=DeltaEntryKind.INHERIT, init=False)


@dataclass(frozen=True)
class Explicit:
    """A concrete delta map. An empty map means "explicitly no effect"."""

    deltas: Mapping[str, float] = field(default_factory=dict)
    kind: DeltaEntryKind = field(default=DeltaEntryKind.EXPLICIT, init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "deltas", MappingProxyType(dict(self.deltas)))

    def as_dict(self) -> FlatScores:
        return dict(self.deltas)


DeltaEntry = Union[NoOverride, Explicit, Inherit]

NO_OVERRIDE = NoOverride()
INHERIT = Inherit()


def _decode_deltas(
    motion_id: str,
    raw: Mapping[str, Any],
    scorability: ScorabilityFilter | None,
    strict: bool,
) -> FlatScores:
    deltas: FlatScores = {}
    for muscle_id, value in raw.items():
        if not is_finite_number(value):
            if strict:
                raise InvalidScoreError(
                    f"Delta for muscle '{muscle_id}' on motion '{motion_id}' must be a finite number, got {value!r}",
                    details={"motion_id": motion_id, "muscle_id": muscle_id, "value": repr(value)},
                )
            logger.warning(f"Dropping non-numeric delta {value!r} for '{muscle_id}' on motion '{motion_id}'")
            continue
        if scorability is not None and not scorability.is_scorable(muscle_id):
            logger.info(f"Stripping non-scorable muscle '{muscle_id}' from deltas of motion '{motion_id}'")
            continue
        deltas[str(muscle_id)] = float(value)
    return deltas


def decode_entry(
    motion_id: str,
    raw: Any,
    scorability: ScorabilityFilter | None = None,
    strict: bool = False,
) -> DeltaEntry:
    """Decode one raw ``delta_rules`` value.

    Args:
        motion_id: Motion the entry belongs to (for messages)
        raw: ``None``, ``"inherit"``, a delta map, or an already decoded entry
        scorability: When given, non-scorable muscles are stripped
        strict: Raise on bad values instead of dropping them

    Raises:
        DeltaRuleError: (strict) entry is neither a map nor "inherit".
        InvalidScoreError: (strict) a delta value is not a finite number.
    """
    if isinstance(raw, (NoOverride, Inherit)):
        return raw
    if isinstance(raw, Explicit):
        return Explicit(_decode_deltas(motion_id, raw.deltas, scorability, strict))
    if raw is None:
        return NO_OVERRIDE
    if DeltaTokens.is_inherit(raw):
        return INHERIT
    if isinstance(raw, Mapping):
        return Explicit(_decode_deltas(motion_id, raw, scorability, strict))

    if strict:
        raise DeltaRuleError(
            f"Invalid delta entry for motion '{motion_id}': expected a delta map or "
            f"'{DeltaTokens.INHERIT}', got {type(raw).__name__}",
            details={"motion_id": motion_id, "entry_type": type(raw).__name__},
        )
    logger.warning(f"Ignoring invalid delta entry of type {type(raw).__name__} for motion '{motion_id}'")
    return NO_OVERRIDE


def encode_entry(entry: DeltaEntry) -> FlatScores | str | None:
    """Raw persisted form of an entry (None means "omit the key")."""
    if isinstance(entry, Explicit):
        return entry.as_dict()
    if isinstance(entry, Inherit):
        return DeltaTokens.INHERIT
    return None


class DeltaRuleStore:
    """One modifier row's ``motion id -> DeltaEntry`` map.

    Stores are immutable; ``set_entry`` and ``without`` return new stores.

    Example:
        >>> store = DeltaRuleStore.from_raw({
        ...     "SQUAT": {"QUADS": 0.5, "GLUTES": -0.25},
        ...     "SQUAT_HIGH_BAR": "inherit",
        ... })
        >>> store.entry_for("SQUAT_HIGH_BAR")
        Inherit(kind=<DeltaEntryKind.INHERIT: 'inherit'>)
        >>> store.entry_for("DEADLIFT")
        NoOverride(kind=<DeltaEntryKind.NO_OVERRIDE: 'no_override'>)
    """

    def __init__(self, entries: Mapping[str, DeltaEntry] | None = None) -> None:
        self._entries: dict[str, DeltaEntry] = {
            motion_id: entry
            for motion_id, entry in (entries or {}).items()
            if not isinstance(entry, NoOverride)
        }

    @classmethod
    def from_raw(
        cls,
        raw: Any,
        scorability: ScorabilityFilter | None = None,
        strict: bool = False,
    ) -> DeltaRuleStore:
        """Decode a persisted ``delta_rules`` value.

        Accepts a mapping, a JSON-encoded mapping, ``None`` or an empty list
        (legacy rows stored ``[]`` for "no rules").
        """
        if raw is None:
            return cls()
        if isinstance(raw, str):
            try:
                raw = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError as e:
                if strict:
                    raise DeltaRuleError(f"delta_rules is not valid JSON: {e}") from e
                logger.warning(f"Ignoring unparseable delta_rules: {e}")
                return cls()
        if isinstance(raw, list) and not raw:
            return cls()
        if not isinstance(raw, Mapping):
            if strict:
                raise DeltaRuleError(
                    f"delta_rules must be a mapping, got {type(raw).__name__}",
                    details={"entry_type": type(raw).__name__},
                )
            logger.warning(f"Ignoring delta_rules of type {type(raw).__name__}")
            return cls()

        return cls({
            str(motion_id): decode_entry(str(motion_id), value, scorability, strict)
            for motion_id, value in raw.items()
        })

    def __contains__(self, motion_id: object) -> bool:
        return motion_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeltaRuleStore):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"DeltaRuleStore({self._entries!r})"

    def items(self) -> Iterator[tuple[str, DeltaEntry]]:
        return iter(self._entries.items())

    def entry_for(self, motion_id: str) -> DeltaEntry:
        """The motion's entry; ``NoOverride`` when the row has none."""
        return self._entries.get(motion_id, NO_OVERRIDE)

    def set_entry(
        self,
        motion_id: str,
        entry: Any,
        scorability: ScorabilityFilter | None = None,
    ) -> DeltaRuleStore:
        """Write boundary: validate, strip non-scorable muscles, return a new store.

        Raises:
            DeltaRuleError: Entry is neither a map nor "inherit".
            InvalidScoreError: A delta value is not a finite number.
        """
        decoded = decode_entry(motion_id, entry, scorability, strict=True)
        entries = dict(self._entries)
        if isinstance(decoded, NoOverride):
            entries.pop(motion_id, None)
        else:
            entries[motion_id] = decoded
        return DeltaRuleStore(entries)

    def without(self, motion_id: str) -> DeltaRuleStore:
        return self.set_entry(motion_id, NO_OVERRIDE)

    def to_raw(self) -> dict[str, Any]:
        """Persisted shape: ``{motion_id: {muscle: delta} | "inherit"}``."""
        return {motion_id: encode_entry(entry) for motion_id, entry in self._entries.items()}


@dataclass(frozen=True)
class ModifierRow:
    """A row of a modifier axis table (e.g. one grip)."""

    id: str
    label: str = ""
    delta_rules: DeltaRuleStore = field(default_factory=DeltaRuleStore)
    is_active: bool = True


@dataclass(frozen=True)
class AxisSelection:
    """A selected row on one modifier axis."""

    table_key: str
    row_id: str

    @classmethod
    def parse(cls, token: str) -> AxisSelection:
        """Parse ``"table_key:row_id"``."""
        table_key, sep, row_id = token.partition(":")
        if not sep or not table_key or not row_id:
            raise ValueError(f"Axis selection must look like 'table:row', got {token!r}")
        return cls(table_key.strip(), row_id.strip())

    def __str__(self) -> str:
        return f"{self.table_key}:{self.row_id}"


class ModifierAxisTable:
    """A named modifier axis and its rows."""

    def __init__(self, key: str, rows: Mapping[str, ModifierRow] | list[ModifierRow] | None = None) -> None:
        self.key = key
        if isinstance(rows, Mapping):
            self._rows = dict(rows)
        else:
            self._rows = {row.id: row for row in rows or []}

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ModifierRow]:
        return iter(self._rows.values())

    def __repr__(self) -> str:
        return f"ModifierAxisTable({self.key!r}, rows={sorted(self._rows)!r})"

    def get(self, row_id: str) -> ModifierRow | None:
        return self._rows.get(row_id)

    def rows_applicable_to(self, motion_id: str) -> list[str]:
        """Active row ids that carry any entry (explicit or inherit) for the motion."""
        return sorted(
            row.id for row in self._rows.values() if row.is_active and motion_id in row.delta_rules
        )
