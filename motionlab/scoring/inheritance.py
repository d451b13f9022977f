"""Inheritance resolution of delta rules along the motion ancestry.

For a ``(row, motion)`` pair the resolver walks up one parent at a time:

1. an ``Explicit`` entry on the current motion wins and is returned verbatim;
2. ``Inherit`` or ``NoOverride`` moves on to the current motion's parent;
3. reaching a primary motion without a concrete entry yields no deltas;
4. a repeated motion id (malformed parentage) or an over-long walk stops
   with no deltas.

The ids walked form the provenance chain, used for display and audit only.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from motionlab.scoring.constants import MAX_INHERIT_DEPTH
from motionlab.scoring.delta_rules import AxisSelection, DeltaRuleStore, Explicit, ModifierAxisTable
from motionlab.scoring.hierarchy import MotionHierarchy
from motionlab.scoring.records import FlatScores

logger = logging.getLogger(__name__)


class ResolutionSource(str, Enum):
    """How an effective delta map was obtained."""

    EXPLICIT = "explicit"  # entry on the requested motion itself
    INHERITED = "inherited"  # entry found on an ancestor
    NONE = "none"  # walk reached a primary without a concrete entry
    OVERRIDDEN = "overridden"  # replaced by a combo rule
    BROKEN = "broken"  # cycle or depth guard stopped the walk


@dataclass(frozen=True)
class ResolvedDelta:
    """Effective deltas of one modifier row for one motion.

    Attributes:
        table_key: Modifier axis table the row belongs to
        row_id: Selected row
        motion_id: Motion the resolution was requested for
        deltas: Effective ``muscle -> delta`` map
        provenance_chain: Motion ids walked, requested motion first
        source: How the deltas were obtained
        resolved_from: Motion whose explicit entry was used, if any
    """

    table_key: str
    row_id: str
    motion_id: str
    deltas: Mapping[str, float] = field(default_factory=dict)
    provenance_chain: tuple[str, ...] = ()
    source: ResolutionSource = ResolutionSource.NONE
    resolved_from: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "deltas", MappingProxyType(dict(self.deltas)))

    @property
    def inherited(self) -> bool:
        return self.source is ResolutionSource.INHERITED

    @property
    def is_empty(self) -> bool:
        return not self.deltas

    @property
    def selection(self) -> AxisSelection:
        return AxisSelection(self.table_key, self.row_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "table_key": self.table_key,
            "row_id": self.row_id,
            "motion_id": self.motion_id,
            "deltas": dict(self.deltas),
            "provenance_chain": list(self.provenance_chain),
            "source": self.source.value,
            "resolved_from": self.resolved_from,
            "inherited": self.inherited,
        }


class InheritanceResolver:
    """Resolve effective delta maps against a motion hierarchy.

    Example:
        >>> resolver = InheritanceResolver(motions)
        >>> store = DeltaRuleStore.from_raw({"SQUAT": {"QUADS": 5}, "SQUAT_PAUSE": "inherit"})
        >>> resolved = resolver.resolve(store, "SQUAT_PAUSE")
        >>> dict(resolved.deltas), resolved.provenance_chain
        ({'QUADS': 5.0}, ('SQUAT_PAUSE', 'SQUAT'))
    """

    def __init__(self, motions: MotionHierarchy, max_depth: int = MAX_INHERIT_DEPTH) -> None:
        self._motions = motions
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def resolve(
        self,
        store: DeltaRuleStore,
        motion_id: str,
        table_key: str = "",
        row_id: str = "",
    ) -> ResolvedDelta:
        """Walk the ancestry of ``motion_id`` until a concrete entry is found."""
        visited: set[str] = set()
        chain: list[str] = []
        current = motion_id

        def result(deltas: FlatScores, source: ResolutionSource, resolved_from: str | None = None) -> ResolvedDelta:
            return ResolvedDelta(
                table_key=table_key,
                row_id=row_id,
                motion_id=motion_id,
                deltas=deltas,
                provenance_chain=tuple(chain),
                source=source,
                resolved_from=resolved_from,
            )

        for _ in range(self._max_depth):
            if current in visited:
                logger.warning(
                    f"Circular motion inheritance for '{motion_id}' on {table_key}:{row_id} "
                    f"(revisited '{current}')"
                )
                return result({}, ResolutionSource.BROKEN)
            visited.add(current)
            chain.append(current)

            entry = store.entry_for(current)
            if isinstance(entry, Explicit):
                source = ResolutionSource.EXPLICIT if current == motion_id else ResolutionSource.INHERITED
                return result(entry.as_dict(), source, current)

            parent_id = self._motions.parent_of(current)
            if parent_id is None:
                return result({}, ResolutionSource.NONE)
            current = parent_id

        logger.warning(
            f"Inheritance walk for '{motion_id}' on {table_key}:{row_id} exceeded {self._max_depth} levels"
        )
        return result({}, ResolutionSource.BROKEN)

    def resolve_selection(
        self,
        motion_id: str,
        selection: AxisSelection,
        axis_tables: Mapping[str, ModifierAxisTable],
    ) -> ResolvedDelta | None:
        """Resolve one selected row; None if its table or row does not exist or the row is inactive."""
        table = axis_tables.get(selection.table_key)
        if table is None:
            logger.debug(f"Unknown modifier table '{selection.table_key}'")
            return None
        row = table.get(selection.row_id)
        if row is None:
            logger.debug(f"Unknown row '{selection.row_id}' in modifier table '{selection.table_key}'")
            return None
        if not row.is_active:
            logger.debug(f"Skipping inactive row '{selection.row_id}' in modifier table '{selection.table_key}'")
            return None
        return self.resolve(row.delta_rules, motion_id, selection.table_key, selection.row_id)

    def resolve_all(
        self,
        motion_id: str,
        selections: Iterable[AxisSelection],
        axis_tables: Mapping[str, ModifierAxisTable],
    ) -> list[ResolvedDelta]:
        """One ResolvedDelta per selection whose table and active row exist, in selection order."""
        resolved: list[ResolvedDelta] = []
        for selection in selections:
            item = self.resolve_selection(motion_id, selection, axis_tables)
            if item is not None:
                resolved.append(item)
        return resolved
