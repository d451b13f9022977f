"""Hierarchy-shaped muscle score trees.

A ScoreTree is the sparse, immutable tree form of a flat ``muscle -> score``
map. Every entry is placed at its full ancestor path; intermediate nodes are
materialised with score 0 and ``explicit=False`` so aggregation is well
defined, while ``flatten`` only emits explicit nodes. That keeps the round
trip exact:

    ScoreTree.build_from_flat(flat, hierarchy).flatten() == flat

for any ``flat`` whose ids are all in ``hierarchy``.

Edits (``with_score``, ``add_delta``, ``apply_deltas``) return a new tree and
copy only the nodes on the touched path; untouched subtrees are shared.

Totals are a derived view (``recompute_totals``): a parent's total is its own
explicit score plus its children's totals, rounded once after summation.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping

from motionlab.scoring.constants import DEFAULT_DECIMAL_PLACES, finite_or_zero, is_finite_number
from motionlab.scoring.hierarchy import MuscleHierarchy
from motionlab.scoring.records import FlatScores

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


def _coerce_score(muscle_id: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(f"Non-numeric score {value!r} for '{muscle_id}' stored as 0")
        return 0.0
    return float(value)


def placement_path(muscle_id: str, hierarchy: MuscleHierarchy) -> list[str] | None:
    """Where a muscle sits in a score tree.

    Returns None for ids the hierarchy does not know (they cannot be
    attached anywhere). A muscle caught in a parent cycle has no root path
    and is placed at the top level as its own effective root.
    """
    if muscle_id not in hierarchy:
        logger.warning(f"Dropping unknown muscle id '{muscle_id}' from score tree")
        return None
    path = hierarchy.path_to_root(muscle_id)
    return path or [muscle_id]


@dataclass(frozen=True)
class ScoreNode:
    """A node of a ScoreTree.

    Attributes:
        muscle_id: Muscle this node represents
        score: Explicit score (0 for materialised ancestors)
        explicit: Whether the score came from the source map or an edit
        children: Child nodes keyed by muscle id (read-only mapping)
    """

    muscle_id: str
    score: float = 0.0
    explicit: bool = False
    children: Mapping[str, ScoreNode] = field(default_factory=lambda: _EMPTY)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def to_dict(self) -> dict[str, Any]:
        """Convert to a nested dictionary."""
        return {
            "score": self.score,
            "explicit": self.explicit,
            "children": {cid: child.to_dict() for cid, child in self.children.items()},
        }


@dataclass(frozen=True)
class TotalsNode:
    """A node of the derived totals view.

    Attributes:
        muscle_id: Muscle this node represents
        score: The node's own explicit score
        total: Own score plus descendant totals (leaf: own score)
        children: Child totals in display order
    """

    muscle_id: str
    score: float
    total: float
    children: tuple[TotalsNode, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "muscle_id": self.muscle_id,
            "score": self.score,
            "total": self.total,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class ScoreTotals:
    """Displayable/exportable totals computed from a ScoreTree."""

    roots: tuple[TotalsNode, ...] = ()
    decimal_places: int = DEFAULT_DECIMAL_PLACES

    def walk(self) -> Iterator[TotalsNode]:
        """Pre-order traversal over every node."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def as_flat(self) -> FlatScores:
        """``muscle -> total`` for every node in the tree."""
        return {node.muscle_id: node.total for node in self.walk()}

    def total_of(self, muscle_id: str) -> float | None:
        for node in self.walk():
            if node.muscle_id == muscle_id:
                return node.total
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "decimal_places": self.decimal_places,
            "roots": [root.to_dict() for root in self.roots],
        }


class _StagedNode:
    """Mutable node used only while building a tree from a flat map."""

    __slots__ = ("muscle_id", "score", "explicit", "children")

    def __init__(self, muscle_id: str) -> None:
        self.muscle_id = muscle_id
        self.score = 0.0
        self.explicit = False
        self.children: dict[str, _StagedNode] = {}


def _display_order(ids: Iterable[str], hierarchy: MuscleHierarchy) -> list[str]:
    def key(muscle_id: str) -> tuple[str, str]:
        record = hierarchy.get(muscle_id)
        return (record.display_label if record else muscle_id, muscle_id)

    return sorted(ids, key=key)


def _freeze(staged: dict[str, _StagedNode], hierarchy: MuscleHierarchy) -> Mapping[str, ScoreNode]:
    frozen: dict[str, ScoreNode] = {}
    for muscle_id in _display_order(staged, hierarchy):
        node = staged[muscle_id]
        frozen[muscle_id] = ScoreNode(
            muscle_id=muscle_id,
            score=node.score,
            explicit=node.explicit,
            children=_freeze(node.children, hierarchy) if node.children else _EMPTY,
        )
    return _frozen(frozen)


def _set_along_path(
    level: Mapping[str, ScoreNode],
    path: list[str],
    update_leaf: Callable[[ScoreNode], ScoreNode],
    hierarchy: MuscleHierarchy,
) -> Mapping[str, ScoreNode]:
    """Return a copy of ``level`` with the node at ``path`` replaced.

    Missing nodes on the way are materialised; siblings are shared.
    """
    node_id = path[0]
    current = level.get(node_id) or ScoreNode(node_id)
    if len(path) == 1:
        updated = update_leaf(current)
    else:
        updated = replace(
            current, children=_set_along_path(current.children, path[1:], update_leaf, hierarchy)
        )
    new_level = dict(level)
    new_level[node_id] = updated
    if node_id not in level:
        new_level = {k: new_level[k] for k in _display_order(new_level, hierarchy)}
    return _frozen(new_level)


@dataclass(frozen=True)
class ScoreTree:
    """Immutable hierarchy-shaped representation of a flat muscle score map.

    Example:
        >>> tree = ScoreTree.build_from_flat({"BICEPS_LONG": 2.0}, hierarchy)
        >>> tree.flatten()
        {'BICEPS_LONG': 2.0}
        >>> tree.recompute_totals().as_flat()
        {'ARMS': 2.0, 'BICEPS': 2.0, 'BICEPS_LONG': 2.0}
    """

    roots: Mapping[str, ScoreNode] = field(default_factory=lambda: _EMPTY)

    @classmethod
    def empty(cls) -> ScoreTree:
        return cls()

    @classmethod
    def build_from_flat(cls, flat: Mapping[str, Any], hierarchy: MuscleHierarchy) -> ScoreTree:
        """Build a tree from a flat ``muscle -> score`` map.

        Each entry is placed at its full ancestor path. Ancestors take their
        own flat value when present, else 0, so processing order does not
        change the result. Unknown ids are dropped.
        """
        staged: dict[str, _StagedNode] = {}
        for muscle_id in flat:
            path = placement_path(muscle_id, hierarchy)
            if path is None:
                continue
            level = staged
            for node_id in path:
                node = level.get(node_id)
                if node is None:
                    node = level[node_id] = _StagedNode(node_id)
                if node_id in flat:
                    node.score = _coerce_score(node_id, flat[node_id])
                    node.explicit = True
                level = node.children
        return cls(roots=_freeze(staged, hierarchy))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __bool__(self) -> bool:
        return bool(self.roots)

    def walk(self) -> Iterator[ScoreNode]:
        """Pre-order traversal over every node."""
        stack = list(reversed(list(self.roots.values())))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(list(node.children.values())))

    def find(self, muscle_id: str) -> ScoreNode | None:
        for node in self.walk():
            if node.muscle_id == muscle_id:
                return node
        return None

    def muscle_ids(self) -> list[str]:
        return [node.muscle_id for node in self.walk()]

    def flatten(self) -> FlatScores:
        """Emit the explicit score of every explicit node."""
        return {node.muscle_id: node.score for node in self.walk() if node.explicit}

    def to_dict(self) -> dict[str, Any]:
        return {muscle_id: node.to_dict() for muscle_id, node in self.roots.items()}

    # ------------------------------------------------------------------
    # Copy-on-write edits
    # ------------------------------------------------------------------

    def _edit(
        self,
        muscle_id: str,
        hierarchy: MuscleHierarchy,
        update_leaf: Callable[[ScoreNode], ScoreNode],
    ) -> ScoreTree:
        path = placement_path(muscle_id, hierarchy)
        if path is None:
            return self
        return ScoreTree(roots=_set_along_path(self.roots, path, update_leaf, hierarchy))

    def with_score(self, muscle_id: str, score: float, hierarchy: MuscleHierarchy) -> ScoreTree:
        """New tree with ``muscle_id`` set explicitly to ``score``."""
        value = _coerce_score(muscle_id, score)
        return self._edit(muscle_id, hierarchy, lambda node: replace(node, score=value, explicit=True))

    def add_delta(self, muscle_id: str, delta: float, hierarchy: MuscleHierarchy) -> ScoreTree:
        """New tree with ``delta`` added to the muscle's explicit score."""
        return self.apply_deltas({muscle_id: [delta]}, hierarchy)

    def apply_deltas(
        self, deltas_by_muscle: Mapping[str, Iterable[float]], hierarchy: MuscleHierarchy
    ) -> ScoreTree:
        """Add every delta to its muscle's explicit score.

        Each muscle's new score is the exactly rounded sum (``math.fsum``)
        of its current score and all of its deltas, so the order in which
        deltas were gathered cannot change the result. Non-finite terms
        count as 0.
        """
        tree = self
        for muscle_id, deltas in deltas_by_muscle.items():
            terms = [finite_or_zero(d) for d in deltas]

            def bump(node: ScoreNode, terms: list[float] = terms) -> ScoreNode:
                return replace(node, score=math.fsum([finite_or_zero(node.score), *terms]), explicit=True)

            tree = tree._edit(muscle_id, hierarchy, bump)
        return tree

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def recompute_totals(self, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> ScoreTotals:
        """Bottom-up totals: ``own + sum(child totals)``, rounded after summation.

        Leaf totals equal their own explicit score. The explicit tree is
        left untouched.
        """

        def total(node: ScoreNode) -> TotalsNode:
            children = tuple(total(child) for child in node.children.values())
            own = finite_or_zero(node.score)
            if not children:
                value = own
            else:
                value = round(math.fsum([own, *(c.total for c in children)]), decimal_places)
            return TotalsNode(muscle_id=node.muscle_id, score=own, total=value, children=children)

        return ScoreTotals(
            roots=tuple(total(root) for root in self.roots.values()),
            decimal_places=decimal_places,
        )


def build_from_flat(flat: Mapping[str, Any], hierarchy: MuscleHierarchy) -> ScoreTree:
    """Functional alias for ScoreTree.build_from_flat."""
    return ScoreTree.build_from_flat(flat, hierarchy)


def flatten(tree: ScoreTree) -> FlatScores:
    """Functional alias for ScoreTree.flatten."""
    return tree.flatten()


def recompute_totals(tree: ScoreTree, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> ScoreTotals:
    """Functional alias for ScoreTree.recompute_totals."""
    return tree.recompute_totals(decimal_places)


def strip_parent_zeros(flat: Mapping[str, float], hierarchy: MuscleHierarchy) -> FlatScores:
    """Drop parent muscles whose stored score is 0.

    Parent totals are derived from their children at display time, so a
    stored zero on a parent carries no information.
    """
    parents = hierarchy.parent_ids()
    return {
        muscle_id: score
        for muscle_id, score in flat.items()
        if not (muscle_id in parents and is_finite_number(score) and score == 0)
    }
