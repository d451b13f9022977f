"""Muscle and motion hierarchy indexes.

Both hierarchies are built once per catalog load and are read-only
afterwards. Every upward walk keeps a visited set, so malformed data that
introduces a parent cycle terminates instead of looping.

Muscles:
- A forest keyed by the *primary* parent (``parent_ids[0]``). Additional
  recorded parents are kept on the record and exposed via ``parents_of``
  but take no part in traversal.
- A parent reference to an unknown muscle is treated as no parent.

Motions:
- Primary motions have no ``parent_id``; variations point at one parent.
- ``ancestry`` walks one level at a time, stopping on a repeated id.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator

from motionlab.scoring.records import MotionRecord, MuscleRecord

logger = logging.getLogger(__name__)


class MuscleHierarchy:
    """Parent/child index over muscle records.

    Example:
        >>> hierarchy = MuscleHierarchy([
        ...     MuscleRecord("ARMS", "Arms"),
        ...     MuscleRecord("BICEPS", "Biceps", ("ARMS",)),
        ...     MuscleRecord("BICEPS_LONG", "Long head", ("BICEPS",)),
        ... ])
        >>> hierarchy.path_to_root("BICEPS_LONG")
        ['ARMS', 'BICEPS', 'BICEPS_LONG']
    """

    def __init__(self, records: Iterable[MuscleRecord]) -> None:
        self._muscles: dict[str, MuscleRecord] = {}
        for record in records:
            if record.id in self._muscles:
                logger.warning(f"Duplicate muscle id '{record.id}', keeping the last record")
            self._muscles[record.id] = record

        children: dict[str, list[MuscleRecord]] = {}
        for muscle in self._muscles.values():
            parent_id = muscle.primary_parent_id
            if parent_id is None:
                continue
            if parent_id not in self._muscles:
                logger.warning(
                    f"Muscle '{muscle.id}' references unknown parent '{parent_id}', treating it as a root"
                )
                continue
            children.setdefault(parent_id, []).append(muscle)

        self._children: dict[str, tuple[str, ...]] = {
            parent_id: tuple(m.id for m in sorted(kids, key=lambda m: (m.display_label, m.id)))
            for parent_id, kids in children.items()
        }
        self._paths: dict[str, tuple[str, ...]] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __contains__(self, muscle_id: object) -> bool:
        return muscle_id in self._muscles

    def __len__(self) -> int:
        return len(self._muscles)

    def __iter__(self) -> Iterator[MuscleRecord]:
        return iter(self._muscles.values())

    def get(self, muscle_id: str) -> MuscleRecord | None:
        return self._muscles.get(muscle_id)

    @property
    def muscle_ids(self) -> frozenset[str]:
        return frozenset(self._muscles)

    def parent_of(self, muscle_id: str) -> str | None:
        """Primary parent id, or None for roots, unknown ids and dangling references."""
        muscle = self._muscles.get(muscle_id)
        if muscle is None:
            return None
        parent_id = muscle.primary_parent_id
        return parent_id if parent_id in self._muscles else None

    def parents_of(self, muscle_id: str) -> tuple[str, ...]:
        """Every recorded parent id, including the ones traversal ignores."""
        muscle = self._muscles.get(muscle_id)
        return muscle.parent_ids if muscle else ()

    # ------------------------------------------------------------------
    # Upward walks
    # ------------------------------------------------------------------

    def root_of(self, muscle_id: str) -> str:
        """Walk primary parents to the top of the tree.

        If a previously seen id recurs, the walk stops and returns the last
        newly visited node, which then acts as the effective root.
        """
        visited: set[str] = set()
        current = muscle_id
        while True:
            visited.add(current)
            parent_id = self.parent_of(current)
            if parent_id is None:
                return current
            if parent_id in visited:
                logger.warning(f"Muscle parent cycle detected at '{current}' -> '{parent_id}'")
                return current
            current = parent_id

    def path_to_root(self, muscle_id: str) -> list[str]:
        """Return ``[root, ..., muscle_id]``.

        Empty when the id is unknown or the walk does not end at a true root
        (cyclic data).
        """
        cached = self._paths.get(muscle_id)
        if cached is not None:
            return list(cached)
        if muscle_id not in self._muscles:
            return []

        path = [muscle_id]
        visited = {muscle_id}
        current = muscle_id
        while True:
            parent_id = self.parent_of(current)
            if parent_id is None:
                break
            if parent_id in visited:
                logger.warning(f"Muscle '{muscle_id}' does not reduce to a root (cycle via '{parent_id}')")
                self._paths[muscle_id] = ()
                return []
            visited.add(parent_id)
            path.append(parent_id)
            current = parent_id

        path.reverse()
        self._paths[muscle_id] = tuple(path)
        return path

    def ancestors_of(self, muscle_id: str) -> list[str]:
        """Ancestors from the root down to the direct parent."""
        return self.path_to_root(muscle_id)[:-1]

    def depth_under_root(self, muscle_id: str, root_id: str) -> int:
        """Depth of a muscle under a root (0 = the root itself).

        Returns 0 if the muscle does not reduce to ``root_id``.
        """
        if muscle_id == root_id:
            return 0
        path = self.path_to_root(muscle_id)
        if path and path[0] == root_id:
            return len(path) - 1
        return 0

    # ------------------------------------------------------------------
    # Downward queries
    # ------------------------------------------------------------------

    def children_of(self, muscle_id: str) -> list[MuscleRecord]:
        """Direct children sorted by label, then id."""
        return [self._muscles[c] for c in self._children.get(muscle_id, ())]

    def child_ids_of(self, muscle_id: str) -> tuple[str, ...]:
        return self._children.get(muscle_id, ())

    def descendants_of(self, muscle_id: str) -> list[str]:
        """All descendants in depth-first, label order."""
        out: list[str] = []
        seen = {muscle_id}
        stack = list(reversed(self._children.get(muscle_id, ())))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            out.append(current)
            stack.extend(reversed(self._children.get(current, ())))
        return out

    def is_parent(self, muscle_id: str) -> bool:
        return bool(self._children.get(muscle_id))

    def parent_ids(self) -> frozenset[str]:
        """Ids of every muscle that has at least one child."""
        return frozenset(pid for pid, kids in self._children.items() if kids)

    def roots(self) -> list[MuscleRecord]:
        """Muscles without a (known) primary parent, sorted by label."""
        roots = [m for m in self._muscles.values() if self.parent_of(m.id) is None]
        return sorted(roots, key=lambda m: (m.display_label, m.id))


class MotionHierarchy:
    """Primary/variation index over motion records."""

    def __init__(self, motions: Iterable[MotionRecord]) -> None:
        self._motions: dict[str, MotionRecord] = {}
        for motion in motions:
            if motion.id in self._motions:
                logger.warning(f"Duplicate motion id '{motion.id}', keeping the last record")
            self._motions[motion.id] = motion

        variations: dict[str, list[MotionRecord]] = {}
        for motion in self._motions.values():
            if motion.parent_id:
                variations.setdefault(motion.parent_id, []).append(motion)
        self._variations = {
            parent_id: tuple(sorted(kids, key=lambda m: (m.label or m.id, m.id)))
            for parent_id, kids in variations.items()
        }

    def __contains__(self, motion_id: object) -> bool:
        return motion_id in self._motions

    def __len__(self) -> int:
        return len(self._motions)

    def __iter__(self) -> Iterator[MotionRecord]:
        return iter(self._motions.values())

    def get(self, motion_id: str) -> MotionRecord | None:
        return self._motions.get(motion_id)

    def parent_of(self, motion_id: str) -> str | None:
        """Raw parent id; unknown motions have no parent."""
        motion = self._motions.get(motion_id)
        if motion is None:
            return None
        return motion.parent_id or None

    def is_primary(self, motion_id: str) -> bool:
        return self.parent_of(motion_id) is None

    def ancestry(self, motion_id: str) -> list[str]:
        """``[motion_id, parent, grandparent, ...]``, cut at the first repeated id."""
        chain = [motion_id]
        seen = {motion_id}
        current = motion_id
        while True:
            parent_id = self.parent_of(current)
            if parent_id is None:
                return chain
            if parent_id in seen:
                logger.warning(f"Motion parent cycle detected at '{current}' -> '{parent_id}'")
                return chain
            seen.add(parent_id)
            chain.append(parent_id)
            current = parent_id

    def primary_of(self, motion_id: str) -> str:
        return self.ancestry(motion_id)[-1]

    def variations_of(self, motion_id: str) -> list[MotionRecord]:
        return list(self._variations.get(motion_id, ()))

    def primaries(self) -> list[MotionRecord]:
        return sorted(
            (m for m in self._motions.values() if not m.parent_id),
            key=lambda m: (m.label or m.id, m.id),
        )
