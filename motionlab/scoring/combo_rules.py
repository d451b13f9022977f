"""Combo rules: overrides that fire on a combination of modifier selections.

A combo rule belongs to one motion and carries trigger conditions over the
selected rows (``stances eq WIDE``, ``grips not_in [NEUTRAL, HAMMER]``). When
every condition holds, its action applies:

- ``SWITCH_MOTION``: score the combination as a proxy motion instead. Only
  the winning rule fires.
- ``REPLACE_DELTA``: use a fixed delta map for one selected row instead of
  its resolved deltas. One winner per (table, row) target.

Matching treats the selections as a set, so their order never matters.
Competing rules are ranked by specificity (number of conditions), then
priority (higher first), then rule id.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence, Union

from motionlab.scoring.constants import is_finite_number
from motionlab.scoring.delta_rules import AxisSelection
from motionlab.scoring.inheritance import ResolutionSource, ResolvedDelta

logger = logging.getLogger(__name__)


class ComboActionType(str, Enum):
    """Actions the engine applies when a combo rule matches."""

    SWITCH_MOTION = "SWITCH_MOTION"
    REPLACE_DELTA = "REPLACE_DELTA"


class ConditionOperator(str, Enum):
    EQ = "eq"
    IN = "in"
    NOT_EQ = "not_eq"
    NOT_IN = "not_in"


class WinnerReason(str, Enum):
    """Why a fired rule beat the other matching rules of its kind."""

    ONLY_MATCH = "only match"
    SPECIFICITY = "highest specificity"
    PRIORITY = "priority tie-break"
    ID = "id tie-break"


# =============================================================================
# Rule Model
# =============================================================================

@dataclass(frozen=True)
class TriggerCondition:
    """One condition over the rows selected on a modifier table."""

    table_key: str
    operator: ConditionOperator
    values: tuple[str, ...]

    def matches(self, selected_by_table: Mapping[str, frozenset[str]]) -> bool:
        selected = selected_by_table.get(self.table_key)
        hit = selected is not None and any(value in selected for value in self.values)
        if self.operator in (ConditionOperator.EQ, ConditionOperator.IN):
            return hit
        return not hit

    def to_dict(self) -> dict[str, Any]:
        value: str | list[str] = self.values[0] if len(self.values) == 1 else list(self.values)
        return {"tableKey": self.table_key, "operator": self.operator.value, "value": value}


@dataclass(frozen=True)
class SwitchMotion:
    proxy_motion_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"proxy_motion_id": self.proxy_motion_id}


@dataclass(frozen=True)
class ReplaceDelta:
    """Replacement deltas for one (table, row) target."""

    table_key: str
    row_id: str
    deltas: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "deltas", MappingProxyType(dict(self.deltas)))

    @property
    def target(self) -> AxisSelection:
        return AxisSelection(self.table_key, self.row_id)

    def to_dict(self) -> dict[str, Any]:
        return {"table_key": self.table_key, "row_id": self.row_id, "deltas": dict(self.deltas)}


ComboPayload = Union[SwitchMotion, ReplaceDelta]


@dataclass(frozen=True)
class ComboRule:
    """A decoded combo rule.

    Attributes:
        id: Rule id, the last tie-breaker
        motion_id: Motion the rule applies to
        action_type: What the rule does when it matches
        conditions: Trigger conditions, all of which must hold
        payload: Action payload matching ``action_type``
        label: Display label
        priority: Higher wins among equally specific rules
        is_active: Inactive rules never match
    """

    id: str
    motion_id: str
    action_type: ComboActionType
    conditions: tuple[TriggerCondition, ...]
    payload: ComboPayload
    label: str = ""
    priority: int = 0
    is_active: bool = True

    @property
    def specificity(self) -> int:
        return len(self.conditions)

    def matches(self, selected_by_table: Mapping[str, frozenset[str]]) -> bool:
        return bool(self.conditions) and all(c.matches(selected_by_table) for c in self.conditions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "motion_id": self.motion_id,
            "label": self.label,
            "action_type": self.action_type.value,
            "trigger_conditions": [c.to_dict() for c in self.conditions],
            "action_payload": self.payload.to_dict(),
            "priority": self.priority,
            "is_active": self.is_active,
        }


def rule_rank(rule: ComboRule) -> tuple[int, int, str]:
    """Sort key: most specific first, then highest priority, then id."""
    return (-rule.specificity, -rule.priority, rule.id)


# =============================================================================
# Decoding and Validation
# =============================================================================

def load_json_field(value: Any) -> Any:
    """Decode a JSON-encoded field; None when the string is not valid JSON."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def validate_combo_rule(action_type: Any, conditions: Any, payload: Any) -> list[tuple[str, str]]:
    """Structural errors of a raw combo rule as ``(field, message)`` pairs.

    Empty when the rule can be decoded. ``conditions`` and ``payload`` may be
    JSON strings.
    """
    errors: list[tuple[str, str]] = []
    valid_types = [t.value for t in ComboActionType]
    if action_type not in valid_types:
        errors.append(
            ("action_type", f'Unsupported action_type "{action_type}". Must be one of: {", ".join(valid_types)}')
        )

    conditions = load_json_field(conditions)
    if not isinstance(conditions, list):
        errors.append(("trigger_conditions", "must be an array"))
    elif not conditions:
        errors.append(("trigger_conditions", "must have at least one condition"))
    else:
        operators = [op.value for op in ConditionOperator]
        for index, condition in enumerate(conditions):
            path = f"trigger_conditions.{index}"
            if not isinstance(condition, Mapping):
                errors.append((path, "must be an object"))
                continue
            table_key = condition.get("tableKey")
            if not isinstance(table_key, str) or not table_key:
                errors.append((f"{path}.tableKey", "must be a non-empty string"))
            if condition.get("operator") not in operators:
                errors.append((f"{path}.operator", f"must be one of {', '.join(operators)}"))
            value = condition.get("value")
            if not isinstance(value, str) and not (
                isinstance(value, list) and all(isinstance(v, str) for v in value)
            ):
                errors.append((f"{path}.value", "must be a string or an array of strings"))

    payload = load_json_field(payload)
    if action_type == ComboActionType.SWITCH_MOTION.value:
        proxy = payload.get("proxy_motion_id") if isinstance(payload, Mapping) else None
        if not isinstance(proxy, str) or not proxy:
            errors.append(("action_payload.proxy_motion_id", "must be a non-empty string"))
    elif action_type == ComboActionType.REPLACE_DELTA.value:
        if not isinstance(payload, Mapping):
            errors.append(("action_payload", "must be an object"))
        else:
            for key in ("table_key", "row_id"):
                if not isinstance(payload.get(key), str) or not payload.get(key):
                    errors.append((f"action_payload.{key}", "must be a non-empty string"))
            deltas = payload.get("deltas")
            if not isinstance(deltas, Mapping):
                errors.append(("action_payload.deltas", "must be an object"))
            else:
                for muscle_id, value in deltas.items():
                    if not is_finite_number(value):
                        errors.append((f"action_payload.deltas.{muscle_id}", "must be a finite number"))
    return errors


def decode_combo_rule(
    rule_id: str,
    motion_id: str,
    action_type: Any,
    conditions: Any,
    payload: Any,
    label: str = "",
    priority: int = 0,
    is_active: bool = True,
) -> ComboRule | None:
    """Decode a raw combo rule; None (with a warning) when it is malformed."""
    errors = validate_combo_rule(action_type, conditions, payload)
    if errors:
        details = "; ".join(f"{field_name}: {message}" for field_name, message in errors)
        logger.warning(f"Ignoring combo rule '{rule_id}': {details}")
        return None

    conditions = load_json_field(conditions)
    payload = load_json_field(payload)
    decoded_conditions = tuple(
        TriggerCondition(
            table_key=c["tableKey"],
            operator=ConditionOperator(c["operator"]),
            values=(c["value"],) if isinstance(c["value"], str) else tuple(c["value"]),
        )
        for c in conditions
    )

    kind = ComboActionType(action_type)
    decoded_payload: ComboPayload
    if kind is ComboActionType.SWITCH_MOTION:
        decoded_payload = SwitchMotion(payload["proxy_motion_id"])
    else:
        decoded_payload = ReplaceDelta(
            payload["table_key"],
            payload["row_id"],
            {str(m): float(v) for m, v in payload["deltas"].items()},
        )

    return ComboRule(
        id=rule_id,
        motion_id=motion_id,
        action_type=kind,
        conditions=decoded_conditions,
        payload=decoded_payload,
        label=label,
        priority=priority,
        is_active=is_active,
    )


# =============================================================================
# Resolution
# =============================================================================

@dataclass(frozen=True)
class RuleFired:
    """A rule that applied, with the reason it won."""

    rule_id: str
    label: str
    action_type: ComboActionType
    specificity: int
    priority: int
    winner_reason: WinnerReason

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "label": self.label,
            "action_type": self.action_type.value,
            "specificity": self.specificity,
            "priority": self.priority,
            "winner_reason": self.winner_reason.value,
        }


@dataclass(frozen=True)
class ComboResolution:
    """Outcome of matching combo rules against a selection set."""

    effective_motion_id: str
    delta_overrides: tuple[ReplaceDelta, ...] = ()
    rules_fired: tuple[RuleFired, ...] = ()

    @property
    def switched(self) -> bool:
        return any(r.action_type is ComboActionType.SWITCH_MOTION for r in self.rules_fired)


def _winner_reason(winner: ComboRule, others: Sequence[ComboRule]) -> WinnerReason:
    # others are ranked, so the runner-up is the closest competitor
    if not others:
        return WinnerReason.ONLY_MATCH
    runner_up = others[0]
    if runner_up.specificity < winner.specificity:
        return WinnerReason.SPECIFICITY
    if runner_up.priority < winner.priority:
        return WinnerReason.PRIORITY
    return WinnerReason.ID


def _fired(winner: ComboRule, others: Sequence[ComboRule]) -> RuleFired:
    return RuleFired(
        rule_id=winner.id,
        label=winner.label,
        action_type=winner.action_type,
        specificity=winner.specificity,
        priority=winner.priority,
        winner_reason=_winner_reason(winner, others),
    )


def resolve_combo_rules(
    motion_id: str,
    selections: Iterable[AxisSelection],
    rules: Iterable[ComboRule],
) -> ComboResolution:
    """Match active rules of ``motion_id`` against the selected rows.

    Example:
        >>> resolution = resolve_combo_rules("SQUAT", [AxisSelection("stances", "WIDE")], rules)
        >>> resolution.effective_motion_id
        'SUMO_SQUAT'
    """
    selected: dict[str, set[str]] = {}
    for selection in selections:
        selected.setdefault(selection.table_key, set()).add(selection.row_id)
    selected_by_table = {key: frozenset(rows) for key, rows in selected.items()}

    matching = sorted(
        (
            rule
            for rule in rules
            if rule.motion_id == motion_id and rule.is_active and rule.matches(selected_by_table)
        ),
        key=rule_rank,
    )

    effective_motion_id = motion_id
    fired: list[RuleFired] = []

    switches = [r for r in matching if r.action_type is ComboActionType.SWITCH_MOTION]
    if switches:
        winner = switches[0]
        effective_motion_id = winner.payload.proxy_motion_id
        fired.append(_fired(winner, switches[1:]))

    by_target: dict[AxisSelection, list[ComboRule]] = {}
    for rule in matching:
        if rule.action_type is ComboActionType.REPLACE_DELTA:
            by_target.setdefault(rule.payload.target, []).append(rule)

    overrides: list[ReplaceDelta] = []
    for target in sorted(by_target, key=lambda s: (s.table_key, s.row_id)):
        winner, *others = by_target[target]
        overrides.append(winner.payload)
        fired.append(_fired(winner, others))

    if fired:
        logger.debug(f"Combo rules fired for '{motion_id}': {[f.rule_id for f in fired]}")
    return ComboResolution(
        effective_motion_id=effective_motion_id,
        delta_overrides=tuple(overrides),
        rules_fired=tuple(fired),
    )


def apply_delta_overrides(
    resolved: Iterable[ResolvedDelta], overrides: Iterable[ReplaceDelta]
) -> list[ResolvedDelta]:
    """Swap in override deltas for the rows they target; other rows pass through."""
    by_target = {override.target: override for override in overrides}
    out: list[ResolvedDelta] = []
    for item in resolved:
        override = by_target.get(item.selection)
        if override is None:
            out.append(item)
        else:
            out.append(replace(item, deltas=override.deltas, source=ResolutionSource.OVERRIDDEN))
    return out
