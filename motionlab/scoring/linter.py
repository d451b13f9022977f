"""Static checks over raw catalog data.

The engine tolerates bad data at read time (it drops and logs). The linter
reports the same problems up front so they can be fixed at the source:

- delta_rules keyed by unknown motion ids
- "inherit" on a primary motion, or on a chain of inherits that loops
- unknown or non-scorable muscle ids inside delta maps and base targets
- non-numeric or non-finite delta and score values
- entries that are neither a delta map nor "inherit"
- motion parent_id references to unknown motions
- combo rules that cannot be decoded, or that name unknown motions, tables or rows
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from motionlab.config.scoring_config_loader import LintConfig
from motionlab.scoring.combo_rules import ComboActionType, load_json_field, validate_combo_rule
from motionlab.scoring.constants import DeltaTokens, is_finite_number

logger = logging.getLogger(__name__)


class LintSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class LintIssue:
    """One finding, located by table, row and dotted field path."""

    severity: LintSeverity
    table: str
    row_id: str
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "severity": self.severity.value,
            "table": self.table,
            "row_id": self.row_id,
            "field": self.field,
            "message": self.message,
        }


def _parent_ids(raw_muscle: Mapping[str, Any]) -> list[str]:
    value = raw_muscle.get("parent_ids")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    return [p for p in value if isinstance(p, str)] if isinstance(value, list) else []


class DeltaRuleLinter:
    """Lint a raw catalog dump (``muscles``, ``motions``, ``modifier_tables``, ``combo_rules``).

    Example:
        >>> issues = DeltaRuleLinter().lint_all(catalog_data)
        >>> print(format_lint_results(issues))
    """

    def __init__(self, config: LintConfig | None = None) -> None:
        self._config = config or LintConfig()

    @property
    def unknown_muscle_severity(self) -> LintSeverity:
        return LintSeverity(self._config.unknown_muscle_severity)

    @property
    def non_scorable_muscle_severity(self) -> LintSeverity:
        return LintSeverity(self._config.non_scorable_muscle_severity)

    def lint_all(self, data: Mapping[str, Any]) -> list[LintIssue]:
        """Run every check; malformed shapes are reported, never raised."""
        issues: list[LintIssue] = []
        muscles = self._records(data, "muscles", issues)
        motions = self._records(data, "motions", issues)
        muscle_ids = {str(m["id"]) for m in muscles}
        non_scorable = {str(m["id"]) for m in muscles if m.get("is_scorable") is False}
        motions_by_id = {str(m["id"]): m for m in motions}

        for muscle in muscles:
            issues.extend(self._lint_muscle(muscle, muscle_ids))
        for motion in motions:
            issues.extend(self._lint_motion(motion, motions_by_id, muscle_ids, non_scorable))

        modifier_tables = data.get("modifier_tables") or {}
        if not isinstance(modifier_tables, Mapping):
            issues.append(
                LintIssue(
                    LintSeverity.ERROR,
                    "modifier_tables",
                    "",
                    "modifier_tables",
                    f"modifier_tables must be an object keyed by table, got {type(modifier_tables).__name__}",
                )
            )
            modifier_tables = {}

        rows_by_table: dict[str, set[str]] = {}
        for table_key, rows in modifier_tables.items():
            rows_by_table[str(table_key)] = set()
            if rows is None:
                continue
            if not isinstance(rows, list):
                issues.append(
                    LintIssue(
                        LintSeverity.ERROR,
                        str(table_key),
                        "",
                        "rows",
                        f"Table rows must be an array, got {type(rows).__name__}",
                    )
                )
                continue
            for row in rows:
                if isinstance(row, Mapping):
                    rows_by_table[str(table_key)].add(str(row.get("id", "")))
                    issues.extend(
                        self._lint_delta_rules(str(table_key), row, motions_by_id, muscle_ids, non_scorable)
                    )

        for rule in self._records(data, "combo_rules", issues):
            issues.extend(self._lint_combo_rule(rule, motions_by_id, rows_by_table, muscle_ids, non_scorable))

        logger.info(f"Lint finished with {len(issues)} issue(s)")
        return issues

    @staticmethod
    def _records(data: Mapping[str, Any], key: str, issues: list[LintIssue]) -> list[Mapping[str, Any]]:
        value = data.get(key) or []
        if not isinstance(value, list):
            issues.append(
                LintIssue(LintSeverity.ERROR, key, "", key, f"{key} must be an array, got {type(value).__name__}")
            )
            return []
        return [record for record in value if isinstance(record, Mapping) and "id" in record]

    def _muscle_reference_issues(
        self,
        table: str,
        row_id: str,
        field: str,
        muscle_id: str,
        muscle_ids: set[str],
        non_scorable: set[str],
    ) -> list[LintIssue]:
        if muscle_id not in muscle_ids:
            return [LintIssue(self.unknown_muscle_severity, table, row_id, field, f'Unknown muscle ID "{muscle_id}"')]
        if muscle_id in non_scorable:
            return [
                LintIssue(
                    self.non_scorable_muscle_severity,
                    table,
                    row_id,
                    field,
                    f'Muscle "{muscle_id}" is not scorable and will be ignored',
                )
            ]
        return []

    @staticmethod
    def _value_issues(table: str, row_id: str, field: str, value: Any, what: str) -> list[LintIssue]:
        if is_finite_number(value):
            return []
        if isinstance(value, float):
            message = f"{what} must be finite, got {value!r}"
        else:
            message = f"{what} must be a number, got {type(value).__name__}"
        return [LintIssue(LintSeverity.ERROR, table, row_id, field, message)]

    def _lint_muscle(self, muscle: Mapping[str, Any], muscle_ids: set[str]) -> list[LintIssue]:
        muscle_id = str(muscle["id"])
        issues = []
        for parent_id in _parent_ids(muscle):
            if parent_id not in muscle_ids:
                issues.append(
                    LintIssue(
                        LintSeverity.WARNING,
                        "muscles",
                        muscle_id,
                        "parent_ids",
                        f'Unknown parent muscle ID "{parent_id}"',
                    )
                )
        return issues

    def _lint_motion(
        self,
        motion: Mapping[str, Any],
        motions_by_id: Mapping[str, Mapping[str, Any]],
        muscle_ids: set[str],
        non_scorable: set[str],
    ) -> list[LintIssue]:
        motion_id = str(motion["id"])
        issues: list[LintIssue] = []

        parent_id = motion.get("parent_id")
        if parent_id and not isinstance(parent_id, str):
            issues.append(
                LintIssue(
                    LintSeverity.ERROR,
                    "motions",
                    motion_id,
                    "parent_id",
                    f"parent_id must be a string, got {type(parent_id).__name__}",
                )
            )
        elif parent_id and parent_id not in motions_by_id:
            issues.append(
                LintIssue(
                    LintSeverity.ERROR,
                    "motions",
                    motion_id,
                    "parent_id",
                    f'Unknown parent motion ID "{parent_id}"',
                )
            )

        field_name = "base_targets" if "base_targets" in motion else "muscle_targets"
        targets = motion.get(field_name)
        if targets is None:
            return issues
        if not isinstance(targets, Mapping):
            issues.append(
                LintIssue(
                    LintSeverity.ERROR,
                    "motions",
                    motion_id,
                    field_name,
                    f"{field_name} must be an object, got {type(targets).__name__}",
                )
            )
            return issues

        for muscle_id, value in targets.items():
            field = f"{field_name}.{muscle_id}"
            issues.extend(
                self._muscle_reference_issues("motions", motion_id, field, str(muscle_id), muscle_ids, non_scorable)
            )
            issues.extend(self._value_issues("motions", motion_id, field, value, "Score"))
        return issues

    def _lint_delta_rules(
        self,
        table_key: str,
        row: Mapping[str, Any],
        motions_by_id: Mapping[str, Mapping[str, Any]],
        muscle_ids: set[str],
        non_scorable: set[str],
    ) -> list[LintIssue]:
        row_id = str(row.get("id", ""))
        delta_rules = row.get("delta_rules")
        issues: list[LintIssue] = []

        if isinstance(delta_rules, str):
            try:
                delta_rules = json.loads(delta_rules) if delta_rules.strip() else None
            except json.JSONDecodeError:
                return [LintIssue(LintSeverity.ERROR, table_key, row_id, "delta_rules", "delta_rules is not valid JSON")]
        if delta_rules is None:
            return issues
        if isinstance(delta_rules, list):
            if delta_rules:
                issues.append(
                    LintIssue(
                        LintSeverity.ERROR,
                        table_key,
                        row_id,
                        "delta_rules",
                        "delta_rules is a non-empty array (should be an object or an empty array)",
                    )
                )
            return issues
        if not isinstance(delta_rules, Mapping):
            return [
                LintIssue(
                    LintSeverity.ERROR,
                    table_key,
                    row_id,
                    "delta_rules",
                    f"delta_rules must be an object, got {type(delta_rules).__name__}",
                )
            ]

        for motion_id, entry in delta_rules.items():
            field = f"delta_rules.{motion_id}"
            if motion_id not in motions_by_id:
                issues.append(LintIssue(LintSeverity.ERROR, table_key, row_id, field, f'Unknown motion ID "{motion_id}"'))
                continue

            if DeltaTokens.is_inherit(entry):
                issues.extend(self._inherit_issues(table_key, row_id, motion_id, delta_rules, motions_by_id))
            elif isinstance(entry, Mapping):
                for muscle_id, value in entry.items():
                    muscle_field = f"{field}.{muscle_id}"
                    issues.extend(
                        self._muscle_reference_issues(
                            table_key, row_id, muscle_field, str(muscle_id), muscle_ids, non_scorable
                        )
                    )
                    issues.extend(self._value_issues(table_key, row_id, muscle_field, value, "Delta value"))
            elif entry is not None:
                issues.append(
                    LintIssue(
                        LintSeverity.ERROR,
                        table_key,
                        row_id,
                        field,
                        f"Invalid delta entry type: {type(entry).__name__}",
                    )
                )
        return issues

    def _lint_combo_rule(
        self,
        rule: Mapping[str, Any],
        motions_by_id: Mapping[str, Mapping[str, Any]],
        rows_by_table: Mapping[str, set[str]],
        muscle_ids: set[str],
        non_scorable: set[str],
    ) -> list[LintIssue]:
        rule_id = str(rule["id"])
        issues: list[LintIssue] = []

        motion_id = rule.get("motion_id")
        if not isinstance(motion_id, str) or motion_id not in motions_by_id:
            issues.append(
                LintIssue(LintSeverity.ERROR, "combo_rules", rule_id, "motion_id", f'Unknown motion ID "{motion_id}"')
            )

        action_type = rule.get("action_type")
        conditions = rule.get("trigger_conditions", rule.get("trigger_conditions_json"))
        payload = rule.get("action_payload", rule.get("action_payload_json"))
        errors = validate_combo_rule(action_type, conditions, payload)
        if errors:
            return issues + [
                LintIssue(LintSeverity.ERROR, "combo_rules", rule_id, field, message) for field, message in errors
            ]

        for index, condition in enumerate(load_json_field(conditions)):
            if condition["tableKey"] not in rows_by_table:
                issues.append(
                    LintIssue(
                        LintSeverity.WARNING,
                        "combo_rules",
                        rule_id,
                        f"trigger_conditions.{index}.tableKey",
                        f'Unknown modifier table "{condition["tableKey"]}"',
                    )
                )

        payload = load_json_field(payload)
        if action_type == ComboActionType.SWITCH_MOTION.value:
            proxy = payload["proxy_motion_id"]
            if proxy not in motions_by_id:
                issues.append(
                    LintIssue(
                        LintSeverity.ERROR,
                        "combo_rules",
                        rule_id,
                        "action_payload.proxy_motion_id",
                        f'Unknown proxy motion ID "{proxy}"',
                    )
                )
            return issues

        table_key, row_id = payload["table_key"], payload["row_id"]
        if row_id not in rows_by_table.get(table_key, set()):
            issues.append(
                LintIssue(
                    LintSeverity.ERROR,
                    "combo_rules",
                    rule_id,
                    "action_payload.row_id",
                    f'Unknown replace target "{table_key}:{row_id}"',
                )
            )
        for muscle_id in payload["deltas"]:
            issues.extend(
                self._muscle_reference_issues(
                    "combo_rules",
                    rule_id,
                    f"action_payload.deltas.{muscle_id}",
                    str(muscle_id),
                    muscle_ids,
                    non_scorable,
                )
            )
        return issues

    @staticmethod
    def _inherit_issues(
        table_key: str,
        row_id: str,
        motion_id: str,
        delta_rules: Mapping[str, Any],
        motions_by_id: Mapping[str, Mapping[str, Any]],
    ) -> list[LintIssue]:
        field = f"delta_rules.{motion_id}"
        if not motions_by_id[motion_id].get("parent_id"):
            return [
                LintIssue(
                    LintSeverity.ERROR,
                    table_key,
                    row_id,
                    field,
                    f'"{DeltaTokens.INHERIT}" used but motion "{motion_id}" has no parent_id',
                )
            ]

        visited: set[str] = set()
        current: str | None = motion_id
        while current:
            if current in visited:
                return [
                    LintIssue(
                        LintSeverity.ERROR,
                        table_key,
                        row_id,
                        field,
                        f'Circular inheritance detected starting at "{motion_id}"',
                    )
                ]
            visited.add(current)
            parent_id = (motions_by_id.get(current) or {}).get("parent_id")
            if not isinstance(parent_id, str) or not DeltaTokens.is_inherit(delta_rules.get(parent_id)):
                break
            current = parent_id
        return []


def lint_all(data: Mapping[str, Any], config: LintConfig | None = None) -> list[LintIssue]:
    """Functional shortcut for ``DeltaRuleLinter(config).lint_all(data)``."""
    return DeltaRuleLinter(config).lint_all(data)


def has_errors(issues: list[LintIssue]) -> bool:
    return any(issue.severity is LintSeverity.ERROR for issue in issues)


def format_lint_results(issues: list[LintIssue]) -> str:
    """Render issues one per line followed by a summary line."""
    if not issues:
        return "No issues found."

    tags = {LintSeverity.ERROR: "ERR", LintSeverity.WARNING: "WRN", LintSeverity.INFO: "INF"}
    counts = {severity: 0 for severity in LintSeverity}
    lines = []
    for issue in issues:
        counts[issue.severity] += 1
        lines.append(f"[{tags[issue.severity]}] {issue.table}/{issue.row_id} -> {issue.field}: {issue.message}")

    lines.append("")
    lines.append(
        f"Summary: {counts[LintSeverity.ERROR]} errors, "
        f"{counts[LintSeverity.WARNING]} warnings, {counts[LintSeverity.INFO]} info"
    )
    return "\n".join(lines)
