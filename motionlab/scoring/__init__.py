"""Hierarchical muscle score resolution.

Main exports:
    - MuscleHierarchy / MotionHierarchy: Parent/child indexes over catalog records
    - ScoreTree: Immutable hierarchy-shaped score tree with derived totals
    - ScorabilityFilter: Excludes organisational muscles from scores
    - DeltaRuleStore: Per-row motion -> delta entry map (tagged variants)
    - InheritanceResolver: Resolves "inherit" entries along the motion ancestry
    - ComboRule: Overrides that fire on a combination of selections
    - ScoreCompositionEngine: Base targets + selected deltas -> final scores
    - CatalogSnapshot: All indexes for one catalog load, versioned
    - DeltaRuleLinter: Static checks over raw catalog data
"""
from .exceptions import (
    ScoringException,
    ValidationException,
    InvalidScoreError,
    DeltaRuleError,
    CatalogException,
    CatalogLoadError,
)

from .constants import (
    DeltaTokens,
    Totals,
    Inheritance,
    Grouping,
    DEFAULT_DECIMAL_PLACES,
    MAX_INHERIT_DEPTH,
    INHERIT_TOKEN,
)

from .records import (
    FlatScores,
    MuscleRecord,
    MotionRecord,
    validate_flat_scores,
    clean_flat_scores,
)

from .hierarchy import (
    MuscleHierarchy,
    MotionHierarchy,
)

from .score_tree import (
    ScoreNode,
    ScoreTree,
    ScoreTotals,
    TotalsNode,
    build_from_flat,
    flatten,
    recompute_totals,
    strip_parent_zeros,
)

from .scorability import (
    ScorabilityFilter,
    filter_scorable,
    is_scorable,
    scorable_muscles,
)

from .delta_rules import (
    AxisSelection,
    DeltaEntry,
    DeltaEntryKind,
    DeltaRuleStore,
    Explicit,
    Inherit,
    ModifierAxisTable,
    ModifierRow,
    NoOverride,
    INHERIT,
    NO_OVERRIDE,
)

from .inheritance import (
    InheritanceResolver,
    ResolutionSource,
    ResolvedDelta,
)

from .combo_rules import (
    ComboActionType,
    ComboResolution,
    ComboRule,
    ConditionOperator,
    ReplaceDelta,
    RuleFired,
    SwitchMotion,
    TriggerCondition,
    WinnerReason,
    apply_delta_overrides,
    decode_combo_rule,
    resolve_combo_rules,
    validate_combo_rule,
)

from .catalog import CatalogSnapshot

from .composition import (
    CompositionResult,
    ScoreCompositionEngine,
    compose_scores,
    normalize_selections,
)

from .grouping import (
    MuscleOption,
    MuscleOptionGroup,
    as_flat_targets,
    build_option_groups,
    calculated_score,
    default_grouping_muscle,
    muscle_with_max_calculated_score,
    muscle_with_max_score,
    selectable_muscle_ids,
)

from .linter import (
    DeltaRuleLinter,
    LintIssue,
    LintSeverity,
    format_lint_results,
    has_errors,
    lint_all,
)

__all__ = [
    # Records
    "FlatScores",
    "MuscleRecord",
    "MotionRecord",
    "validate_flat_scores",
    "clean_flat_scores",
    # Hierarchies
    "MuscleHierarchy",
    "MotionHierarchy",
    # Score trees
    "ScoreNode",
    "ScoreTree",
    "ScoreTotals",
    "TotalsNode",
    "build_from_flat",
    "flatten",
    "recompute_totals",
    "strip_parent_zeros",
    # Scorability
    "ScorabilityFilter",
    "filter_scorable",
    "is_scorable",
    "scorable_muscles",
    # Delta rules
    "AxisSelection",
    "DeltaEntry",
    "DeltaEntryKind",
    "DeltaRuleStore",
    "Explicit",
    "Inherit",
    "ModifierAxisTable",
    "ModifierRow",
    "NoOverride",
    "INHERIT",
    "NO_OVERRIDE",
    # Inheritance
    "InheritanceResolver",
    "ResolutionSource",
    "ResolvedDelta",
    # Combo rules
    "ComboActionType",
    "ComboResolution",
    "ComboRule",
    "ConditionOperator",
    "ReplaceDelta",
    "RuleFired",
    "SwitchMotion",
    "TriggerCondition",
    "WinnerReason",
    "apply_delta_overrides",
    "decode_combo_rule",
    "resolve_combo_rules",
    "validate_combo_rule",
    # Composition
    "CatalogSnapshot",
    "CompositionResult",
    "ScoreCompositionEngine",
    "compose_scores",
    "normalize_selections",
    # Grouping
    "MuscleOption",
    "MuscleOptionGroup",
    "as_flat_targets",
    "build_option_groups",
    "calculated_score",
    "default_grouping_muscle",
    "muscle_with_max_calculated_score",
    "muscle_with_max_score",
    "selectable_muscle_ids",
    # Linter
    "DeltaRuleLinter",
    "LintIssue",
    "LintSeverity",
    "format_lint_results",
    "has_errors",
    "lint_all",
    # Constants
    "DeltaTokens",
    "Totals",
    "Inheritance",
    "Grouping",
    "DEFAULT_DECIMAL_PLACES",
    "MAX_INHERIT_DEPTH",
    "INHERIT_TOKEN",
    # Exceptions
    "ScoringException",
    "ValidationException",
    "InvalidScoreError",
    "DeltaRuleError",
    "CatalogException",
    "CatalogLoadError",
]
