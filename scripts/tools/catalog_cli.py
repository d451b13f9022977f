"""
CLI tool for checking catalog data and previewing composed scores.

Catalog files are JSON or YAML dumps shaped like:
    {"muscles": [...], "motions": [...], "modifier_tables": {"grips": [...], ...}, "combo_rules": [...]}

Log events are written to stderr; command output goes to stdout.

Usage examples:
    # Lint delta rules and base targets
    python -m scripts.tools.catalog_cli lint catalog.json

    # Compose scores for a motion with modifier selections
    python -m scripts.tools.catalog_cli score catalog.json SQUAT_PAUSE \\
        --select grips:WIDE \\
        --select stances:NARROW

    # Show totals as nested JSON
    python -m scripts.tools.catalog_cli score catalog.yaml SQUAT --json

    # Show the grouping muscle options for a motion
    python -m scripts.tools.catalog_cli groups catalog.json SQUAT
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from motionlab.config.scoring_config_loader import get_scoring_config
from motionlab.core.logging import add_log_context, clear_log_context, configure_logging, get_logger
from motionlab.scoring.catalog import CatalogSnapshot
from motionlab.scoring.composition import ScoreCompositionEngine
from motionlab.scoring.exceptions import ScoringException
from motionlab.scoring.grouping import build_option_groups, default_grouping_muscle, selectable_muscle_ids
from motionlab.scoring.linter import DeltaRuleLinter, format_lint_results, has_errors
from motionlab.scoring.score_tree import TotalsNode

logger = get_logger(__name__)


def load_catalog_file(path: str) -> Dict[str, Any]:
    """Read a JSON or YAML catalog dump (chosen by file extension)."""
    file_path = Path(path)
    with open(file_path, "r", encoding="utf-8") as f:
        if file_path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Catalog file must contain an object, got {type(data).__name__}")
    return data


def load_snapshot(path: str) -> CatalogSnapshot:
    config = get_scoring_config()
    return CatalogSnapshot.from_raw(
        load_catalog_file(path),
        unknown_is_scorable=config.scorability.unknown_is_scorable,
    )


def format_totals(nodes: Tuple[TotalsNode, ...], indent: int = 0) -> List[str]:
    """Indented ``muscle: total`` lines, explicit score shown where it differs."""
    lines = []
    for node in nodes:
        suffix = f" (own {node.score:g})" if node.children and node.score else ""
        lines.append(f"{'  ' * indent}{node.muscle_id}: {node.total:g}{suffix}")
        lines.extend(format_totals(node.children, indent + 1))
    return lines


def lint_command(args) -> int:
    """Lint a catalog file."""
    data = load_catalog_file(args.file)
    issues = DeltaRuleLinter(get_scoring_config().lint).lint_all(data)

    if args.json:
        print(json.dumps([issue.to_dict() for issue in issues], indent=2))
    else:
        print(format_lint_results(issues))
    return 1 if has_errors(issues) else 0


def score_command(args) -> int:
    """Compose scores for one motion."""
    snapshot = load_snapshot(args.file)
    if args.motion not in snapshot.motions:
        print(f"\n❌ Motion not found: {args.motion}")
        return 1

    add_log_context(catalog_version=snapshot.version, motion_id=args.motion)
    try:
        engine = ScoreCompositionEngine(snapshot, config=get_scoring_config())
        result = engine.compose_scores(args.motion, args.select or [])
    finally:
        clear_log_context()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(f"\n=== {args.motion} ===")
    if result.effective_motion_id != args.motion:
        print(f"Scored as: {result.effective_motion_id}")
    for fired in result.rules_fired:
        print(f"Combo rule: {fired.rule_id} {fired.action_type.value} ({fired.winner_reason.value})")
    if result.selections:
        print(f"Selections: {', '.join(str(s) for s in result.selections)}")
    for resolved in result.resolved_deltas:
        chain = " -> ".join(resolved.provenance_chain)
        print(f"  {resolved.selection}: {resolved.source.value} [{chain}] {dict(resolved.deltas)}")

    print("\nFinal scores:")
    for muscle_id, score in sorted(result.final_scores.items()):
        print(f"  {muscle_id}: {score:g}")

    print("\nTotals:")
    for line in format_totals(result.totals.roots, indent=1):
        print(line)
    return 0


def groups_command(args) -> int:
    """Show grouping muscle options for one motion."""
    snapshot = load_snapshot(args.file)
    if args.motion not in snapshot.motions:
        print(f"\n❌ Motion not found: {args.motion}")
        return 1

    min_score = args.min_score
    if min_score is None:
        min_score = get_scoring_config().grouping.min_selectable_score

    flat = snapshot.base_targets_of(args.motion)
    selectable = selectable_muscle_ids(flat, snapshot.muscles, min_score)
    default = default_grouping_muscle(flat, snapshot.muscles, min_score)

    print(f"\n=== Grouping options for {args.motion} ===")
    print(f"Default: {default or '-'}")
    for group in build_option_groups(selectable, snapshot.muscles):
        print(f"{group.primary.display_label}:")
        for option in group.options:
            print(f"  {option.id}  ({option.path})")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Catalog linting and score composition preview",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s lint catalog.json
  %(prog)s score catalog.json SQUAT_PAUSE --select grips:WIDE
  %(prog)s groups catalog.yaml SQUAT
        """
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug events to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # lint command
    lint_parser = subparsers.add_parser(
        "lint",
        help="Check delta rules, base targets and parent references"
    )
    lint_parser.add_argument("file", help="JSON or YAML catalog file")
    lint_parser.add_argument("--json", action="store_true", help="Print issues as JSON")
    lint_parser.set_defaults(func=lint_command)

    # score command
    score_parser = subparsers.add_parser(
        "score",
        help="Compose final scores for a motion"
    )
    score_parser.add_argument("file", help="JSON or YAML catalog file")
    score_parser.add_argument("motion", help="Motion id")
    score_parser.add_argument(
        "--select", "-s",
        action="append",
        metavar="TABLE:ROW",
        help="Modifier selection, repeatable"
    )
    score_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    score_parser.set_defaults(func=score_command)

    # groups command
    groups_parser = subparsers.add_parser(
        "groups",
        help="Show grouping muscle options for a motion"
    )
    groups_parser.add_argument("file", help="JSON or YAML catalog file")
    groups_parser.add_argument("motion", help="Motion id")
    groups_parser.add_argument(
        "--min-score",
        type=float,
        default=None,
        help="Minimum calculated score (defaults to the configured threshold)"
    )
    groups_parser.set_defaults(func=groups_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(logging.DEBUG if args.verbose else None)
    try:
        return args.func(args)
    except (OSError, ValueError, yaml.YAMLError, ScoringException) as e:
        logger.error("catalog_cli_failed", command=args.command, error=str(e))
        print(f"\n❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
