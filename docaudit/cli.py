"""CLI interface for documentation auditing.

This module provides the command-line interface for docaudit.

Usage:
    docaudit check .
    docaudit links docs/ --format json
    docaudit plan . --since-tag v1.4.0
    docaudit verify . --baseline docaudit-baseline.json
    docaudit prune . --apply
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .config import AuditSettings, load_settings
from .engine import (
    ANALYZER_DUPLICATES,
    ANALYZER_LINKS,
    ANALYZER_ORPHANS,
    ANALYZER_STALE,
    ANALYZERS,
    DocAuditor,
)
from .exceptions import ConfigurationError, DocAuditError
from .index import find_project_root
from .logging import get_logger, new_scan_id, setup_logging
from .models import AuditReport
from .plan import build_plan
from .reports import ConsoleReporter, JSONReporter, report_to_dict
from .validators import prune_orphans
from .verify import compare_reports, load_baseline

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2

SINGLE_ANALYZER_COMMANDS = {
    "links": ANALYZER_LINKS,
    "duplicates": ANALYZER_DUPLICATES,
    "stale": ANALYZER_STALE,
    "orphans": ANALYZER_ORPHANS,
}

EPILOG = """
Examples:
    # Audit everything (scope chosen automatically)
    docaudit check .

    # Only broken links under docs/, as JSON for CI
    docaudit links docs/ --format json

    # Documents touched since a release tag
    docaudit check . --since-tag v1.4.0

    # Prioritized update plan for the last two weeks of changes
    docaudit plan . --since "2 weeks ago"

    # Fail CI when a change introduces new problems
    docaudit check . --full --format json --output baseline.json
    docaudit verify . --full --baseline baseline.json

    # Delete orphaned documents (dry run without --apply)
    docaudit prune . --apply

Exit codes:
    0  No error-severity findings (verification passed)
    1  Error findings, warnings with --strict, or failed verification
    2  Usage, configuration or git errors
"""


def _common_arguments() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path("."),
        help="Documentation file or directory to audit (default: current directory)",
    )
    common.add_argument(
        "--project-root",
        type=Path,
        help="Project root directory (auto-detected if not specified)",
    )
    common.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Config file (default: <project root>/.docaudit.yml)",
    )
    common.add_argument(
        "--format",
        "-f",
        choices=["console", "json"],
        default="console",
        help="Output format (default: console)",
    )
    common.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Write output to this file instead of stdout",
    )

    scope = common.add_mutually_exclusive_group()
    scope.add_argument("--full", action="store_true", help="Scan every document")
    scope.add_argument(
        "--since-tag",
        metavar="TAG",
        help="Incremental scan of documents affected since a git tag or commit",
    )
    scope.add_argument(
        "--since",
        metavar="WHEN",
        help='Incremental scan over a time window (e.g. "2 weeks ago", 2026-01-31)',
    )

    common.add_argument(
        "--errors-only",
        "-e",
        action="store_true",
        help="Only show error-severity findings",
    )
    common.add_argument(
        "--strict",
        action="store_true",
        help="Fail on warnings too (verify: fail on any new finding)",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show additional details and INFO logs",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides --verbose)",
    )
    common.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log format on stderr",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docaudit",
        description="Audit documentation for broken links, duplicates, staleness and orphans",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = _common_arguments()
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    check = subparsers.add_parser("check", parents=[common], help="Run all analyzers")
    check.add_argument(
        "--only",
        action="append",
        choices=ANALYZERS,
        help="Run only this analyzer (repeatable)",
    )

    subparsers.add_parser("links", parents=[common], help="Check links and anchors")

    duplicates = subparsers.add_parser(
        "duplicates", parents=[common], help="Find near-duplicate passages"
    )
    duplicates.add_argument(
        "--threshold",
        type=float,
        help="Jaccard similarity threshold (overrides similarity_threshold)",
    )

    stale = subparsers.add_parser(
        "stale", parents=[common], help="Find documents older than the sources they reference"
    )
    stale.add_argument(
        "--staleness-days",
        type=int,
        help="Grace period in days (overrides staleness_days)",
    )

    subparsers.add_parser("orphans", parents=[common], help="Find unreachable documents")

    plan = subparsers.add_parser("plan", parents=[common], help="Build a prioritized update plan")
    plan.add_argument(
        "--only",
        action="append",
        choices=ANALYZERS,
        help="Plan only from this analyzer (repeatable)",
    )

    verify = subparsers.add_parser(
        "verify", parents=[common], help="Compare the current state with a baseline report"
    )
    verify.add_argument(
        "--baseline",
        type=Path,
        required=True,
        help="JSON report written earlier with --format json",
    )
    verify.add_argument(
        "--only",
        action="append",
        choices=ANALYZERS,
        help="Analyzers to run (default: those recorded in the baseline)",
    )

    prune = subparsers.add_parser("prune", parents=[common], help="Delete orphaned documents")
    prune.add_argument(
        "--apply",
        action="store_true",
        help="Actually delete files (default: dry run)",
    )

    return parser


def _settings_for(parsed: argparse.Namespace, project_root: Path) -> AuditSettings:
    overrides: dict[str, Any] = {
        "log_level": parsed.log_level or ("INFO" if parsed.verbose else None),
        "log_format": parsed.log_format,
    }
    if getattr(parsed, "threshold", None) is not None:
        overrides["similarity_threshold"] = parsed.threshold
    if getattr(parsed, "staleness_days", None) is not None:
        overrides["staleness_days"] = parsed.staleness_days
    return load_settings(project_root, parsed.config, **overrides)


def _console(parsed: argparse.Namespace) -> ConsoleReporter:
    return ConsoleReporter(errors_only=parsed.errors_only, verbose=parsed.verbose)


def _emit_json(parsed: argparse.Namespace, payload: dict[str, Any]) -> None:
    reporter = JSONReporter()
    if parsed.output:
        reporter.write_to_file(payload, parsed.output)
        logger.info(f"Wrote {parsed.output}")
    else:
        reporter.write_payload(payload)


def _report_exit_code(report: AuditReport, strict: bool) -> int:
    if report.error_count or (strict and report.warning_count):
        return EXIT_FINDINGS
    return EXIT_OK


def _run(parsed: argparse.Namespace) -> int:
    target: Path = parsed.path
    if not target.exists():
        raise ConfigurationError(f"Path does not exist: {target}")

    project_root = (
        parsed.project_root.resolve() if parsed.project_root else find_project_root(target)
    )
    settings = _settings_for(parsed, project_root)
    setup_logging(settings.log_level, settings.log_format, settings.log_file)
    scan_id = new_scan_id()
    logger.info(f"Starting {parsed.command} (scan {scan_id}) in {project_root}")

    auditor = DocAuditor(project_root, settings)
    scope = auditor.scope(
        None if target.resolve() == project_root else target,
        full=parsed.full,
        since_tag=parsed.since_tag,
        since=parsed.since,
    )

    command = parsed.command

    if command in SINGLE_ANALYZER_COMMANDS or command == "check":
        analyzers = (
            [SINGLE_ANALYZER_COMMANDS[command]]
            if command in SINGLE_ANALYZER_COMMANDS
            else parsed.only or list(ANALYZERS)
        )
        report = auditor.run(scope, analyzers)
        if parsed.format == "json":
            _emit_json(parsed, report_to_dict(report))
        else:
            if parsed.output:
                JSONReporter().write_to_file(report, parsed.output)
            _console(parsed).report(report)
        return _report_exit_code(report, parsed.strict)

    if command == "plan":
        report = auditor.run(scope, parsed.only or list(ANALYZERS))
        update_plan = build_plan(report)
        if parsed.format == "json":
            _emit_json(parsed, update_plan.to_dict())
        elif parsed.output:
            parsed.output.parent.mkdir(parents=True, exist_ok=True)
            parsed.output.write_text(update_plan.to_markdown(), encoding="utf-8")
        else:
            _console(parsed).report_plan(update_plan)
        return EXIT_OK

    if command == "verify":
        baseline = load_baseline(parsed.baseline)
        analyzers = parsed.only or baseline.analyzers or list(ANALYZERS)
        report = auditor.run(scope, analyzers)
        result = compare_reports(baseline.findings, report.findings)
        if parsed.format == "json":
            _emit_json(parsed, result.to_dict(parsed.strict))
        else:
            _console(parsed).report_verification(result, parsed.strict)
        return EXIT_OK if result.passed(parsed.strict) else EXIT_FINDINGS

    if command == "prune":
        report = auditor.run(scope, [ANALYZER_ORPHANS])
        pruned = prune_orphans(project_root, report.findings, apply=parsed.apply)
        if parsed.format == "json":
            _emit_json(parsed, {"applied": parsed.apply, "paths": pruned})
        else:
            _console(parsed).report_pruned(pruned, parsed.apply)
        return EXIT_OK

    raise ConfigurationError(f"Unknown command: {command}")


def main(args: list[str] | None = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 = success, 1 = findings, 2 = error)
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    try:
        return _run(parsed)
    except DocAuditError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        if parsed.verbose and e.details:
            for key, value in e.details.items():
                print(f"  {key}: {value}", file=sys.stderr)
        return EXIT_ERROR
