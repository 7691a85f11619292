#!/usr/bin/env python3
# ============================================================================
# AGENTIC WORKFLOW COMPILER - COMMAND LINE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - CLI entry point
# PURPOSE: Compile workflow markdown into lock files, check pinned actions
# CREATED: 18 OCT 2026
# ============================================================================
"""
Agentic Workflow Compiler CLI

Usage:
    # Compile one or more workflows (writes <id>.lock.yml beside each)
    python main.py compile .github/workflows/triage.md

    # Compile every .github/workflows/*.md under --repo-root
    python main.py compile

    # Compile without writing, then check the pinned actions for staleness
    python main.py compile .github/workflows/*.md --no-write --validate-actions

    # Check existing lock files (all discovered ones when none are given)
    python main.py validate-actions .github/workflows/triage.lock.yml

Exit status is 1 when any workflow fails to compile. Remaining files are
still compiled. Staleness warnings never change the exit status.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from __version__ import __version__
from compiler import Compiler
from core.config import get_defaults
from core.errors import CompilerError
from core.logging import configure_logging, get_logger, ComponentType
from services import ActionCache, ActionResolver, ActionValidator, GitHubTagLookup, WorkflowService

logger = get_logger(__name__, ComponentType.CLI)


def build_resolver(repo_root: str, force_refresh: bool = False) -> ActionResolver:
    """Resolver backed by the repository's action lock file and the GitHub API."""
    defaults = get_defaults().resolver
    cache = ActionCache.for_repository(repo_root)
    lookup = GitHubTagLookup(
        api_base_url=defaults.api_base_url,
        token=defaults.token,
        timeout=defaults.timeout_seconds,
    )
    return ActionResolver(cache, lookup, force_refresh=force_refresh)


def workflow_sources(repo_root: str) -> List[Path]:
    """Workflow markdown files under <repo_root>/.github/workflows."""
    return WorkflowService(Path(repo_root) / ".github" / "workflows").discover()


def lock_files(repo_root: str) -> List[Path]:
    """Compiled lock files beside the discovered workflow sources."""
    candidates = [path.with_suffix(".lock.yml") for path in workflow_sources(repo_root)]
    return [path for path in candidates if path.exists()]


def _print_report(report, source: str) -> None:
    for warning in report.warnings:
        print(f"warning: {source}: {warning}", file=sys.stderr)
    for failure in report.failures:
        print(f"warning: {source}: {failure}", file=sys.stderr)


def cmd_compile(args: argparse.Namespace) -> int:
    resolver = build_resolver(args.repo_root, force_refresh=args.force_refresh)
    compiler = Compiler(resolver)
    validator = ActionValidator(resolver) if args.validate_actions else None

    files = args.files or workflow_sources(args.repo_root)
    if not files:
        print(f"error: no workflow files given or found under {args.repo_root}/.github/workflows", file=sys.stderr)
        return 1

    status = 0
    for path in files:
        try:
            result = compiler.compile_file(path, write=not args.no_write, output_dir=args.output_dir)
        except CompilerError as e:
            print(f"error: {path}: {e}", file=sys.stderr)
            status = 1
            continue

        for warning in result.warnings:
            print(f"warning: {path}: {warning}", file=sys.stderr)
        if validator is not None:
            _print_report(validator.validate_text(result.lock_text), path)

        target = result.lock_file or "(not written)"
        print(f"{path} -> {target} ({len(result.job_names)} jobs)")

    if resolver.cache.save():
        logger.info(f"Updated action cache {resolver.cache.path}")
    return status


def cmd_validate_actions(args: argparse.Namespace) -> int:
    resolver = build_resolver(args.repo_root)
    validator = ActionValidator(resolver)

    stale = 0
    for path in args.files or lock_files(args.repo_root):
        try:
            report = validator.validate_file(path)
        except OSError as e:
            print(f"warning: cannot read {path}: {e}", file=sys.stderr)
            continue
        _print_report(report, path)
        stale += len(report.warnings)
        print(f"{path}: {report.checked} checked, {len(report.warnings)} stale")

    resolver.cache.save()
    if stale:
        print(f"{stale} stale action pin(s); recompile to update", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aw-compile",
        description="Compile agentic workflow markdown into workflow lock files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s compile
  %(prog)s compile .github/workflows/triage.md
  %(prog)s compile .github/workflows/*.md --no-write --validate-actions
  %(prog)s validate-actions .github/workflows/triage.lock.yml
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "WARNING"),
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit structured JSON logs on stderr",
    )
    parser.add_argument(
        "--repo-root",
        default=".",
        help="Repository holding .github/aw/actions-lock.json (default: .)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser("compile", help="Compile workflow markdown files")
    compile_parser.add_argument(
        "files",
        nargs="*",
        help="Workflow markdown files (default: .github/workflows/*.md under --repo-root)",
    )
    compile_parser.add_argument(
        "--no-write",
        action="store_true",
        help="Compile and validate without writing lock files",
    )
    compile_parser.add_argument(
        "--output-dir", "-o",
        help="Directory for lock files (default: beside each source)",
    )
    compile_parser.add_argument(
        "--validate-actions",
        action="store_true",
        help="Check pinned actions for staleness after compiling",
    )
    compile_parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Ignore cached action SHAs and resolve every tag again",
    )
    compile_parser.set_defaults(handler=cmd_compile)

    validate_parser = subparsers.add_parser(
        "validate-actions",
        help="Check pinned actions in compiled lock files",
    )
    validate_parser.add_argument(
        "files",
        nargs="*",
        help="Compiled .lock.yml files (default: lock files of the discovered workflows)",
    )
    validate_parser.set_defaults(handler=cmd_validate_actions)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs)

    if not Path(args.repo_root).is_dir():
        print(f"error: repository root not found: {args.repo_root}", file=sys.stderr)
        return 1
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
