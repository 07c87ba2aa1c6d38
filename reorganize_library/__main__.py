#!/usr/bin/env python3
"""
Library Reorganizer - CLI Entry Point
=====================================

Usage:
    python -m reorganize_library run ~/Downloads /Volumes/Library
    python -m reorganize_library scan ~/Downloads /Volumes/Library
    python -m reorganize_library plan ~/Downloads /Volumes/Library --planner heuristic
    python -m reorganize_library apply ~/Downloads /Volumes/Library --dry-run
    python -m reorganize_library undo ~/Downloads /Volumes/Library
"""

import argparse
import json
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path

from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .config import Settings
from .errors import ReorganizeError, WorkspaceError
from .executor import apply_plan
from .indexer import index_library
from .llm import DEFAULT_MODEL, GEMINI_MODELS
from .models import LibraryIndex, MoveLog, Plan, SourceOverview
from .planning import get_planner, validate_plan
from .scanner import scan_source
from .undo import undo_moves
from .utils import (
    console,
    load_json,
    print_error,
    print_header,
    print_info,
    print_plan_table,
    print_skips,
    print_success,
    print_warning,
)
from .workspace import (
    APPLY_REPORT,
    ARTIFACT_KINDS,
    LIBRARY_INDEX,
    MOVES,
    PLAN,
    SOURCE_INVENTORY,
    UNDO_REPORT,
    Workspace,
)


@contextmanager
def cancel_on_interrupt():
    """
    Turn the first Ctrl+C into a cooperative cancel.

    Yields the Event handed to scan/apply/undo; a second Ctrl+C raises
    KeyboardInterrupt as usual.
    """
    event = threading.Event()

    def handler(signum, frame):
        if event.is_set():
            raise KeyboardInterrupt
        event.set()
        console.print("\n[bold yellow]Cancelling... (press Ctrl+C again to abort)[/bold yellow]")

    if threading.current_thread() is not threading.main_thread():
        yield event
        return

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield event
    finally:
        signal.signal(signal.SIGINT, previous)


def confirm(question: str, assume_yes: bool) -> bool:
    """Ask a yes/no question; non-interactive sessions auto-approve."""
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        console.print("[dim]Non-interactive session, proceeding[/dim]")
        return True
    while True:
        choice = input(f"{question} [y/n]: ").strip().lower()
        if choice in ("y", "yes"):
            return True
        if choice in ("n", "no"):
            return False
        console.print("Invalid choice. Enter y or n")


def read_json_file(path: Path) -> dict:
    """Load a user-supplied JSON file, turning I/O and parse errors into a clean message."""
    try:
        return load_json(path)
    except (OSError, json.JSONDecodeError) as e:
        raise WorkspaceError(f"Cannot read {path}: {e}") from e


def open_workspace(args, settings: Settings) -> Workspace:
    workspace = Workspace.open(args.source, args.library, settings.workspace_home)
    console.print(f"[dim]Workspace: {workspace.directory}[/dim]")
    return workspace


# =============================================================================
# Pipeline steps
# =============================================================================

def run_scan(args, settings: Settings, workspace: Workspace) -> tuple[SourceOverview, LibraryIndex]:
    """Scan SOURCE, index LIBRARY and save both artifacts."""
    with cancel_on_interrupt() as cancel_event:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task_id = progress.add_task("Scanning...", total=None)

            def progress_cb(done, total, name):
                short_name = name if len(name) <= 40 else "..." + name[-37:]
                progress.update(task_id, description=f"Scanning: {done}/{total} {short_name}")

            overview = scan_source(
                args.source,
                max_workers=settings.workers,
                include_hidden=args.include_hidden,
                cancel_event=cancel_event,
                progress_callback=progress_cb,
            )
            progress.update(task_id, description="Indexing library...")
            index = index_library(
                args.library,
                max_workers=settings.workers,
                include_hidden=args.include_hidden,
                cancel_event=cancel_event,
            )

    workspace.save(SOURCE_INVENTORY, overview)
    workspace.save(LIBRARY_INDEX, index)
    print_info(f"Source: {overview.total_entries} items, "
               f"{sum(overview.file_extension_counts.values())} files")
    print_info(f"Library: {len(index.categories)} categories")
    return overview, index


def load_or_scan(args, settings: Settings, workspace: Workspace) -> tuple[SourceOverview, LibraryIndex]:
    """Reuse the latest scan artifacts unless --rescan is given or they are missing."""
    overview_data = workspace.load_latest(SOURCE_INVENTORY)
    index_data = workspace.load_latest(LIBRARY_INDEX)
    if getattr(args, "rescan", False) or overview_data is None or index_data is None:
        return run_scan(args, settings, workspace)
    console.print("[dim]Using saved scan results[/dim]")
    return SourceOverview.from_dict(overview_data), LibraryIndex.from_dict(index_data)


def run_plan(args, settings: Settings, workspace: Workspace,
             overview: SourceOverview, index: LibraryIndex) -> Plan:
    """Ask the chosen planner for a plan, validate it and save the accepted part."""
    planner = get_planner(args.planner, args.model or settings.model, settings.gemini_api_key)
    with console.status(f"[bold green]Planning with {args.planner}...[/bold green]"):
        raw_plan = planner.plan(overview, index)

    result = validate_plan(raw_plan, overview, index)
    print_skips(result.skips, title="Rejected placements")
    workspace.save(PLAN, result.plan)
    if result.plan.notes:
        console.print(f"[dim]Notes: {result.plan.notes}[/dim]")
    return result.plan


def run_apply(args, settings: Settings, workspace: Workspace, plan: Plan) -> int:
    print_plan_table(plan)
    if not plan.placements:
        print_warning("Nothing to move")
        return 0

    if not args.dry_run and not confirm("Proceed with this plan?", args.yes):
        console.print("[bold red]Plan cancelled[/bold red]")
        return 0

    workers = args.workers if args.workers is not None else settings.workers
    with cancel_on_interrupt() as cancel_event:
        result = apply_plan(
            plan,
            args.source,
            args.library,
            workspace=workspace,
            dry_run=args.dry_run,
            max_workers=workers,
            cancel_event=cancel_event,
        )

    print_skips(result.skipped)
    if args.dry_run:
        print_warning("This was a DRY-RUN. No files were actually moved.")
        console.print("       Run without --dry-run to apply changes.")
    elif result.log_path:
        console.print(f"Move log:  {result.log_path}")
    return 130 if result.cancelled else 0


# =============================================================================
# Commands
# =============================================================================

def cmd_scan(args, settings: Settings) -> int:
    """Scan command - inventory SOURCE and index LIBRARY."""
    workspace = open_workspace(args, settings)
    run_scan(args, settings, workspace)
    print_success("Scan complete")
    return 0


def cmd_plan(args, settings: Settings) -> int:
    """Plan command - build and validate a plan from the latest scan."""
    workspace = open_workspace(args, settings)
    overview, index = load_or_scan(args, settings, workspace)
    plan = run_plan(args, settings, workspace, overview, index)
    print_plan_table(plan)
    console.print(f"Plan:      {workspace.latest_path(PLAN)}")
    return 0


def cmd_apply(args, settings: Settings) -> int:
    """Apply command - execute the latest (or a given) plan."""
    workspace = open_workspace(args, settings)
    if args.plan:
        plan_data = read_json_file(args.plan)
    else:
        plan_data = workspace.load_latest(PLAN)
        if plan_data is None:
            print_error("No plan found. Run 'plan' first or pass --plan FILE.")
            return 1

    try:
        plan = Plan.from_dict(plan_data)
    except ValueError as e:
        print_error(f"Invalid plan: {e}")
        return 1

    # Every plan is re-checked against a fresh scan unless --no-rescan
    overview, index = load_or_scan(args, settings, workspace)
    result = validate_plan(plan, overview, index)
    print_skips(result.skips, title="Rejected placements")
    return run_apply(args, settings, workspace, result.plan)


def cmd_undo(args, settings: Settings) -> int:
    """Undo command - replay a move log in reverse."""
    workspace = open_workspace(args, settings)
    created_folders: list[str] = []
    if args.log:
        log_data = read_json_file(args.log)
    else:
        log_data = workspace.load_latest(MOVES)
        report = workspace.load_latest(APPLY_REPORT)
        if report is not None:
            created_folders = report.get("created_folders", [])
    if log_data is None:
        print_error("No move log found.")
        return 1

    try:
        move_log = MoveLog.from_dict(log_data)
    except (KeyError, TypeError) as e:
        print_error(f"Invalid move log: missing {e}")
        return 1
    if not move_log.operations:
        print_warning("Move log is empty, nothing to undo")
        return 0
    if not confirm(f"Restore {len(move_log.operations)} items to SOURCE?", args.yes):
        console.print("[bold red]Undo cancelled[/bold red]")
        return 0

    with cancel_on_interrupt() as cancel_event:
        result = undo_moves(move_log, created_folders=created_folders, cancel_event=cancel_event)
    workspace.save(UNDO_REPORT, result)
    print_skips(result.failures, title="Not restored")
    if result.cancelled:
        return 130
    return 1 if result.failures else 0


def cmd_run(args, settings: Settings) -> int:
    """Run command - full pipeline (scan → plan → validate → apply)."""
    print_header(
        "Library Reorganizer",
        f"Source:  {args.source}\nLibrary: {args.library}\nPlanner: {args.planner}",
    )
    workspace = open_workspace(args, settings)

    console.print("\n[bold cyan][STEP 1] Scanning...[/bold cyan]")
    overview, index = run_scan(args, settings, workspace)

    console.print("\n[bold cyan][STEP 2] Planning...[/bold cyan]")
    plan = run_plan(args, settings, workspace, overview, index)

    console.print("\n[bold cyan][STEP 3] Applying plan...[/bold cyan]")
    return run_apply(args, settings, workspace, plan)


def cmd_status(args, settings: Settings) -> int:
    """Status command - show the workspace and its artifacts."""
    workspace = open_workspace(args, settings)
    table = Table(title=f"Workspace {workspace.key}")
    table.add_column("Artifact", style="cyan")
    table.add_column("Latest")
    table.add_column("History", justify="right")
    for kind in ARTIFACT_KINDS:
        latest = workspace.latest_path(kind)
        table.add_row(kind, str(latest) if latest.exists() else "-", str(len(workspace.history(kind))))
    console.print(table)
    return 0


# =============================================================================
# Main
# =============================================================================

def add_roots(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", type=Path, help="Unsorted SOURCE directory")
    parser.add_argument("library", type=Path, help="Two-level LIBRARY directory")
    parser.add_argument("--include-hidden", action="store_true",
                        help="Include dot-files when scanning")


def add_planner_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--planner", choices=["gemini", "heuristic"], default="gemini",
                        help="Planner to use (default: gemini)")
    parser.add_argument("--model", type=str, default=None,
                        help=f"Gemini model: {', '.join(GEMINI_MODELS)} (default: {DEFAULT_MODEL})")


def add_apply_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dry-run", action="store_true",
                        help="Simulate changes without modifying files")
    parser.add_argument("--workers", type=int, default=None,
                        help="Parallel destination folders (1 = strictly in plan order)")
    parser.add_argument("--yes", "-y", action="store_true",
                        help="Do not ask for confirmation")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reorganize-library",
        description="Library Reorganizer - Sort a SOURCE folder into a two-level LIBRARY",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- SCAN command ---
    scan_parser = subparsers.add_parser("scan", help="Scan SOURCE and index LIBRARY")
    add_roots(scan_parser)
    scan_parser.set_defaults(func=cmd_scan)

    # --- PLAN command ---
    plan_parser = subparsers.add_parser("plan", help="Generate and validate a plan")
    add_roots(plan_parser)
    add_planner_args(plan_parser)
    plan_parser.add_argument("--rescan", action="store_true", help="Scan again instead of reusing results")
    plan_parser.set_defaults(func=cmd_plan)

    # --- APPLY command ---
    apply_parser = subparsers.add_parser("apply", help="Apply a plan to the filesystem")
    add_roots(apply_parser)
    add_apply_args(apply_parser)
    apply_parser.add_argument("--plan", type=Path, help="Plan file (default: latest plan)")
    apply_parser.add_argument("--no-rescan", dest="rescan", action="store_false",
                              help="Validate against the saved scan instead of scanning again")
    apply_parser.set_defaults(func=cmd_apply)

    # --- UNDO command ---
    undo_parser = subparsers.add_parser("undo", help="Undo the last apply")
    add_roots(undo_parser)
    undo_parser.add_argument("--log", type=Path, help="Move log file (default: latest)")
    undo_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    undo_parser.set_defaults(func=cmd_undo)

    # --- RUN command (full pipeline) ---
    run_parser = subparsers.add_parser("run", help="Full pipeline: scan → plan → apply")
    add_roots(run_parser)
    add_planner_args(run_parser)
    add_apply_args(run_parser)
    run_parser.set_defaults(func=cmd_run)

    # --- STATUS command ---
    status_parser = subparsers.add_parser("status", help="Show workspace artifacts")
    add_roots(status_parser)
    status_parser.set_defaults(func=cmd_status)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    args.source = args.source.expanduser().resolve()
    args.library = args.library.expanduser().resolve()
    settings = Settings.from_env()

    try:
        return args.func(args, settings)
    except ReorganizeError as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\n[ABORT] Operation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
