"""
Plan execution for the Library Reorganizer.

Applies a validated plan: creates requested folders, moves each top-level
SOURCE item into its category/subcategory under a clash-free name, and
records every completed move in the move log as it goes.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from tqdm import tqdm

from . import errors
from .errors import (
    CopyVerificationError,
    LibraryRootUnavailable,
    MoveUnsupported,
    SourceRootUnavailable,
)
from .fs import LocalFilesystem
from .models import ApplyResult, MoveLog, MoveOp, Placement, Plan, SkipRecord
from .naming import unique_child_name
from .utils import now_iso, print_info, print_success, print_warning
from .workspace import APPLY_REPORT, MOVES, Workspace

# Attempts at finding a free name when the destination keeps changing under us
MAX_CLASH_RETRIES = 20


def relocate(fs: LocalFilesystem, src: Path, dst: Path, allow_copy: bool = True) -> bool:
    """
    Move ``src`` to ``dst`` as one unit, never overwriting ``dst``.

    Tries a plain rename first. If the filesystem cannot rename (different
    device), copies to a hidden sibling of ``dst``, verifies the copy, renames
    it into place and only then deletes ``src``.

    Returns:
        True if the copy fallback was used.

    If the original cannot be deleted after a verified copy, both are kept
    and a warning is printed.

    Raises:
        FileExistsError: ``dst`` appeared; the caller should pick another name.
        MoveUnsupported: A rename is impossible and ``allow_copy`` is False.
        CopyVerificationError: The copy did not match; ``src`` is untouched.
        OSError: Any other filesystem failure.
    """
    try:
        fs.move(src, dst)
        return False
    except MoveUnsupported:
        if not allow_copy:
            raise

    partial = dst.with_name(f".{dst.name}.partial-{os.getpid()}-{threading.get_ident()}")
    try:
        fs.copy(src, partial)
        if fs.tree_signature(src) != fs.tree_signature(partial):
            raise CopyVerificationError(f"Copy of {src} does not match the original")
        fs.move(partial, dst)
    except BaseException:
        if fs.exists(partial):
            fs.remove(partial)
        raise

    try:
        fs.remove(src)
    except OSError as e:
        # The verified copy stays; a leftover original is a duplicate, not a loss
        print_warning(f"Copied {src.name} but could not remove the original: {e}")
    return True


def destination_dir(library_root: Path, placement: Placement) -> Path:
    """Category directory, or category/subcategory ("_root" is the category itself)."""
    target = library_root / placement.category
    if placement.subcategory:
        target = target / placement.subcategory
    return target


class _Run:
    """Mutable state of a single plan application, shared by worker threads."""

    def __init__(self, plan, source_root, library_root, fs, workspace, dry_run,
                 allow_copy, cancel_event, pbar):
        self.plan = plan
        self.source_root = source_root
        self.library_root = library_root
        self.fs = fs
        self.workspace = workspace
        self.dry_run = dry_run
        self.allow_copy = allow_copy
        self.cancel_event = cancel_event
        self.pbar = pbar

        self.lock = threading.Lock()
        self.log = MoveLog(
            executed_at=now_iso(),
            source_root=str(source_root),
            library_root=str(library_root),
        )
        self.log_path: Path | None = None
        self.skips: list[tuple[int, SkipRecord]] = []
        self.created: list[str] = []
        # Names handed out during a dry run, per destination directory
        self.reserved: dict[Path, set[str]] = {}

    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def rel_to_library(self, path: Path) -> str:
        return path.relative_to(self.library_root).as_posix()

    # -- folders ---------------------------------------------------------------

    def ensure_dir(self, path: Path) -> None:
        """Create ``path`` and its missing parents below the library root."""
        missing = []
        current = path
        while current != self.library_root and not self.fs.exists(current):
            missing.append(current)
            current = current.parent
        for directory in reversed(missing):
            if self.dry_run:
                created = True
            else:
                created = self.fs.make_dir(directory)
            if created:
                with self.lock:
                    rel = self.rel_to_library(directory)
                    if rel not in self.created:
                        self.created.append(rel)

    def create_folders(self) -> None:
        for request in self.plan.new_folders:
            target = self.library_root / request.category
            if request.subcategory:
                target = target / request.subcategory
            try:
                self.ensure_dir(target)
            except OSError as e:
                label = f"new folder {self.rel_to_library(target)}"
                self.skips.append((-1, SkipRecord(label, errors.io_error_reason(e))))

    # -- placements ------------------------------------------------------------

    def record(self, index: int, outcome: MoveOp | SkipRecord) -> None:
        with self.lock:
            if isinstance(outcome, MoveOp):
                self.log.operations.append(outcome)
                if self.log_path is not None:
                    self.workspace.write_snapshot(self.log_path, self.log)
            else:
                self.skips.append((index, outcome))
        if self.pbar is not None:
            self.pbar.update(1)

    def place(self, placement: Placement) -> MoveOp | SkipRecord:
        if self.cancelled():
            return SkipRecord(placement.path, errors.CANCELLED)

        src = self.source_root / placement.path
        if not self.fs.exists(src):
            return SkipRecord(placement.path, errors.SOURCE_NOT_FOUND)
        if src == self.library_root or src in self.library_root.parents:
            return SkipRecord(placement.path, errors.DESTINATION_INSIDE_SOURCE)

        target_dir = destination_dir(self.library_root, placement)
        is_dir = self.fs.is_dir(src)

        if self.dry_run:
            self.ensure_dir(target_dir)
            with self.lock:
                taken = self.reserved.setdefault(target_dir, set())
                name = unique_child_name(self.fs.child_names(target_dir) | taken, src.name, is_dir,
                                         self.fs.is_case_insensitive(target_dir))
                taken.add(name)
            return MoveOp(placement.path, self.rel_to_library(target_dir / name), placement.reason)

        try:
            self.ensure_dir(target_dir)
            ignore_case = self.fs.is_case_insensitive(target_dir)
            for _ in range(MAX_CLASH_RETRIES):
                # Re-list right before moving: the directory may have changed
                name = unique_child_name(self.fs.child_names(target_dir), src.name, is_dir, ignore_case)
                dst = target_dir / name
                try:
                    relocate(self.fs, src, dst, self.allow_copy)
                    break
                except FileExistsError:
                    continue
            else:
                return SkipRecord(placement.path, f"I/O error: no free name for {src.name}")
        except MoveUnsupported:
            return SkipRecord(placement.path, errors.CROSS_DEVICE)
        except CopyVerificationError:
            return SkipRecord(placement.path, errors.COPY_VERIFY_FAILED)
        except OSError as e:
            return SkipRecord(placement.path, errors.io_error_reason(e))

        return MoveOp(placement.path, self.rel_to_library(dst), placement.reason)

    def run_group(self, items: list[tuple[int, Placement]]) -> None:
        # One destination directory: strictly sequential so name checks do not race
        for index, placement in items:
            self.record(index, self.place(placement))


def apply_plan(
    plan: Plan,
    source_root: Path,
    library_root: Path,
    workspace: Workspace | None = None,
    fs: LocalFilesystem | None = None,
    dry_run: bool = False,
    max_workers: int = 4,
    allow_copy_fallback: bool = True,
    cancel_event: threading.Event | None = None,
    show_progress: bool = True,
    quiet: bool = False,
) -> ApplyResult:
    """
    Apply (or simulate) a validated plan.

    Placements that land in the same directory are processed one after the
    other in plan order; different destination directories may proceed in
    parallel. A failing item is recorded as a skip and the run continues.
    Setting ``cancel_event`` stops new items from starting; items already
    being moved complete.

    Args:
        plan: A plan that passed validate_plan.
        source_root: SOURCE root.
        library_root: LIBRARY root.
        workspace: Where the move log and report are persisted (optional).
        fs: Filesystem backend.
        dry_run: Compute destinations without touching anything.
        max_workers: Parallel destination directories.
        allow_copy_fallback: Copy + verify + delete when a rename is impossible.
        cancel_event: Cooperative cancellation.
        show_progress: Show a tqdm progress bar.
        quiet: Suppress console output.

    Returns:
        ApplyResult with the moves made (same order as the log), the skipped
        items and the folders created.

    Raises:
        SourceRootUnavailable / LibraryRootUnavailable: If a root is missing.
    """
    fs = fs or LocalFilesystem()
    source_root = Path(source_root).resolve()
    library_root = Path(library_root).resolve()
    if not source_root.is_dir():
        raise SourceRootUnavailable(f"Source directory not found: {source_root}")
    if not library_root.is_dir():
        raise LibraryRootUnavailable(f"Library directory not found: {library_root}\nIs the drive connected?")

    mode = "DRY-RUN" if dry_run else "APPLY"
    if not quiet:
        print_info(f"[{mode}] {len(plan.placements)} placements, {len(plan.new_folders)} folder requests")

    with tqdm(total=len(plan.placements), unit="item", disable=not show_progress or quiet) as pbar:
        run = _Run(plan, source_root, library_root, fs, workspace, dry_run,
                   allow_copy_fallback, cancel_event, pbar)

        if workspace is not None and not dry_run:
            run.log_path = workspace.snapshot_path(MOVES)
            workspace.write_snapshot(run.log_path, run.log)
            if not quiet:
                print_info(f"Move log streaming to '{run.log_path}'")

        run.create_folders()

        groups: dict[Path, list[tuple[int, Placement]]] = {}
        for index, placement in enumerate(plan.placements):
            groups.setdefault(destination_dir(library_root, placement), []).append((index, placement))

        if max_workers <= 1 or len(groups) <= 1:
            run.run_group(list(enumerate(plan.placements)))
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                for future in [pool.submit(run.run_group, items) for items in groups.values()]:
                    future.result()

    result = ApplyResult(
        moved=list(run.log.operations),
        skipped=[skip for _, skip in sorted(run.skips, key=lambda s: s[0])],
        created_folders=list(run.created),
        cancelled=run.cancelled(),
        dry_run=dry_run,
        log_path=str(run.log_path) if run.log_path else None,
    )

    if workspace is not None and not dry_run:
        if result.moved:
            workspace.publish_latest(MOVES, run.log)
            workspace.save(APPLY_REPORT, result)
        else:
            # Nothing moved: keep the snapshots but leave the previous apply undoable
            workspace.write_snapshot(workspace.snapshot_path(APPLY_REPORT), result)

    if not quiet:
        summary = f"[{mode}] {len(result.moved)} moved, {len(result.skipped)} skipped"
        if result.created_folders:
            summary += f", {len(result.created_folders)} folders created"
        if result.cancelled:
            print_warning(summary + " (cancelled)")
        else:
            print_success(summary)

    return result
