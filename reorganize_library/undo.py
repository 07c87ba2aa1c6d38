"""
Undo of an applied plan.

Replays a move log backwards, putting every item back at its original
SOURCE name. Best effort: a missing item is reported and skipped, an
occupied original name is resolved with the same clash renaming as apply.
"""

import threading
from pathlib import Path
from typing import Iterable

from . import errors
from .errors import CopyVerificationError, MoveUnsupported
from .executor import MAX_CLASH_RETRIES, relocate
from .fs import LocalFilesystem
from .models import MoveLog, MoveOp, RestoreRecord, SkipRecord, UndoResult
from .naming import unique_child_name
from .utils import print_info, print_success, print_warning


def _restore(fs: LocalFilesystem, op: MoveOp, source_root: Path, library_root: Path) -> RestoreRecord | SkipRecord:
    current = library_root / op.destination_rel
    if not fs.exists(current):
        return SkipRecord(op.destination_rel, errors.DESTINATION_NOT_FOUND)

    original = source_root / op.source_rel
    restore_dir = original.parent
    is_dir = fs.is_dir(current)
    try:
        restore_dir.mkdir(parents=True, exist_ok=True)
        ignore_case = fs.is_case_insensitive(restore_dir)
        for _ in range(MAX_CLASH_RETRIES):
            name = unique_child_name(fs.child_names(restore_dir), original.name, is_dir, ignore_case)
            target = restore_dir / name
            try:
                relocate(fs, current, target)
                break
            except FileExistsError:
                continue
        else:
            return SkipRecord(op.destination_rel, f"I/O error: no free name for {original.name}")
    except MoveUnsupported:
        return SkipRecord(op.destination_rel, errors.CROSS_DEVICE)
    except CopyVerificationError:
        return SkipRecord(op.destination_rel, errors.COPY_VERIFY_FAILED)
    except OSError as e:
        return SkipRecord(op.destination_rel, errors.io_error_reason(e, missing=errors.DESTINATION_NOT_FOUND))

    return RestoreRecord(
        source_rel=op.source_rel,
        destination_rel=op.destination_rel,
        restored_rel=target.relative_to(source_root).as_posix(),
    )


def remove_created_folders(fs: LocalFilesystem, library_root: Path, created_folders: Iterable[str]) -> list[str]:
    """
    Remove folders an apply created, if they are empty again.

    Deepest folders go first so a category can disappear once its new
    subcategories are gone. Folders that still hold anything are kept.
    """
    removed = []
    ordered = sorted(set(created_folders), key=lambda rel: (-rel.count("/"), rel))
    for rel in ordered:
        path = library_root / rel
        if fs.is_dir(path) and fs.remove_empty_dir(path):
            removed.append(rel)
    return removed


def undo_moves(
    move_log: MoveLog,
    fs: LocalFilesystem | None = None,
    created_folders: Iterable[str] = (),
    cancel_event: threading.Event | None = None,
    quiet: bool = False,
) -> UndoResult:
    """
    Reverse a move log.

    Args:
        move_log: The log written by apply_plan.
        fs: Filesystem backend.
        created_folders: Folders (relative to LIBRARY) the apply created;
            those left empty are removed afterwards.
        cancel_event: Cooperative cancellation between items.
        quiet: Suppress console output.

    Returns:
        UndoResult listing restored items (with the name actually used),
        per-item failures and removed folders. The log is not modified.
    """
    fs = fs or LocalFilesystem()
    source_root = Path(move_log.source_root)
    library_root = Path(move_log.library_root)
    result = UndoResult()

    for op in reversed(move_log.operations):
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
            result.failures.append(SkipRecord(op.destination_rel, errors.CANCELLED))
            continue

        outcome = _restore(fs, op, source_root, library_root)
        if isinstance(outcome, RestoreRecord):
            result.restored.append(outcome)
            if outcome.renamed and not quiet:
                print_warning(f"{op.source_rel} is occupied, restored as {outcome.restored_rel}")
        else:
            result.failures.append(outcome)

    if not result.cancelled:
        result.removed_folders = remove_created_folders(fs, library_root, created_folders)

    if not quiet:
        print_info(f"[UNDO] {len(move_log.operations)} logged moves")
        summary = f"[UNDO] {len(result.restored)} restored, {len(result.failures)} failed"
        if result.removed_folders:
            summary += f", {len(result.removed_folders)} empty folders removed"
        if result.failures:
            print_warning(summary)
        else:
            print_success(summary)

    return result
