"""
Plan validation for the Library Reorganizer.

Checks that a planner's proposal is safe to execute against the current
SourceOverview and LibraryIndex. Bad placements are dropped with a reason,
never repaired.
"""

from .. import errors
from ..models import (
    FolderRequest,
    LibraryIndex,
    Placement,
    Plan,
    SkipRecord,
    SourceOverview,
    ValidationResult,
)
from ..naming import invalid_name_reason
from ..utils import print_info, print_warning


def _target_label(category: str, subcategory: str | None) -> str:
    return f"{category}/{subcategory or '_root'}"


def _name_problem(category: str, subcategory: str | None) -> str | None:
    """Reason string if either level of a destination is unusable."""
    problems = [invalid_name_reason(category), invalid_name_reason(subcategory)]
    if "depth" in problems:
        return errors.INVALID_DEPTH
    if "name" in problems:
        return errors.INVALID_NAME
    return None


def validate_plan(
    plan: Plan,
    overview: SourceOverview,
    index: LibraryIndex,
    quiet: bool = False,
) -> ValidationResult:
    """
    Validate a plan before applying it.

    Folder requests with unusable names are dropped first. Then every
    placement is checked, in order:
    - its path is exactly one top-level SOURCE entry (and not placed twice)
    - its target exists in the library or is declared in new_folders
    - its category/subcategory names are valid and add exactly two levels

    Args:
        plan: The plan returned by the planner.
        overview: The SourceOverview the plan was made from.
        index: The LibraryIndex the plan was made from.
        quiet: Suppress console output.

    Returns:
        ValidationResult with the filtered plan and one SkipRecord per dropped
        folder request or placement.
    """
    skips: list[SkipRecord] = []

    # Folder requests
    valid_folders: list[FolderRequest] = []
    requested: set[tuple[str, str | None]] = set()
    for request in plan.new_folders:
        problem = _name_problem(request.category, request.subcategory)
        if problem:
            skips.append(SkipRecord(f"new folder {_target_label(request.category, request.subcategory)}", problem))
            continue
        valid_folders.append(request)
        requested.add((request.category, request.subcategory))
        # Creating a subcategory implies creating its category
        requested.add((request.category, None))

    # Placements
    source_paths = {e.rel_path for e in overview.entries}
    placed: set[str] = set()
    valid_placements: list[Placement] = []

    for placement in plan.placements:
        if placement.path not in source_paths:
            skips.append(SkipRecord(placement.path, errors.SOURCE_NOT_FOUND))
            continue
        if placement.path in placed:
            skips.append(SkipRecord(placement.path, errors.DUPLICATE_PLACEMENT))
            continue

        key = placement.target_key()
        if not index.has_target(*key) and key not in requested:
            skips.append(SkipRecord(placement.path, errors.MISSING_CATEGORY))
            continue

        problem = _name_problem(*key)
        if problem:
            skips.append(SkipRecord(placement.path, problem))
            continue

        placed.add(placement.path)
        valid_placements.append(placement)

    if not quiet:
        if skips:
            print_warning(f"Skipped {len(skips)} plan items:")
            for skip in skips[:5]:
                print(f"       - {skip.item}: {skip.reason}")
            if len(skips) > 5:
                print(f"       ... and {len(skips) - 5} more")
        print_info(
            f"Plan validated: {len(valid_placements)} placements "
            f"(from {len(plan.placements)} proposed), {len(valid_folders)} new folders"
        )

    filtered = Plan(placements=valid_placements, new_folders=valid_folders, notes=plan.notes)
    return ValidationResult(plan=filtered, skips=skips)
