"""
LIBRARY indexing.

Reads exactly two levels: categories and their subcategories. Files sitting
directly in a category are reported under the ``_root`` pseudo-subcategory.
Nothing below the second level is read, and nothing is ever written.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .errors import LibraryRootUnavailable, ScanCancelled
from .fs import ChildInfo, LocalFilesystem
from .models import ROOT_SUBCATEGORY, LibCategory, LibraryIndex, LibSubcategory
from .scanner import should_skip_name
from .utils import now_iso

DEFAULT_SAMPLE_FILES = 8


def _files_in(children: list[ChildInfo], include_hidden: bool) -> list[str]:
    return [
        c.name for c in children
        if not c.is_dir and not should_skip_name(c.name, include_hidden)
    ]


def index_category(
    child: ChildInfo,
    fs: LocalFilesystem,
    sample_limit: int = DEFAULT_SAMPLE_FILES,
    include_hidden: bool = False,
) -> LibCategory:
    """
    Index one category directory.

    Returns a category whose first subcategory is always ``_root``. An
    unreadable category gets only an empty ``_root`` and ``notes="unreadable"``.
    """
    category = LibCategory(name=child.name)
    try:
        children = fs.list_children(child.path)
    except OSError:
        category.subcategories.append(LibSubcategory(name=ROOT_SUBCATEGORY))
        category.notes = "unreadable"
        return category

    root_files = _files_in(children, include_hidden)
    category.subcategories.append(LibSubcategory(
        name=ROOT_SUBCATEGORY,
        file_count=len(root_files),
        sample_files=root_files[:sample_limit],
    ))

    notes = []
    for sub in children:
        if not sub.is_dir or should_skip_name(sub.name, include_hidden):
            continue
        if sub.name == ROOT_SUBCATEGORY:
            notes.append(f"folder named '{ROOT_SUBCATEGORY}' ignored")
            continue
        try:
            sub_children = fs.list_children(sub.path)
        except OSError:
            category.subcategories.append(LibSubcategory(name=sub.name))
            notes.append(f"'{sub.name}' unreadable")
            continue
        # Deeper folders are neither descended into nor counted
        files = _files_in(sub_children, include_hidden)
        category.subcategories.append(LibSubcategory(
            name=sub.name,
            file_count=len(files),
            sample_files=files[:sample_limit],
        ))

    if len(category.subcategories) == 1 and category.subcategories[0].file_count == 0:
        notes.insert(0, "empty")
    category.notes = "; ".join(notes)
    return category


def index_library(
    library_root: Path,
    fs: LocalFilesystem | None = None,
    sample_limit: int = DEFAULT_SAMPLE_FILES,
    include_hidden: bool = False,
    max_workers: int = 4,
    cancel_event: threading.Event | None = None,
) -> LibraryIndex:
    """
    Build the LibraryIndex for a LIBRARY root.

    Empty categories are kept in the index so a planner may reuse them.

    Raises:
        LibraryRootUnavailable: If LIBRARY cannot be listed.
        ScanCancelled: If ``cancel_event`` is set before indexing finished.
    """
    fs = fs or LocalFilesystem()
    library_root = Path(library_root).resolve()
    if not library_root.is_dir():
        raise LibraryRootUnavailable(f"Library directory not found: {library_root}")
    try:
        children = fs.list_children(library_root)
    except OSError as e:
        raise LibraryRootUnavailable(f"Cannot read library directory {library_root}: {e}") from e

    category_dirs = [
        c for c in children
        if c.is_dir and not should_skip_name(c.name, include_hidden)
    ]

    def run(child: ChildInfo) -> LibCategory:
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelled("Library indexing cancelled")
        return index_category(child, fs, sample_limit, include_hidden)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        categories = list(pool.map(run, category_dirs))

    return LibraryIndex(
        library_root=str(library_root),
        generated_at=now_iso(),
        categories=categories,
    )
