"""
SOURCE scanning.

Builds a SourceOverview: one entry per top-level item of SOURCE. Files are
described directly; directories are walked completely (explicit stack, no
recursion) and summarized with counts, a few sample children and their
largest files.
"""

import mimetypes
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import TAGS

from .errors import ScanCancelled, SourceRootUnavailable
from .fs import ChildInfo, LocalFilesystem
from .models import DirectoryEntry, FileEntry, SourceEntry, SourceOverview
from .topk import DEFAULT_TOP_K, TopKFileTracker
from .utils import is_bundle_dir_name, now_iso

DEFAULT_SAMPLE_CHILDREN = 10
NO_EXTENSION = "(no extension)"
OCTET_STREAM = "application/octet-stream"
LINK_CONTENT_TYPE = "inode/symlink"

# Names never reported (OS metadata, trash)
IGNORED_NAMES = {
    'System Volume Information', '$RECYCLE.BIN', '.fseventsd', '.Spotlight-V100', '.Trashes',
    '.DS_Store', 'Thumbs.db', 'desktop.ini', '.localized',
}

EXIF_EXTENSIONS = {'.jpg', '.jpeg', '.tiff', '.tif', '.webp', '.heic'}

ProgressCallback = Callable[[int, int, str], None]


def should_skip_name(name: str, include_hidden: bool = False) -> bool:
    if name in IGNORED_NAMES:
        return True
    return not include_hidden and name.startswith('.')


def split_extension(name: str) -> str:
    """Extension of a file name with case preserved ("" if none)."""
    dot = name.rfind('.')
    if dot <= 0 or dot == len(name) - 1:
        return ""
    return name[dot:]


def extension_key(name: str) -> str:
    ext = split_extension(name).lower()
    return ext if ext else NO_EXTENSION


def guess_content_type(name: str) -> str:
    """Best-effort MIME type from the file name; never fails."""
    mime, _ = mimetypes.guess_type(name, strict=False)
    return mime or OCTET_STREAM


def get_exif_date(filepath: Path) -> str | None:
    """Extract the 'DateTimeOriginal' (or 'DateTime') from an image as ISO text."""
    try:
        with Image.open(filepath) as img:
            exif = img.getexif()
            if not exif:
                return None

            for wanted in ('DateTimeOriginal', 'DateTime'):
                for tag_id in exif:
                    if TAGS.get(tag_id, tag_id) != wanted:
                        continue
                    date_str = exif.get(tag_id)
                    # Format is usually "YYYY:MM:DD HH:MM:SS"
                    if isinstance(date_str, str) and len(date_str) >= 19:
                        return date_str[:10].replace(':', '-') + 'T' + date_str[11:19]
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        pass
    return None


def describe_file(child: ChildInfo) -> FileEntry:
    """Build the entry for a top-level file or link."""
    if child.is_link:
        return FileEntry(
            rel_path=child.name,
            size=child.size,
            extension=split_extension(child.name),
            content_type=LINK_CONTENT_TYPE,
            is_link=True,
        )

    ext = split_extension(child.name)
    date_taken = None
    if ext.lower() in EXIF_EXTENSIONS:
        date_taken = get_exif_date(child.path)
    return FileEntry(
        rel_path=child.name,
        size=child.size,
        extension=ext,
        content_type=guess_content_type(child.name),
        date_taken=date_taken,
    )


def walk_directory(
    child: ChildInfo,
    fs: LocalFilesystem,
    sample_limit: int = DEFAULT_SAMPLE_CHILDREN,
    top_k: int = DEFAULT_TOP_K,
    include_hidden: bool = False,
    cancel_event: threading.Event | None = None,
) -> tuple[DirectoryEntry, Counter]:
    """
    Summarize one top-level directory by walking its whole subtree.

    Links are counted as files and never followed. A directory whose
    (device, inode) was already visited is not walked twice. Subdirectories
    that cannot be listed are skipped; if the top directory itself cannot be
    listed the entry is marked unreadable with zero counts.

    Returns:
        (entry, extension counts of every file found below it)

    Raises:
        ScanCancelled: If ``cancel_event`` is set during the walk.
    """
    entry = DirectoryEntry(rel_path=child.name, is_bundle=is_bundle_dir_name(child.name))
    ext_counts: Counter = Counter()
    tracker = TopKFileTracker(top_k)

    visited = {child.identity}
    stack: list[tuple[Path, str]] = [(child.path, "")]

    while stack:
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelled(f"Scan cancelled while walking {child.name}")

        current, rel_prefix = stack.pop()
        try:
            listing = fs.list_children(current)
        except OSError:
            if not rel_prefix:
                return DirectoryEntry(rel_path=child.name, unreadable=True, is_bundle=entry.is_bundle), Counter()
            continue

        subdirs = []
        for item in listing:
            if should_skip_name(item.name, include_hidden):
                continue
            rel = f"{rel_prefix}{item.name}"

            if not rel_prefix and len(entry.sample_children) < sample_limit:
                entry.sample_children.append(item.name)

            if item.is_dir:
                entry.directories += 1
                if item.identity in visited:
                    continue
                visited.add(item.identity)
                subdirs.append((item.path, rel + "/"))
                continue

            entry.files += 1
            ext_counts[extension_key(item.name)] += 1
            if item.is_link:
                continue
            entry.total_size += item.size
            tracker.observe(item.size, rel)

        # Reversed so directories are popped in listing order
        stack.extend(reversed(subdirs))

    entry.top_big_files = tracker.result()
    return entry, ext_counts


def scan_source(
    source_root: Path,
    fs: LocalFilesystem | None = None,
    sample_limit: int = DEFAULT_SAMPLE_CHILDREN,
    top_k: int = DEFAULT_TOP_K,
    max_workers: int = 4,
    include_hidden: bool = False,
    cancel_event: threading.Event | None = None,
    progress_callback: ProgressCallback | None = None,
) -> SourceOverview:
    """
    Scan the top level of SOURCE and summarize every item.

    Directory walks run in parallel, one per top-level directory; the
    overview is assembled only after all of them finished.

    Args:
        source_root: The SOURCE root.
        fs: Filesystem backend (local filesystem by default).
        sample_limit: Max sample children recorded per directory.
        top_k: Number of largest files recorded per directory.
        max_workers: Parallel directory walks.
        include_hidden: Also report dot-files.
        cancel_event: Set it to stop the scan between directories.
        progress_callback: Called as (done, total, name) per top-level item.

    Returns:
        The SourceOverview.

    Raises:
        SourceRootUnavailable: If SOURCE cannot be listed.
        ScanCancelled: If cancelled before completion.
    """
    fs = fs or LocalFilesystem()
    source_root = Path(source_root).resolve()
    if not source_root.is_dir():
        raise SourceRootUnavailable(f"Source directory not found: {source_root}")
    try:
        children = fs.list_children(source_root)
    except OSError as e:
        raise SourceRootUnavailable(f"Cannot read source directory {source_root}: {e}") from e

    children = [c for c in children if not should_skip_name(c.name, include_hidden)]
    total = len(children)
    entries: list[SourceEntry | None] = [None] * total
    ext_counts: Counter = Counter()
    done = 0

    def report(name: str):
        nonlocal done
        done += 1
        if progress_callback:
            progress_callback(done, total, name)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {}
        for i, child in enumerate(children):
            if cancel_event is not None and cancel_event.is_set():
                break
            if child.is_dir:
                futures[i] = pool.submit(
                    walk_directory, child, fs, sample_limit, top_k, include_hidden, cancel_event
                )
            else:
                entries[i] = describe_file(child)
                ext_counts[extension_key(child.name)] += 1
                report(child.name)

        try:
            for i, future in futures.items():
                entry, counts = future.result()
                entries[i] = entry
                ext_counts.update(counts)
                report(children[i].name)
        except ScanCancelled:
            for future in futures.values():
                future.cancel()
            raise

    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelled("Scan cancelled")

    return SourceOverview(
        source_root=str(source_root),
        generated_at=now_iso(),
        entries=[e for e in entries if e is not None],
        file_extension_counts=dict(sorted(ext_counts.items(), key=lambda x: (-x[1], x[0]))),
    )
