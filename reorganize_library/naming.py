"""
Destination naming helpers.

``unique_child_name`` picks a free name inside a destination directory by
appending `` (n)`` before the extension. It never merges: a clash always
yields a different name.
"""

import re
from typing import Collection

# Characters rejected by at least one common filesystem (NTFS/exFAT/FAT32)
INVALID_NAME_CHARS = set('<>:"|?*')
PATH_SEPARATORS = ("/", "\\")
WINDOWS_RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def split_name(name: str, is_dir: bool = False) -> tuple[str, str]:
    """
    Split a name into (base, ext) at the last dot.

    Directories are never split. A leading dot (".bashrc") does not start
    an extension.

    Examples:
        >>> split_name("a.tar.gz")
        ('a.tar', '.gz')
        >>> split_name("Photos.2020", is_dir=True)
        ('Photos.2020', '')
    """
    if is_dir:
        return name, ""
    dot = name.rfind(".")
    if dot <= 0 or dot == len(name) - 1:
        return name, ""
    return name[:dot], name[dot:]


def unique_child_name(
    existing: Collection[str], candidate: str, is_dir: bool = False, ignore_case: bool = False
) -> str:
    """
    Return a name for ``candidate`` that is not in ``existing``.

    Args:
        existing: Snapshot of the names already present in the destination.
        candidate: The desired name.
        is_dir: True if the item being placed is a directory.
        ignore_case: The destination volume ignores case, so "A.txt" and
            "a.txt" clash.

    Returns:
        ``candidate`` if free, else "<base> (n)<ext>" for the smallest n >= 2
        that is free.
    """
    if ignore_case:
        folded = {name.casefold() for name in existing}

        def taken(name: str) -> bool:
            return name.casefold() in folded
    else:
        def taken(name: str) -> bool:
            return name in existing

    if not taken(candidate):
        return candidate

    base, ext = split_name(candidate, is_dir)
    n = 2
    while True:
        name = f"{base} ({n}){ext}"
        if not taken(name):
            return name
        n += 1


def invalid_name_reason(name: str | None) -> str | None:
    """
    Check a single category/subcategory folder name.

    Returns:
        None if the name is usable, else "depth" when the name would add or
        escape a directory level, or "name" when it contains characters the
        destination filesystem may reject.
    """
    if name is None:
        return None
    if not name.strip() or name in (".", ".."):
        return "depth"
    if any(sep in name for sep in PATH_SEPARATORS):
        return "depth"
    if _CONTROL_CHARS.search(name) or any(c in INVALID_NAME_CHARS for c in name):
        return "name"
    if name != name.rstrip(" ."):
        return "name"
    if name.split(".")[0].upper() in WINDOWS_RESERVED_NAMES:
        return "name"
    return None
