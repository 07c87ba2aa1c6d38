"""
Local filesystem access for the Library Reorganizer.

The scanner, executor and undo engine only use the methods on
``LocalFilesystem``; a different storage backend can be swapped in by
providing an object with the same methods.
"""

import errno
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from .errors import MoveUnsupported

# errno values meaning "this volume cannot hard-link", not a real failure
_NO_HARD_LINKS = {errno.EPERM, errno.EMLINK, errno.ENOSYS, errno.ENOTSUP, errno.EOPNOTSUPP}


@dataclass
class ChildInfo:
    """Metadata for one directory child, taken without following links."""
    name: str
    path: Path
    is_dir: bool
    is_link: bool
    size: int
    identity: tuple[int, int]
    modified: float = 0.0


class LocalFilesystem:
    """Filesystem primitives backed by ``os`` / ``shutil``."""

    def list_children(self, directory: Path) -> list[ChildInfo]:
        """
        List the direct children of a directory, sorted by name.

        Raises:
            OSError: If the directory itself cannot be listed.
        """
        children = []
        with os.scandir(directory) as it:
            for entry in it:
                try:
                    st = entry.stat(follow_symlinks=False)
                    is_link = entry.is_symlink()
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    # Vanished or unreadable child; report it as an empty file
                    children.append(ChildInfo(entry.name, Path(entry.path), False, False, 0, (0, 0)))
                    continue
                children.append(ChildInfo(
                    name=entry.name,
                    path=Path(entry.path),
                    is_dir=is_dir,
                    is_link=is_link,
                    size=0 if is_dir else st.st_size,
                    identity=(st.st_dev, st.st_ino),
                    modified=st.st_mtime,
                ))
        children.sort(key=lambda c: (c.name.casefold(), c.name))
        return children

    def child_names(self, directory: Path) -> set[str]:
        """Names currently present in a directory (empty if it does not exist)."""
        try:
            return set(os.listdir(directory))
        except FileNotFoundError:
            return set()

    def exists(self, path: Path) -> bool:
        return os.path.lexists(path)

    def is_dir(self, path: Path) -> bool:
        return path.is_dir() and not path.is_symlink()

    def make_dir(self, path: Path) -> bool:
        """
        Create a directory if it is absent.

        Returns:
            True if the directory was created, False if it already existed.
        """
        try:
            path.mkdir()
            return True
        except FileExistsError:
            if not path.is_dir():
                raise
            return False

    def is_case_insensitive(self, directory: Path) -> bool:
        """
        True if ``directory`` lives on a volume that ignores case (macOS and
        Windows drives by default).

        Decided from an existing child whose case-swapped name resolves too;
        an empty directory reports False.
        """
        try:
            names = os.listdir(directory)
        except OSError:
            return False
        for name in names:
            swapped = name.swapcase()
            if swapped == name or swapped.swapcase() != name or swapped in names:
                continue
            return os.path.lexists(os.path.join(directory, swapped))
        return False

    def move(self, src: Path, dst: Path) -> None:
        """
        Rename ``src`` to ``dst`` without ever replacing an existing item.

        Regular files are hard-linked at ``dst`` and then unlinked, so an item
        appearing at ``dst`` meanwhile makes the move fail instead of being
        replaced. Directories, links and volumes without hard links use
        ``os.rename`` after an existence check; an item created at ``dst``
        between the check and the rename is the remaining window.

        Raises:
            FileExistsError: If ``dst`` already exists.
            MoveUnsupported: If a rename is impossible (different device).
            OSError: For any other failure.
        """
        if os.path.isfile(src) and not os.path.islink(src) and self._link_move(src, dst):
            return
        if os.path.lexists(dst):
            raise FileExistsError(errno.EEXIST, "Destination exists", str(dst))
        try:
            os.rename(src, dst)
        except OSError as e:
            if e.errno == errno.EXDEV:
                raise MoveUnsupported(f"Cannot rename across devices: {src} -> {dst}") from e
            raise

    def _link_move(self, src: Path, dst: Path) -> bool:
        """Link ``src`` at ``dst`` then drop ``src``; False if the volume has no hard links."""
        try:
            os.link(src, dst)
        except FileExistsError:
            raise
        except OSError as e:
            if e.errno == errno.EXDEV:
                raise MoveUnsupported(f"Cannot rename across devices: {src} -> {dst}") from e
            if e.errno in _NO_HARD_LINKS:
                return False
            raise
        try:
            os.unlink(src)
        except OSError:
            os.unlink(dst)
            raise
        return True

    def copy(self, src: Path, dst: Path) -> None:
        if os.path.lexists(dst):
            raise FileExistsError(errno.EEXIST, "Destination exists", str(dst))
        if src.is_dir() and not src.is_symlink():
            shutil.copytree(src, dst, symlinks=True)
        else:
            shutil.copy2(src, dst, follow_symlinks=False)

    def remove(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()

    def remove_empty_dir(self, path: Path) -> bool:
        """Remove a directory only if it is empty."""
        try:
            os.rmdir(path)
            return True
        except OSError:
            return False

    def tree_signature(self, path: Path) -> dict[str, int]:
        """
        Map every relative path under ``path`` to its size (-1 for directories).

        Used to verify a copy before the original is deleted.
        """
        if not path.is_dir() or path.is_symlink():
            return {"": os.lstat(path).st_size}
        signature: dict[str, int] = {}
        stack = [path]
        while stack:
            current = stack.pop()
            for child in self.list_children(current):
                rel = child.path.relative_to(path).as_posix()
                if child.is_dir:
                    signature[rel] = -1
                    stack.append(child.path)
                else:
                    signature[rel] = child.size
        return signature
