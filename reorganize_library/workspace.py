"""
Per (SOURCE, LIBRARY) workspace for persisted artifacts.

Each pair of roots gets its own directory, keyed by a digest of the two
resolved paths. Every artifact is kept twice:

    <kind>_<YYYYmmdd_HHMMSS>.json   append-only history
    <kind>_latest.json              the most recent successful one

"latest" is only replaced (atomically) once an artifact was produced
successfully, so a failed step never clobbers it.
"""

import hashlib
import json
import re
from pathlib import Path
from typing import Any

from .errors import WorkspaceError
from .utils import atomic_write_json, file_timestamp, load_json, now_iso

SOURCE_INVENTORY = "source_inventory"
LIBRARY_INDEX = "library_index"
PLAN = "plan"
MOVES = "moves"
APPLY_REPORT = "apply_report"
UNDO_REPORT = "undo_report"

ARTIFACT_KINDS = (SOURCE_INVENTORY, LIBRARY_INDEX, PLAN, MOVES, APPLY_REPORT, UNDO_REPORT)

_SNAPSHOT_RE = re.compile(r"^(?P<kind>[a-z_]+?)_(?P<stamp>\d{8}_\d{6}(?:_\d+)?)\.json$")


def workspace_key(source_root: Path, library_root: Path) -> str:
    """Stable 16 hex character key for a (SOURCE, LIBRARY) pair."""
    raw = f"{Path(source_root).resolve()}\n{Path(library_root).resolve()}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class Workspace:
    """
    Artifact store for one (SOURCE, LIBRARY) pair.

    Create with ``Workspace.open`` and pass the instance to whatever needs
    to read or write artifacts.
    """

    def __init__(self, directory: Path, source_root: Path, library_root: Path):
        self.directory = directory
        self.source_root = source_root
        self.library_root = library_root

    @property
    def key(self) -> str:
        return self.directory.name

    @classmethod
    def open(cls, source_root: Path, library_root: Path, base_dir: Path | None = None) -> "Workspace":
        """
        Derive the key, ensure the directory exists and record both roots.

        Args:
            source_root: SOURCE root.
            library_root: LIBRARY root.
            base_dir: Parent directory for all workspaces (see config).
        """
        if base_dir is None:
            from .config import Settings
            base_dir = Settings.from_env().workspace_home

        source_root = Path(source_root).resolve()
        library_root = Path(library_root).resolve()
        directory = Path(base_dir) / workspace_key(source_root, library_root)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Cannot create workspace {directory}: {e}") from e

        ws = cls(directory, source_root, library_root)
        descriptor = directory / "workspace.json"
        if not descriptor.exists():
            atomic_write_json({
                "key": ws.key,
                "source_root": str(source_root),
                "library_root": str(library_root),
                "created_at": now_iso(),
            }, descriptor)
        return ws

    # -- paths -----------------------------------------------------------------

    def latest_path(self, kind: str) -> Path:
        self._check_kind(kind)
        return self.directory / f"{kind}_latest.json"

    def snapshot_path(self, kind: str) -> Path:
        """
        Reserve a fresh timestamped path for ``kind``.

        The file is created empty-marked so two calls in the same second get
        distinct names (``_1``, ``_2``, ... suffixes).
        """
        self._check_kind(kind)
        stamp = file_timestamp()
        path = self.directory / f"{kind}_{stamp}.json"
        counter = 1
        while True:
            try:
                # Exclusive create reserves the name
                with open(path, "x", encoding="utf-8"):
                    pass
                return path
            except FileExistsError:
                path = self.directory / f"{kind}_{stamp}_{counter}.json"
                counter += 1

    # -- read/write ------------------------------------------------------------

    def save(self, kind: str, data: Any) -> Path:
        """Write a new timestamped snapshot, then swap it in as latest."""
        path = self.snapshot_path(kind)
        self.write_snapshot(path, data)
        self.publish_latest(kind, data)
        return path

    def write_snapshot(self, path: Path, data: Any) -> None:
        """Rewrite an already reserved snapshot (used for incremental logs)."""
        try:
            atomic_write_json(data, path)
        except BaseException:
            # A reservation that never got content must not show up in history()
            if path.exists() and path.stat().st_size == 0:
                path.unlink()
            raise

    def publish_latest(self, kind: str, data: Any) -> None:
        atomic_write_json(data, self.latest_path(kind))

    def load_latest(self, kind: str) -> dict | None:
        path = self.latest_path(kind)
        if not path.exists():
            return None
        try:
            return load_json(path)
        except (OSError, json.JSONDecodeError) as e:
            raise WorkspaceError(f"Cannot read {path}: {e}") from e

    def history(self, kind: str) -> list[Path]:
        """Timestamped snapshots of ``kind``, oldest first."""
        self._check_kind(kind)
        snapshots = []
        for path in self.directory.glob(f"{kind}_*.json"):
            match = _SNAPSHOT_RE.match(path.name)
            if match and match.group("kind") == kind:
                snapshots.append(path)
        return sorted(snapshots, key=lambda p: _stamp_sort_key(p.name))

    def _check_kind(self, kind: str) -> None:
        if kind not in ARTIFACT_KINDS:
            raise WorkspaceError(f"Unknown artifact kind: {kind}")


def _stamp_sort_key(name: str) -> tuple[str, int]:
    match = _SNAPSHOT_RE.match(name)
    stamp = match.group("stamp")
    base, _, counter = stamp[:15], stamp[15:16], stamp[16:]
    return base, int(counter) if counter else 0
