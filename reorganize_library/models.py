"""
Data model for the Library Reorganizer.

Every record round-trips through plain JSON dicts via ``to_dict`` /
``from_dict`` so it can be stored in the workspace and handed to a planner.
"""

from dataclasses import dataclass, field
from typing import Any

ROOT_SUBCATEGORY = "_root"


def normalize_subcategory(value: Any) -> str | None:
    """Map ``None``, ``""`` and ``"_root"`` to ``None`` (files directly in the category)."""
    if value is None:
        return None
    value = str(value)
    if value == "" or value == ROOT_SUBCATEGORY:
        return None
    return value


# -----------------------------------------------------------------------------
# Source overview
# -----------------------------------------------------------------------------

@dataclass
class FileEntry:
    """A top-level file (or link) in SOURCE."""
    rel_path: str
    size: int
    extension: str
    content_type: str
    is_link: bool = False
    date_taken: str | None = None

    kind = "file"

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind,
            "rel_path": self.rel_path,
            "size": self.size,
            "extension": self.extension,
            "content_type": self.content_type,
        }
        if self.is_link:
            data["is_link"] = True
        if self.date_taken:
            data["date_taken"] = self.date_taken
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FileEntry":
        return cls(
            rel_path=data["rel_path"],
            size=int(data.get("size", 0)),
            extension=data.get("extension", ""),
            content_type=data.get("content_type", "application/octet-stream"),
            is_link=bool(data.get("is_link", False)),
            date_taken=data.get("date_taken"),
        )


@dataclass
class DirectoryEntry:
    """
    A top-level directory in SOURCE, summarized from a walk of its whole subtree.

    ``directories``/``files`` count everything below it, ``sample_children``
    holds a few of its direct children and ``top_big_files`` the names of its
    largest files, largest first.
    """
    rel_path: str
    directories: int = 0
    files: int = 0
    sample_children: list[str] = field(default_factory=list)
    top_big_files: list[str] = field(default_factory=list)
    total_size: int = 0
    unreadable: bool = False
    is_bundle: bool = False

    kind = "directory"

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind,
            "rel_path": self.rel_path,
            "counts": {"directories": self.directories, "files": self.files},
            "sample_children": list(self.sample_children),
            "top_big_files": list(self.top_big_files),
            "total_size": self.total_size,
        }
        if self.unreadable:
            data["unreadable"] = True
        if self.is_bundle:
            data["is_bundle"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DirectoryEntry":
        counts = data.get("counts", {})
        return cls(
            rel_path=data["rel_path"],
            directories=int(counts.get("directories", 0)),
            files=int(counts.get("files", 0)),
            sample_children=list(data.get("sample_children", [])),
            top_big_files=list(data.get("top_big_files", [])),
            total_size=int(data.get("total_size", 0)),
            unreadable=bool(data.get("unreadable", False)),
            is_bundle=bool(data.get("is_bundle", False)),
        )


SourceEntry = FileEntry | DirectoryEntry


def entry_from_dict(data: dict) -> SourceEntry:
    if data.get("kind") == "directory":
        return DirectoryEntry.from_dict(data)
    return FileEntry.from_dict(data)


@dataclass
class SourceOverview:
    source_root: str
    generated_at: str
    entries: list[SourceEntry] = field(default_factory=list)
    file_extension_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_entries(self) -> int:
        return len(self.entries)

    def find(self, rel_path: str) -> SourceEntry | None:
        for entry in self.entries:
            if entry.rel_path == rel_path:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "source_root": self.source_root,
            "generated_at": self.generated_at,
            "total_entries": self.total_entries,
            "entries": [e.to_dict() for e in self.entries],
            "file_extension_counts": dict(self.file_extension_counts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SourceOverview":
        return cls(
            source_root=data["source_root"],
            generated_at=data.get("generated_at", ""),
            entries=[entry_from_dict(e) for e in data.get("entries", [])],
            file_extension_counts=dict(data.get("file_extension_counts", {})),
        )


# -----------------------------------------------------------------------------
# Library index
# -----------------------------------------------------------------------------

@dataclass
class LibSubcategory:
    name: str
    file_count: int = 0
    sample_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "file_count": self.file_count,
            "sample_files": list(self.sample_files),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LibSubcategory":
        return cls(
            name=data["name"],
            file_count=int(data.get("file_count", 0)),
            sample_files=list(data.get("sample_files", [])),
        )


@dataclass
class LibCategory:
    name: str
    subcategories: list[LibSubcategory] = field(default_factory=list)
    notes: str = ""

    def has_subcategory(self, name: str | None) -> bool:
        wanted = name or ROOT_SUBCATEGORY
        return any(s.name == wanted for s in self.subcategories)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "subcategories": [s.to_dict() for s in self.subcategories],
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LibCategory":
        return cls(
            name=data["name"],
            subcategories=[LibSubcategory.from_dict(s) for s in data.get("subcategories", [])],
            notes=data.get("notes", ""),
        )


@dataclass
class LibraryIndex:
    library_root: str
    generated_at: str
    categories: list[LibCategory] = field(default_factory=list)

    def category(self, name: str) -> LibCategory | None:
        for cat in self.categories:
            if cat.name == name:
                return cat
        return None

    def has_target(self, category: str, subcategory: str | None) -> bool:
        cat = self.category(category)
        if cat is None:
            return False
        # Every existing category can take files directly
        if subcategory is None:
            return True
        return cat.has_subcategory(subcategory)

    def to_dict(self) -> dict:
        return {
            "library_root": self.library_root,
            "generated_at": self.generated_at,
            "categories": [c.to_dict() for c in self.categories],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LibraryIndex":
        return cls(
            library_root=data["library_root"],
            generated_at=data.get("generated_at", ""),
            categories=[LibCategory.from_dict(c) for c in data.get("categories", [])],
        )


# -----------------------------------------------------------------------------
# Plan
# -----------------------------------------------------------------------------

def _require_str(data: dict, key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{where}: '{key}' must be a non-empty string")
    return value


def _optional_str(data: dict, key: str, where: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{where}: '{key}' must be a string or null")
    return normalize_subcategory(value)


@dataclass
class Placement:
    path: str
    category: str
    subcategory: str | None = None
    reason: str = ""

    def target_key(self) -> tuple[str, str | None]:
        return (self.category, self.subcategory)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "category": self.category,
            "subcategory": self.subcategory,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Placement":
        if not isinstance(data, dict):
            raise ValueError("placement must be an object")
        return cls(
            path=_require_str(data, "path", "placement"),
            category=_require_str(data, "category", "placement"),
            subcategory=_optional_str(data, "subcategory", "placement"),
            reason=str(data.get("reason") or ""),
        )


@dataclass
class FolderRequest:
    category: str
    subcategory: str | None = None
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "subcategory": self.subcategory,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FolderRequest":
        if not isinstance(data, dict):
            raise ValueError("folder request must be an object")
        return cls(
            category=_require_str(data, "category", "new_folders"),
            subcategory=_optional_str(data, "subcategory", "new_folders"),
            reason=str(data.get("reason") or ""),
        )


@dataclass
class Plan:
    placements: list[Placement] = field(default_factory=list)
    new_folders: list[FolderRequest] = field(default_factory=list)
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "placements": [p.to_dict() for p in self.placements],
            "new_folders": [f.to_dict() for f in self.new_folders],
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Plan":
        """
        Build a Plan from planner JSON.

        Raises:
            ValueError: If the data does not follow the plan schema.
        """
        if not isinstance(data, dict):
            raise ValueError("plan must be a JSON object")
        placements = data.get("placements", [])
        new_folders = data.get("new_folders", [])
        if not isinstance(placements, list):
            raise ValueError("'placements' must be a list")
        if not isinstance(new_folders, list):
            raise ValueError("'new_folders' must be a list")
        notes = data.get("notes") or ""
        if isinstance(notes, list):
            notes = "\n".join(str(n) for n in notes)
        return cls(
            placements=[Placement.from_dict(p) for p in placements],
            new_folders=[FolderRequest.from_dict(f) for f in new_folders],
            notes=str(notes),
        )


# -----------------------------------------------------------------------------
# Move log
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class MoveOp:
    source_rel: str
    destination_rel: str
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "source_rel": self.source_rel,
            "destination_rel": self.destination_rel,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MoveOp":
        return cls(
            source_rel=data["source_rel"],
            destination_rel=data["destination_rel"],
            reason=data.get("reason", ""),
        )


@dataclass
class MoveLog:
    executed_at: str
    source_root: str
    library_root: str
    operations: list[MoveOp] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "executed_at": self.executed_at,
            "source_root": self.source_root,
            "library_root": self.library_root,
            "operations": [op.to_dict() for op in self.operations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MoveLog":
        return cls(
            executed_at=data.get("executed_at", ""),
            source_root=data["source_root"],
            library_root=data["library_root"],
            operations=[MoveOp.from_dict(op) for op in data.get("operations", [])],
        )


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------

@dataclass
class SkipRecord:
    """One item that was not processed, and why."""
    item: str
    reason: str

    def to_dict(self) -> dict:
        return {"item": self.item, "reason": self.reason}


@dataclass
class ValidationResult:
    plan: Plan
    skips: list[SkipRecord] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.skips


@dataclass
class ApplyResult:
    moved: list[MoveOp] = field(default_factory=list)
    skipped: list[SkipRecord] = field(default_factory=list)
    created_folders: list[str] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False
    log_path: str | None = None

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "moved_count": len(self.moved),
            "skipped_count": len(self.skipped),
            "moved": [op.to_dict() for op in self.moved],
            "skipped": [s.to_dict() for s in self.skipped],
            "created_folders": list(self.created_folders),
            "log_path": self.log_path,
        }


@dataclass
class RestoreRecord:
    source_rel: str
    destination_rel: str
    restored_rel: str

    @property
    def renamed(self) -> bool:
        return self.restored_rel != self.source_rel

    def to_dict(self) -> dict:
        return {
            "source_rel": self.source_rel,
            "destination_rel": self.destination_rel,
            "restored_rel": self.restored_rel,
        }


@dataclass
class UndoResult:
    restored: list[RestoreRecord] = field(default_factory=list)
    failures: list[SkipRecord] = field(default_factory=list)
    removed_folders: list[str] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> dict:
        return {
            "cancelled": self.cancelled,
            "restored_count": len(self.restored),
            "failed_count": len(self.failures),
            "restored": [r.to_dict() for r in self.restored],
            "failures": [f.to_dict() for f in self.failures],
            "removed_folders": list(self.removed_folders),
        }
