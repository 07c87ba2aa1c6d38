"""
Local heuristic planner.

Places each top-level SOURCE item with a small table of category rules
instead of an LLM. Files are matched on their own extension; directories on
the extensions of their largest files and sample children, so a folder of
MP3s lands in Music as one unit.
"""

from dataclasses import dataclass

from ..models import (
    DirectoryEntry,
    FileEntry,
    FolderRequest,
    LibraryIndex,
    Placement,
    Plan,
    SourceEntry,
    SourceOverview,
)
from ..scanner import split_extension


def entry_extensions(entry: SourceEntry) -> list[str]:
    """Lowercase extensions that describe an entry's content."""
    if isinstance(entry, FileEntry):
        ext = entry.extension.lower()
        return [ext] if ext else []
    exts = []
    for name in entry.top_big_files + entry.sample_children:
        ext = split_extension(name.rsplit("/", 1)[-1]).lower()
        if ext:
            exts.append(ext)
    return exts


def _normalize_exts(exts: list[str] | None) -> set[str] | None:
    if exts is None:
        return None
    return {e.lower() if e.startswith('.') else f'.{e.lower()}' for e in exts}


@dataclass
class MatchCriteria:
    """
    Criteria for matching a SourceEntry to a rule.

    All specified criteria must hold (AND logic).
    """
    ext_in: list[str] | None = None
    name_contains_any: list[str] | None = None
    content_type_prefix: str | None = None
    kind: str | None = None            # "file" or "directory"
    bundle: bool | None = None
    min_size_bytes: int | None = None
    max_size_bytes: int | None = None

    def score(self, entry: SourceEntry) -> int:
        """
        How well an entry fits: 0 means no match.

        With ``ext_in`` set, the score is the number of the entry's content
        extensions in the list; otherwise a match scores 1.
        """
        if self.kind is not None and entry.kind != self.kind:
            return 0

        if self.bundle is not None:
            is_bundle = isinstance(entry, DirectoryEntry) and entry.is_bundle
            if is_bundle != self.bundle:
                return 0

        if self.name_contains_any is not None:
            name = entry.rel_path.lower()
            if not any(p.lower() in name for p in self.name_contains_any):
                return 0

        if self.content_type_prefix is not None:
            if not isinstance(entry, FileEntry) or not entry.content_type.startswith(self.content_type_prefix):
                return 0

        size = entry.size if isinstance(entry, FileEntry) else entry.total_size
        if self.min_size_bytes is not None and size < self.min_size_bytes:
            return 0
        if self.max_size_bytes is not None and size > self.max_size_bytes:
            return 0

        wanted = _normalize_exts(self.ext_in)
        if wanted is None:
            return 1
        return sum(1 for ext in entry_extensions(entry) if ext in wanted)

    @classmethod
    def from_dict(cls, data: dict) -> "MatchCriteria":
        return cls(
            ext_in=data.get("ext_in"),
            name_contains_any=data.get("name_contains_any"),
            content_type_prefix=data.get("content_type_prefix"),
            kind=data.get("kind"),
            bundle=data.get("bundle"),
            min_size_bytes=data.get("min_size_bytes"),
            max_size_bytes=data.get("max_size_bytes"),
        )


@dataclass
class CategoryRule:
    """
    Sends matching entries to ``category`` / ``subcategory``.

    ``subcategory`` may use ``{year}`` (EXIF capture year of an image);
    when the year is unknown the item goes directly into the category.
    """
    name: str
    match: MatchCriteria
    category: str
    subcategory: str | None = None
    priority: int = 0

    def render_subcategory(self, entry: SourceEntry) -> str | None:
        if not self.subcategory:
            return None
        if "{year}" in self.subcategory:
            date_taken = entry.date_taken if isinstance(entry, FileEntry) else None
            if not date_taken:
                return None
            return self.subcategory.replace("{year}", date_taken[:4])
        return self.subcategory

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryRule":
        return cls(
            name=data.get("name", "Unnamed rule"),
            match=MatchCriteria.from_dict(data.get("match", {})),
            category=data["category"],
            subcategory=data.get("subcategory"),
            priority=data.get("priority", 0),
        )


DEFAULT_RULES = [
    {"name": "Camera imports", "match": {"kind": "directory", "name_contains_any": ["DCIM"]},
     "category": "Photos", "priority": 60},
    {"name": "Applications", "match": {"bundle": True, "name_contains_any": [".app"]},
     "category": "Applications", "priority": 55},
    {"name": "Installers", "match": {"ext_in": [".dmg", ".pkg", ".msi", ".exe", ".deb", ".rpm", ".appimage"]},
     "category": "Installers", "priority": 40},
    {"name": "Photos", "match": {"ext_in": [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif",
                                             ".webp", ".heic", ".raw", ".cr2", ".nef", ".dng"]},
     "category": "Photos", "subcategory": "{year}", "priority": 40},
    {"name": "Videos", "match": {"ext_in": [".mp4", ".mov", ".avi", ".mkv", ".wmv", ".flv", ".webm", ".m4v"]},
     "category": "Videos", "priority": 40},
    {"name": "Music", "match": {"ext_in": [".mp3", ".wav", ".aac", ".m4a", ".flac", ".ogg", ".aiff", ".wma"]},
     "category": "Music", "priority": 40},
    {"name": "Spreadsheets", "match": {"ext_in": [".xls", ".xlsx", ".numbers", ".ods", ".csv", ".tsv"]},
     "category": "Documents", "subcategory": "Spreadsheets", "priority": 40},
    {"name": "Presentations", "match": {"ext_in": [".ppt", ".pptx", ".key", ".odp"]},
     "category": "Documents", "subcategory": "Presentations", "priority": 40},
    {"name": "Documents", "match": {"ext_in": [".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt", ".md",
                                                ".pages", ".epub"]},
     "category": "Documents", "priority": 40},
    {"name": "Archives", "match": {"ext_in": [".zip", ".tar", ".gz", ".tgz", ".rar", ".7z", ".bz2", ".xz"]},
     "category": "Archives", "priority": 40},
    {"name": "Code", "match": {"ext_in": [".py", ".js", ".ts", ".java", ".go", ".rs", ".c", ".cpp", ".h",
                                           ".swift", ".rb", ".sh", ".ipynb"]},
     "category": "Code", "priority": 40},
    # Catch-all: everything else
    {"name": "Everything else", "match": {}, "category": "Misc", "priority": -1},
]


class HeuristicPlanner:
    """Rule-based planner that needs no network access."""

    def __init__(self, rules: list[CategoryRule] | None = None):
        if rules is None:
            rules = [CategoryRule.from_dict(r) for r in DEFAULT_RULES]
        # Highest priority first; stable for equal priorities
        self.rules = sorted(rules, key=lambda r: -r.priority)

    def best_rule(self, entry: SourceEntry) -> CategoryRule | None:
        """
        Pick the rule for an entry.

        The highest priority level with any match wins; within that level the
        best score wins, and the earlier rule breaks a tie.
        """
        best, best_score = None, 0
        for rule in self.rules:
            if best is not None and rule.priority < best.priority:
                break
            score = rule.match.score(entry)
            if score > best_score:
                best, best_score = rule, score
        return best

    def plan(self, overview: SourceOverview, index: LibraryIndex) -> Plan:
        existing = {cat.name.casefold(): cat for cat in index.categories}
        placements: list[Placement] = []
        new_folders: list[FolderRequest] = []
        requested: set[tuple[str, str | None]] = set()

        for entry in overview.entries:
            if isinstance(entry, DirectoryEntry) and entry.unreadable:
                continue
            rule = self.best_rule(entry)
            if rule is None:
                continue

            category = rule.category
            subcategory = rule.render_subcategory(entry)
            lib_cat = existing.get(category.casefold())
            if lib_cat is not None:
                # Reuse the library's spelling
                category = lib_cat.name

            if not index.has_target(category, subcategory) and (category, subcategory) not in requested:
                new_folders.append(FolderRequest(category, subcategory, reason=f"New bucket for rule '{rule.name}'"))
                requested.add((category, subcategory))

            placements.append(Placement(entry.rel_path, category, subcategory, reason=rule.name))

        notes = f"Heuristic plan: {len(placements)} of {overview.total_entries} items placed"
        return Plan(placements=placements, new_folders=new_folders, notes=notes)
