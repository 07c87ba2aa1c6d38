"""
Utility functions for the Library Reorganizer.

Includes:
- Console output helpers
- JSON save/load helpers (atomic writes)
- macOS / camera bundle detection
"""

import json
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

# Global console instance
console = Console()


def print_header(title: str, subtitle: str = ""):
    """Print a styled header."""
    console.print(Panel(f"[bold blue]{title}[/bold blue]\n[italic]{subtitle}[/italic]", expand=False))


def print_info(msg: str):
    console.print(f"[dim][INFO][/dim] {msg}", highlight=False)


def print_error(msg: str):
    console.print(f"[bold red]ERROR:[/bold red] {msg}")


def print_warning(msg: str):
    console.print(f"[bold yellow]WARNING:[/bold yellow] {msg}")


def print_success(msg: str):
    console.print(f"[bold green]SUCCESS:[/bold green] {msg}")


def print_plan_table(plan) -> None:
    """Print a summary table of a Plan, plus the first placements as a tree."""
    table = Table(title="Plan Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="magenta")

    table.add_row("Placements", str(len(plan.placements)))
    table.add_row("New Folders", str(len(plan.new_folders)))

    console.print(table)

    if plan.placements:
        tree = Tree("[bold green]Sample Placements[/bold green]")
        for placement in plan.placements[:10]:
            target = placement.category + "/" + (placement.subcategory or "_root")
            tree.add(f"[yellow]{placement.path}[/yellow] -> [blue]{target}[/blue]")
        if len(plan.placements) > 10:
            tree.add(f"[italic]... and {len(plan.placements) - 10} more[/italic]")
        console.print(tree)


def print_skips(skips: Iterable, title: str = "Skipped", limit: int = 10) -> None:
    """Print skip records (item + reason) as a table."""
    skips = list(skips)
    if not skips:
        return
    table = Table(title=f"{title} ({len(skips)})")
    table.add_column("Item", style="yellow")
    table.add_column("Reason", style="red")
    for skip in skips[:limit]:
        table.add_row(skip.item, skip.reason)
    if len(skips) > limit:
        table.add_row(f"... and {len(skips) - limit} more", "")
    console.print(table)


# -----------------------------------------------------------------------------
# Bundles
# -----------------------------------------------------------------------------

MACOS_BUNDLE_EXTENSIONS = {
    # Application bundles
    ".app", ".bundle", ".plugin", ".kext", ".prefpane",
    ".qlgenerator", ".mdimporter", ".xpc", ".appex",
    # Apple Pro Apps project bundles
    ".dvdproj",          # iDVD
    ".imovieproject",    # iMovie (old format)
    ".fcpproject",       # Final Cut Pro X
    ".fcpbundle",        # Final Cut Pro X bundle
    ".dspproj",          # DVD Studio Pro
    # Photo libraries
    ".photoslibrary",    # Photos app
    ".aplibrary",        # Aperture
}

# Folder names that are produced by devices/apps as one unit
BUNDLE_FOLDERS = {
    'VIDEO_TS', 'AUDIO_TS', 'HVDVD_TS', 'BDMV', 'CERTIFICATE',
    'DCIM', 'PRIVATE', 'AVCHD', 'MP_ROOT',
}


def is_bundle_dir_name(name: str) -> bool:
    """True if a directory name marks an application/project/camera bundle."""
    if name in BUNDLE_FOLDERS:
        return True
    lower = name.lower()
    return any(lower.endswith(ext) for ext in MACOS_BUNDLE_EXTENSIONS)


# -----------------------------------------------------------------------------
# JSON
# -----------------------------------------------------------------------------

def now_iso() -> str:
    return datetime.now().isoformat(timespec='seconds')


def file_timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def to_json_data(data: Any) -> Any:
    """Convert a model object (anything with ``to_dict``) to plain JSON data."""
    if hasattr(data, "to_dict"):
        return data.to_dict()
    return data


def atomic_write_json(data: Any, path: Path) -> None:
    """
    Write JSON next to ``path`` and swap it into place.

    A reader never sees a half-written file: it either gets the old
    content or the new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    try:
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(to_json_data(data), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


def load_json(path: Path) -> Any:
    """
    Load data from a JSON file.

    Args:
        path: The input file path.

    Returns:
        The deserialized data.
    """
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
