"""
Library Reorganizer
===================

A command-line tool that sorts the top-level items of an unsorted SOURCE
folder into a two-level LIBRARY (Category/Subcategory), with a Gemini or
heuristic planner, a validated plan, a move log and full undo.
"""

__version__ = "1.0.0"

from .scanner import scan_source
from .indexer import index_library
from .executor import apply_plan
from .undo import undo_moves
from .naming import unique_child_name
from .topk import TopKFileTracker
from .workspace import Workspace
from .planning import validate_plan, GeminiPlanner, HeuristicPlanner

__all__ = [
    "scan_source",
    "index_library",
    "apply_plan",
    "undo_moves",
    "unique_child_name",
    "TopKFileTracker",
    "Workspace",
    "validate_plan",
    "GeminiPlanner",
    "HeuristicPlanner",
]
