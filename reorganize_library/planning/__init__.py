"""
Planning module for the Library Reorganizer.

Provides:
- Planner interface (SourceOverview + LibraryIndex -> Plan)
- Gemini planner: the LLM outputs explicit placements
- Heuristic planner: local extension rules, no network
- Plan validation
"""

from typing import Protocol

from ..models import LibraryIndex, Plan, SourceOverview
from .heuristic import CategoryRule, HeuristicPlanner, MatchCriteria
from .remote import GeminiPlanner
from .validator import validate_plan


class Planner(Protocol):
    """Anything that turns a SOURCE overview and LIBRARY index into a Plan."""

    def plan(self, overview: SourceOverview, index: LibraryIndex) -> Plan:
        ...


def get_planner(name: str, model_name: str | None = None, api_key: str | None = None) -> Planner:
    """
    Build a planner by name ("gemini" or "heuristic").

    Raises:
        ValueError: For an unknown planner name.
    """
    if name == "heuristic":
        return HeuristicPlanner()
    if name == "gemini":
        if model_name:
            return GeminiPlanner(model_name, api_key)
        return GeminiPlanner(api_key=api_key)
    raise ValueError(f"Unknown planner: {name}")


__all__ = [
    "Planner",
    "get_planner",
    "GeminiPlanner",
    "HeuristicPlanner",
    "CategoryRule",
    "MatchCriteria",
    "validate_plan",
]
