"""
Gemini planner.

The LLM sees the SOURCE overview and LIBRARY index and answers with explicit
placements. The answer is only parsed here; validation happens later.
"""

from ..errors import PlannerFailure
from ..llm import DEFAULT_MODEL, build_plan_prompt, call_llm, parse_llm_json
from ..models import LibraryIndex, Plan, SourceOverview


class GeminiPlanner:
    """Planner backed by a Gemini model."""

    def __init__(self, model_name: str = DEFAULT_MODEL, api_key: str | None = None):
        self.model_name = model_name
        self.api_key = api_key

    def plan(self, overview: SourceOverview, index: LibraryIndex) -> Plan:
        """
        Ask the model for a placement plan.

        Args:
            overview: Scanned SOURCE items.
            index: Current LIBRARY categories.

        Returns:
            The parsed Plan (not yet validated).

        Raises:
            PlannerFailure: On API errors, unparseable output or a response
                that does not follow the Plan schema.
        """
        prompt = build_plan_prompt(overview, index)
        response_text = call_llm(prompt, self.model_name, self.api_key)
        data = parse_llm_json(response_text)

        # Models sometimes leave out empty lists
        data.setdefault("placements", [])
        data.setdefault("new_folders", [])

        try:
            return Plan.from_dict(data)
        except ValueError as e:
            raise PlannerFailure(f"Planner response does not match the plan schema: {e}") from e
