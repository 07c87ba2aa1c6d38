"""
LLM integration for the Library Reorganizer.

Provides:
- Gemini API client and JSON extraction
- Prompt builder for placement planning
- Model table
"""

from .client import call_llm, configure_gemini, parse_llm_json, recover_truncated_json
from .models import DEFAULT_MODEL, GEMINI_MODELS, resolve_model
from .prompts import build_plan_prompt

__all__ = [
    "call_llm",
    "configure_gemini",
    "parse_llm_json",
    "recover_truncated_json",
    "GEMINI_MODELS",
    "DEFAULT_MODEL",
    "resolve_model",
    "build_plan_prompt",
]
