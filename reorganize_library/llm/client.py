"""
Gemini API client.
"""

import json
import os
import re
from typing import Any

import google.generativeai as genai

from ..errors import PlannerFailure
from .models import DEFAULT_MODEL, resolve_model

_configured = False


def configure_gemini(api_key: str | None = None) -> None:
    """
    Configure the Gemini client once per process.

    Raises:
        PlannerFailure: If no API key is available.
    """
    global _configured
    if _configured:
        return

    api_key = api_key or os.environ.get("GEMINI_API_KEY")
    if not api_key:
        raise PlannerFailure(
            "GEMINI_API_KEY is not set. Create a .env file with: GEMINI_API_KEY=your-key-here"
        )
    genai.configure(api_key=api_key)
    _configured = True


def call_llm(prompt: str, model_name: str = DEFAULT_MODEL, api_key: str | None = None) -> str:
    """
    Send a prompt to Gemini and return the raw response text.

    Raises:
        PlannerFailure: If the call fails or returns no text.
    """
    configure_gemini(api_key)
    model_id, config = resolve_model(model_name)

    try:
        model = genai.GenerativeModel(model_id)
        response = model.generate_content(
            prompt,
            generation_config=genai.types.GenerationConfig(
                max_output_tokens=config["max_output_tokens"],
                temperature=config["temperature"],
                response_mime_type="application/json",
            ),
        )
        text = response.text
    except Exception as e:
        # The SDK raises many unrelated types (HTTP, quota, blocked content)
        raise PlannerFailure(f"Gemini call failed: {e}") from e

    if not text or not text.strip():
        raise PlannerFailure("Gemini returned an empty response")
    return text


def parse_llm_json(response_text: str) -> dict[str, Any]:
    """
    Extract a JSON object from an LLM response.

    Handles markdown code fences, trailing chatter after the object and
    output that was cut off mid-object.

    Raises:
        PlannerFailure: If no JSON object can be recovered.
    """
    text = response_text.strip()

    fenced = re.search(r'```(?:json)?\s*([\s\S]*?)```', text)
    if fenced:
        text = fenced.group(1).strip()

    start = text.find('{')
    if start == -1:
        raise PlannerFailure("Planner response contains no JSON object")
    text = text[start:]

    try:
        data, _ = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError:
        try:
            data = json.loads(recover_truncated_json(text))
        except json.JSONDecodeError as e:
            raise PlannerFailure(f"Planner response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise PlannerFailure("Planner response is not a JSON object")
    return data


def recover_truncated_json(text: str) -> str:
    """
    Close a JSON document that was cut off.

    Drops the incomplete trailing value (an open string, a dangling key or
    a partial item after the last comma) and appends the closers for every
    still-open object/array, innermost first.
    """
    # Inside an unterminated string: cut back to before it started
    if _ends_inside_string(text):
        text = text[:text.rfind('"')]

    cut = max(text.rfind(','), text.rfind('{'), text.rfind('['))
    if cut > 0:
        text = text[:cut] if text[cut] == ',' else text[:cut + 1]

    stack = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in '{[':
            stack.append(char)
        elif char in '}]' and stack:
            stack.pop()

    closers = {'{': '}', '[': ']'}
    return text + "".join(closers[c] for c in reversed(stack))


def _ends_inside_string(text: str) -> bool:
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
    return in_string
