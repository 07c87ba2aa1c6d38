"""
Gemini model table.
"""

# Short names accepted on the command line -> Gemini model ids
GEMINI_MODELS = {
    "flash": "gemini-2.5-flash",
    "flash-lite": "gemini-2.5-flash-lite",
    "pro": "gemini-2.5-pro",
}

DEFAULT_MODEL = "flash"

# Plans are small JSON documents; keep answers deterministic
MODEL_CONFIG = {
    "flash": {"max_output_tokens": 32768, "temperature": 0.0},
    "flash-lite": {"max_output_tokens": 16384, "temperature": 0.0},
    "pro": {"max_output_tokens": 32768, "temperature": 0.0},
}


def resolve_model(model_name: str) -> tuple[str, dict]:
    """
    Map a short model name to (model id, generation settings).

    Unknown names are passed through as a literal model id with the
    default settings.
    """
    if model_name in GEMINI_MODELS:
        return GEMINI_MODELS[model_name], MODEL_CONFIG[model_name]
    return model_name, MODEL_CONFIG[DEFAULT_MODEL]
