"""
Runtime configuration.

Values come from the environment (a ``.env`` file in the working directory
is loaded first). Command-line flags override them.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .llm.models import DEFAULT_MODEL

load_dotenv()

DEFAULT_WORKSPACE_HOME = Path.home() / ".cache" / "reorganize_library" / "workspaces"
DEFAULT_WORKERS = 4


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        return default


@dataclass
class Settings:
    gemini_api_key: str | None
    workspace_home: Path
    model: str
    workers: int

    @classmethod
    def from_env(cls) -> "Settings":
        home = os.environ.get("REORGANIZE_LIBRARY_HOME")
        return cls(
            gemini_api_key=os.environ.get("GEMINI_API_KEY") or None,
            workspace_home=Path(home).expanduser() if home else DEFAULT_WORKSPACE_HOME,
            model=os.environ.get("REORGANIZE_LIBRARY_MODEL", DEFAULT_MODEL),
            workers=_int_env("REORGANIZE_LIBRARY_WORKERS", DEFAULT_WORKERS),
        )
