"""
Runtime settings. Values come from the environment (optionally a .env file)
and are re-read on every call so a reload picks up edits.
"""

import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_API_BASE_URL = "https://fi-mcp-dev-production.up.railway.app"
DEFAULT_GEMINI_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
)
DEFAULT_STATE_PATH = Path.home() / ".smartfi" / "state.json"


class Settings(BaseModel):
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 15.0
    state_path: Optional[Path] = DEFAULT_STATE_PATH
    analysis_backend: Literal["gemini", "langchain"] = "gemini"
    gemini_endpoint: str = DEFAULT_GEMINI_ENDPOINT
    analysis_timeout: float = 30.0
    analysis_max_attempts: int = 3


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_settings() -> Settings:
    """Read settings inside the function so .env changes apply without a restart."""
    state_path = os.getenv("SMARTFI_STATE_PATH")
    if state_path is None:
        resolved_state_path = DEFAULT_STATE_PATH
    elif state_path.strip().lower() in ("", "memory", "none"):
        # In-memory only: the session id is regenerated on every start
        resolved_state_path = None
    else:
        resolved_state_path = Path(state_path).expanduser()

    backend = os.getenv("ANALYSIS_BACKEND", "gemini").lower()
    if backend not in ("gemini", "langchain"):
        backend = "gemini"

    return Settings(
        api_base_url=os.getenv("SMARTFI_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        request_timeout=_float_env("SMARTFI_REQUEST_TIMEOUT", 15.0),
        state_path=resolved_state_path,
        analysis_backend=backend,
        gemini_endpoint=os.getenv("GEMINI_ENDPOINT", DEFAULT_GEMINI_ENDPOINT),
        analysis_timeout=_float_env("ANALYSIS_TIMEOUT", 30.0),
        analysis_max_attempts=int(_float_env("ANALYSIS_MAX_ATTEMPTS", 3)),
    )
