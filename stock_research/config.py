"""
Runtime settings for Deep Stock Research.

Values come from environment variables.  Entry points call `load_dotenv()`
first so a local `.env` file is honoured.

Recognised env:
  - RESEARCH_BACKEND (`gemini` or `openai`)
  - RESEARCH_MODEL, RESEARCH_TEMPERATURE
  - RESEARCH_API_KEY (optional, falls back to GEMINI_API_KEY / GOOGLE_API_KEY
    or OPENAI_API_KEY depending on the backend)
  - OPENAI_API_BASE_URL
  - RESEARCH_CREDENTIAL_PATH, RESEARCH_LOG_DIR, RESEARCH_RESPONSE_DIR
  - RESEARCH_VERBOSE, RESEARCH_REQUEST_TIMEOUT
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

BACKEND_GEMINI = "gemini"
BACKEND_OPENAI = "openai"
SUPPORTED_BACKENDS = (BACKEND_GEMINI, BACKEND_OPENAI)

DEFAULT_MODELS = {
    BACKEND_GEMINI: "gemini-2.5-pro",
    BACKEND_OPENAI: "gpt-5-nano",
}
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CREDENTIAL_PATH = Path.home() / ".stock_research" / "credentials.json"


class ConfigurationError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved configuration shared by the CLI and the Streamlit app."""

    backend: str = BACKEND_GEMINI
    model_name: str = DEFAULT_MODELS[BACKEND_GEMINI]
    temperature: Optional[float] = None
    fallback_api_key: str = ""
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    credential_path: Path = DEFAULT_CREDENTIAL_PATH
    log_dir: Path = Path("logs")
    response_dir: Path = Path("responses")
    verbose: bool = False
    request_timeout: int = 60

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        backend = env.get("RESEARCH_BACKEND", BACKEND_GEMINI).strip().lower() or BACKEND_GEMINI
        if backend not in SUPPORTED_BACKENDS:
            raise ConfigurationError(
                f"RESEARCH_BACKEND must be one of {', '.join(SUPPORTED_BACKENDS)}, got '{backend}'."
            )

        return cls(
            backend=backend,
            model_name=env.get("RESEARCH_MODEL", "").strip() or DEFAULT_MODELS[backend],
            temperature=_parse_float(env, "RESEARCH_TEMPERATURE"),
            fallback_api_key=_fallback_api_key(env, backend),
            openai_base_url=env.get("OPENAI_API_BASE_URL", "").strip() or DEFAULT_OPENAI_BASE_URL,
            credential_path=Path(env.get("RESEARCH_CREDENTIAL_PATH", "").strip() or DEFAULT_CREDENTIAL_PATH).expanduser(),
            log_dir=Path(env.get("RESEARCH_LOG_DIR", "").strip() or "logs"),
            response_dir=Path(env.get("RESEARCH_RESPONSE_DIR", "").strip() or "responses"),
            verbose=_parse_flag(env.get("RESEARCH_VERBOSE", "")),
            request_timeout=_parse_timeout(env),
        )


def _fallback_api_key(env: Mapping[str, str], backend: str) -> str:
    if backend == BACKEND_GEMINI:
        candidates = ("RESEARCH_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")
    else:
        candidates = ("RESEARCH_API_KEY", "OPENAI_API_KEY")
    for name in candidates:
        value = env.get(name, "").strip()
        if value:
            return value
    return ""


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_float(env: Mapping[str, str], name: str) -> Optional[float]:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'.") from exc


def _parse_timeout(env: Mapping[str, str]) -> int:
    raw = env.get("RESEARCH_REQUEST_TIMEOUT", "").strip()
    if not raw:
        return 60
    try:
        timeout = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"RESEARCH_REQUEST_TIMEOUT must be an integer, got '{raw}'.") from exc
    return max(1, timeout)
