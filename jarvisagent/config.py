import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv(override=False)


def _as_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _as_float(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    llm_provider: str
    llm_model: str
    llm_api_key: str | None
    llm_api_base_url: str | None
    llm_timeout_seconds: int
    llm_temperature: float
    llm_max_tokens: int
    history_max_turns: int
    google_client_id: str | None
    google_client_secret: str | None
    google_redirect_uri: str
    google_oauth_timeout_seconds: int
    google_api_timeout_seconds: int
    gmail_default_max_results: int
    expose_tool_calls: bool
    log_level: str


def load_settings() -> Settings:
    return Settings(
        llm_provider=os.getenv("JARVIS_LLM_PROVIDER", "mistral").strip().lower(),
        llm_model=os.getenv("JARVIS_LLM_MODEL") or "mistral-small-latest",
        llm_api_key=(
            os.getenv("JARVIS_LLM_API_KEY") or os.getenv("MISTRAL_API_KEY") or None
        ),
        llm_api_base_url=(os.getenv("JARVIS_LLM_API_BASE_URL") or None),
        llm_timeout_seconds=_as_int(os.getenv("JARVIS_LLM_TIMEOUT_SECONDS"), 20),
        llm_temperature=_as_float(os.getenv("JARVIS_LLM_TEMPERATURE"), 0.7),
        llm_max_tokens=_as_int(os.getenv("JARVIS_LLM_MAX_TOKENS"), 1000),
        history_max_turns=max(
            2,
            min(200, _as_int(os.getenv("JARVIS_HISTORY_MAX_TURNS"), 10)),
        ),
        google_client_id=(os.getenv("GOOGLE_CLIENT_ID") or None),
        google_client_secret=(os.getenv("GOOGLE_CLIENT_SECRET") or None),
        google_redirect_uri=os.getenv(
            "GOOGLE_REDIRECT_URI", "http://localhost:8000/api/auth/callback"
        ),
        google_oauth_timeout_seconds=_as_int(
            os.getenv("GOOGLE_OAUTH_TIMEOUT_SECONDS"), 8
        ),
        google_api_timeout_seconds=_as_int(os.getenv("GOOGLE_API_TIMEOUT_SECONDS"), 8),
        gmail_default_max_results=max(
            1,
            min(50, _as_int(os.getenv("GMAIL_DEFAULT_MAX_RESULTS"), 5)),
        ),
        expose_tool_calls=_as_bool(os.getenv("JARVIS_EXPOSE_TOOL_CALLS"), True),
        log_level=os.getenv("JARVIS_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


settings = load_settings()
