"""
Runtime configuration.

Rationale:
- One explicit Settings object, resolved from the environment once and passed
  into the backend client, the analyzer and the app factory.
- .env is loaded on import so local runs pick up OLLAMA_BASE_URL & co.
- Defaults target a local Ollama instance.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration values.

    Timeouts are in milliseconds. An empty jwt_secret disables bearer-token
    authentication on the analyze route.
    """

    # Generation backend
    ollama_base_url: str = "http://localhost:11434"
    model: str = "llama2"
    timeout_ms: int = 30000
    probe_timeout_ms: int = 5000
    temperature: float = 0.7
    max_tokens: int = 800

    # Confidence reported for each generation path
    live_confidence: float = 0.85
    mock_confidence: float = 0.7

    # Service
    environment: str = "development"
    log_level: str = "INFO"
    treblle_api_key: str = ""
    treblle_project_id: str = ""

    # Access
    jwt_secret: str = ""
    enable_cors: bool = True
    cors_origins: Tuple[str, ...] = ("http://localhost:3000",)
    rate_limit_window_ms: int = 15 * 60 * 1000
    rate_limit_max: int = 100

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def probe_timeout_seconds(self) -> float:
        return self.probe_timeout_ms / 1000.0

    @property
    def treblle_configured(self) -> bool:
        return bool(self.treblle_api_key and self.treblle_project_id)

    @property
    def auth_enabled(self) -> bool:
        return bool(self.jwt_secret)


def load_settings() -> Settings:
    """Build Settings from environment variables, falling back to defaults."""
    return Settings(
        ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").rstrip("/"),
        model=os.getenv("OLLAMA_MODEL", "llama2"),
        timeout_ms=int(os.getenv("GENERATION_TIMEOUT_MS", "30000")),
        probe_timeout_ms=int(os.getenv("PROBE_TIMEOUT_MS", "5000")),
        temperature=float(os.getenv("GENERATION_TEMPERATURE", "0.7")),
        max_tokens=int(os.getenv("GENERATION_MAX_TOKENS", "800")),
        live_confidence=float(os.getenv("LIVE_CONFIDENCE", "0.85")),
        mock_confidence=float(os.getenv("MOCK_CONFIDENCE", "0.7")),
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        treblle_api_key=os.getenv("TREBLLE_API_KEY", ""),
        treblle_project_id=os.getenv("TREBLLE_PROJECT_ID", ""),
        jwt_secret=os.getenv("JWT_SECRET", ""),
        enable_cors=_env_bool("ENABLE_CORS", True),
        cors_origins=tuple(_env_list("CORS_ORIGIN", "http://localhost:3000")),
        rate_limit_window_ms=int(os.getenv("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000))),
        rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "100")),
    )


@lru_cache
def get_settings() -> Settings:
    """Cached process-wide Settings."""
    return load_settings()
