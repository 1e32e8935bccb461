# =============================================================================
# core/config.py  —  Settings from the environment
# =============================================================================
#
# Every setting comes from an environment variable (or .env, loaded once
# below).  Settings are resolved at startup and handed to the adapters
# explicitly; nothing else in the project reads os.environ.
#
#   OPENROUTER_API_KEY, WOLFRAM_APP_ID   required, startup fails without them
#   MODEL_NAME, MAX_TURNS, MAX_RETRIES   see .env.example for the full list
# =============================================================================

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from core.errors import ConfigError


load_dotenv()


@dataclass
class Settings:
    """Environment-driven configuration, resolved once at startup."""

    llm_api_key: str = field(default_factory=lambda: _require("OPENROUTER_API_KEY"))
    wolfram_app_id: str = field(default_factory=lambda: _require("WOLFRAM_APP_ID"))
    model: str = field(default_factory=lambda: os.getenv("MODEL_NAME", "openrouter/openai/gpt-4o"))
    llm_api_base: Optional[str] = field(default_factory=lambda: os.getenv("LLM_API_BASE") or None)
    temperature: float = field(default_factory=lambda: _float("LLM_TEMPERATURE", 0.5))
    max_tokens: int = field(default_factory=lambda: _int("LLM_MAX_TOKENS", 200))
    llm_timeout: float = field(default_factory=lambda: _float("LLM_TIMEOUT_SECONDS", 30.0))
    tool_timeout: float = field(default_factory=lambda: _float("TOOL_TIMEOUT_SECONDS", 10.0))
    tree_path: str = field(default_factory=lambda: os.getenv("DECISION_TREE_PATH", "decision_tree.yaml"))
    prompt_template_path: Optional[str] = field(
        default_factory=lambda: os.getenv("DECISION_PROMPT_TEMPLATE") or None
    )
    max_retries: int = field(default_factory=lambda: _int("MAX_RETRIES", 2))
    max_turns: int = field(default_factory=lambda: _int("MAX_TURNS", 50))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "WARNING").upper())

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigError("MAX_RETRIES must not be negative")
        if self.max_turns < 1:
            raise ConfigError("MAX_TURNS must be at least 1")


def _require(key: str) -> str:
    value = os.getenv(key)
    if not value or not value.strip():
        raise ConfigError(f"{key} environment variable is required")
    return value.strip()


def _int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None


def _float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {value!r}") from None


@lru_cache
def get_settings() -> Settings:
    return Settings()
