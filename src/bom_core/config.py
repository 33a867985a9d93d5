"""
Explicit engine configuration.

Components receive an `EngineConfig` in their constructor instead of reading
global state. Values default to the rules in `constants` and can be overridden
through `BOM_*` environment variables.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import src.bom_core.constants as C


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class EngineConfig:
    """
    Settings shared by the matcher, aggregator, allocator and AI advisor.

    Attributes:
        expensive_threshold: Unit price above which cheaper alternatives are looked up.
        min_compatibility: Minimum alternative compatibility score for suggestions.
        default_boards: Boards produced per allocation when the caller gives none.
        currency: Symbol used in reports.
        company_name: Printed on generated documents.
        ai_provider: "claude", "ollama" or "" for auto-detection.
        claude_api_key: Anthropic API key (empty disables Claude).
        claude_model: Model name sent to the messages endpoint.
        ollama_url: Base URL of a local Ollama server (empty disables Ollama).
        ollama_model: Model name for Ollama.
        http_timeout: Seconds before provider calls give up.
    """

    expensive_threshold: float = C.COSTING_CONFIG["expensive_threshold"]
    min_compatibility: float = C.COSTING_CONFIG["min_compatibility"]
    default_boards: int = 1
    currency: str = "$"
    company_name: str = ""
    ai_provider: str = ""
    claude_api_key: str = field(default="", repr=False)
    claude_model: str = "claude-3-5-haiku-latest"
    ollama_url: str = ""
    ollama_model: str = "llama3.1"
    http_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.expensive_threshold < 0:
            raise ValueError("expensive_threshold must be >= 0")
        if not 0.0 <= self.min_compatibility <= 1.0:
            raise ValueError("min_compatibility must be between 0 and 1")
        if self.default_boards < 1:
            raise ValueError("default_boards must be >= 1")
        if self.ai_provider and self.ai_provider not in C.AI_PROVIDERS:
            raise ValueError(f"Unknown AI provider: {self.ai_provider}")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "EngineConfig":
        """Builds a config from `BOM_*` environment variables."""
        env = os.environ if env is None else env
        base = cls()
        return cls(
            expensive_threshold=_env_float(
                env, "BOM_EXPENSIVE_THRESHOLD", base.expensive_threshold
            ),
            min_compatibility=_env_float(
                env, "BOM_MIN_COMPATIBILITY", base.min_compatibility
            ),
            default_boards=_env_int(env, "BOM_DEFAULT_BOARDS", base.default_boards),
            currency=env.get("BOM_CURRENCY", base.currency),
            company_name=env.get("BOM_COMPANY_NAME", base.company_name),
            ai_provider=env.get("BOM_AI_PROVIDER", base.ai_provider).strip().lower(),
            claude_api_key=env.get("BOM_CLAUDE_API_KEY", base.claude_api_key),
            claude_model=env.get("BOM_CLAUDE_MODEL", base.claude_model),
            ollama_url=env.get("BOM_OLLAMA_URL", base.ollama_url),
            ollama_model=env.get("BOM_OLLAMA_MODEL", base.ollama_model),
            http_timeout=_env_float(env, "BOM_HTTP_TIMEOUT", base.http_timeout),
        )

    def with_overrides(self, overrides: Mapping[str, Any]) -> "EngineConfig":
        """Returns a copy with known keys replaced (e.g. from Streamlit secrets)."""
        known = {k: v for k, v in overrides.items() if k in self.__dataclass_fields__}
        return replace(self, **known)
