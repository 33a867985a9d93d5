"""
Optional AI assistance for BOM review.

Providers are plain classes that satisfy `SupportsFreeformPrompt`; there is no
runtime registry. `make_ai_provider` picks one from an `EngineConfig`. Every
feature built on top of a provider falls back to the offline heuristics in
`classifier` when no provider is configured or a call fails.
"""

import json
import logging
import re
from typing import Protocol, runtime_checkable

import requests

import src.bom_core.constants as C
from src.bom_core.classifier import categorize_designator
from src.bom_core.config import EngineConfig
from src.bom_core.types import BomLineItem

logger = logging.getLogger(__name__)


@runtime_checkable
class SupportsFreeformPrompt(Protocol):
    """A text-in, text-out model endpoint."""

    name: str

    def is_configured(self) -> bool: ...

    def prompt(self, text: str) -> str | None:
        """Returns the model's reply, or None if the call failed."""
        ...


class ClaudeProvider:
    """Anthropic messages API."""

    name = "claude"

    def __init__(self, config: EngineConfig):
        self.api_key = config.claude_api_key
        self.model = config.claude_model
        self.timeout = config.http_timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def prompt(self, text: str) -> str | None:
        if not self.is_configured():
            return None

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": C.CLAUDE_API_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": self.model,
            "max_tokens": 1024,
            "messages": [{"role": "user", "content": text}],
        }
        try:
            response = requests.post(
                C.CLAUDE_API_URL, headers=headers, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Claude request failed: {e}")
            return None

        if not isinstance(body, dict):
            logger.warning(f"Unexpected Claude reply: {type(body).__name__}")
            return None
        blocks = body.get("content") or []
        parts = [
            b.get("text", "")
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text"
        ]
        return "".join(parts) or None


class OllamaProvider:
    """Local Ollama server (`/api/generate`, non-streaming)."""

    name = "ollama"

    def __init__(self, config: EngineConfig):
        self.base_url = config.ollama_url.rstrip("/")
        self.model = config.ollama_model
        self.timeout = config.http_timeout

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def is_available(self) -> bool:
        """Pings the server's tag list."""
        if not self.is_configured():
            return False
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
        except requests.RequestException:
            return False
        return response.status_code == 200

    def prompt(self, text: str) -> str | None:
        if not self.is_configured():
            return None

        payload = {"model": self.model, "prompt": text, "stream": False}
        try:
            response = requests.post(
                f"{self.base_url}/api/generate", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Ollama request failed: {e}")
            return None

        if not isinstance(body, dict):
            logger.warning(f"Unexpected Ollama reply: {type(body).__name__}")
            return None
        text = body.get("response")
        return text if isinstance(text, str) and text else None


def make_ai_provider(config: EngineConfig) -> SupportsFreeformPrompt | None:
    """
    Builds the provider named in `config.ai_provider`.

    With no provider named, Claude is preferred when an API key is set, then
    Ollama when a server URL is set. Returns None when nothing is configured.
    """
    candidates: dict[str, SupportsFreeformPrompt] = {
        "claude": ClaudeProvider(config),
        "ollama": OllamaProvider(config),
    }

    if config.ai_provider:
        provider = candidates[config.ai_provider]
        if not provider.is_configured():
            logger.warning(f"AI provider '{config.ai_provider}' is not configured")
            return None
        return provider

    for name in C.AI_PROVIDERS:
        if candidates[name].is_configured():
            logger.info(f"Auto-detected AI provider: {name}")
            return candidates[name]
    return None


def _extract_json(text: str) -> dict | None:
    """First JSON object in a model reply, tolerating prose or code fences around it."""
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def build_category_prompt(items: list[BomLineItem]) -> str:
    lines = [
        f"- {item.reference}: value={item.value!r} footprint={item.footprint!r} "
        f"mpn={item.manufacturer_part!r}"
        for item in items
    ]
    categories = ", ".join(C.CATEGORY_ORDER)
    return (
        "You are an electronics expert. Assign each BOM line below to exactly one "
        f"of these categories: {categories}.\n\n"
        + "\n".join(lines)
        + '\n\nRespond ONLY with a JSON object mapping designator to category, '
        'e.g. {"R1": "Resistors"}.'
    )


def suggest_categories(
    items: list[BomLineItem],
    provider: SupportsFreeformPrompt | None = None,
) -> dict[str, dict[str, str]]:
    """
    Proposes a catalog category for each line item (typically the unresolved ones).

    Args:
        items: Line items to categorise.
        provider: Optional AI provider. Without one, or when its reply is
            unusable, the designator heuristics are used.

    Returns:
        {designator: {"category": str, "source": "ai" | "heuristic"}}
    """
    if not items:
        return {}

    ai_answers: dict = {}
    if provider is not None and provider.is_configured():
        reply = provider.prompt(build_category_prompt(items))
        ai_answers = (_extract_json(reply) if reply else None) or {}
        if not ai_answers:
            logger.info(f"{provider.name} gave no usable categories, using heuristics")

    suggestions: dict[str, dict[str, str]] = {}
    for item in items:
        proposed = ai_answers.get(item.reference)
        if isinstance(proposed, str) and proposed in C.CATEGORY_ORDER:
            suggestions[item.reference] = {"category": proposed, "source": "ai"}
        else:
            suggestions[item.reference] = {
                "category": categorize_designator(item.reference, item.value),
                "source": "heuristic",
            }
    return suggestions
