"""Model resolution from caller-facing names to NIM model ids."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger("nim-proxy")

# Caller-facing ("OpenAI-ish") name -> NIM model id
DEFAULT_MODEL_MAPPING: dict[str, str] = {
    "gpt-3.5-turbo": "nvidia/llama-3.1-nemotron-ultra-253b-v1",
    "gpt-4": "qwen/qwen3-coder-480b-a35b-instruct",
    "gpt-4-turbo": "moonshotai/kimi-k2-instruct-0905",
    "gpt-4o": "moonshotai/kimi-k2-instruct-0905",
    "claude-3-opus": "openai/gpt-oss-120b",
    "claude-3-sonnet": "openai/gpt-oss-20b",
    "gemini-pro": "qwen/qwen3-next-80b-a3b-thinking",
}

# Checked in order; the first tier with a matching marker wins.
LARGE_TIER_MARKERS = ("405b", "gpt-4", "opus")
MEDIUM_TIER_MARKERS = ("70b", "sonnet", "gemini")


@dataclass(frozen=True)
class FallbackTiers:
    """Upstream models used when a requested name has no exact mapping."""

    large: str = "meta/llama-3.1-405b-instruct"
    medium: str = "meta/llama-3.1-70b-instruct"
    small: str = "meta/llama-3.1-8b-instruct"


DEFAULT_FALLBACK_TIERS = FallbackTiers()


def pick_fallback_model(
    requested_model: object, tiers: FallbackTiers = DEFAULT_FALLBACK_TIERS
) -> str:
    """Choose a fallback tier by case-insensitive substring inspection."""
    model_lower = str(requested_model or "").lower()
    if any(marker in model_lower for marker in LARGE_TIER_MARKERS):
        return tiers.large
    if any(marker in model_lower for marker in MEDIUM_TIER_MARKERS):
        return tiers.medium
    return tiers.small


def resolve_model(
    requested_model: str,
    mapping: Mapping[str, str] = DEFAULT_MODEL_MAPPING,
    tiers: FallbackTiers = DEFAULT_FALLBACK_TIERS,
) -> str:
    """Map a caller-supplied model name to an upstream model id.

    Exact matches come from ``mapping``; anything else degrades to one of the
    three fallback tiers. Resolution never fails.
    """
    target = mapping.get(requested_model)
    if target:
        return target
    fallback = pick_fallback_model(requested_model, tiers)
    logger.debug("No mapping for model %r, falling back to %s", requested_model, fallback)
    return fallback


def list_model_ids(mapping: Mapping[str, str] = DEFAULT_MODEL_MAPPING) -> list[str]:
    """Return the caller-facing model ids known to the exact-match table."""
    return list(mapping.keys())
