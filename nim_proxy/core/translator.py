"""Translation of complete (non-streaming) NIM responses to OpenAI envelopes."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Optional

from ..types.chat import ChatCompletionResponse, Choice, Usage
from .rewriter import THINK_CLOSE, THINK_OPEN

logger = logging.getLogger("nim-proxy")

DEFAULT_ROLE = "assistant"
DEFAULT_FINISH_REASON = "stop"


def zero_usage() -> Usage:
    return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


def generate_completion_id(now: Optional[float] = None) -> str:
    """Generate a ``chatcmpl-<milliseconds>`` id."""
    now = time.time() if now is None else now
    return f"chatcmpl-{int(now * 1000)}"


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def wrap_reasoning(reasoning: Any, content: str) -> str:
    """Prepend a complete ``<think>`` section to the final content."""
    return f"{THINK_OPEN}{reasoning}\n{THINK_CLOSE}{content}"


def translate_choice(choice: Any, position: int, show_reasoning: bool) -> Choice:
    if not isinstance(choice, dict):
        choice = {}
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}

    content = message.get("content") or ""
    reasoning = message.get("reasoning_content")
    if show_reasoning and reasoning:
        content = wrap_reasoning(reasoning, content)

    index = choice.get("index")
    return {
        "index": index if _is_finite_number(index) else position,
        "message": {
            "role": message.get("role") or DEFAULT_ROLE,
            "content": content,
        },
        "finish_reason": choice.get("finish_reason") or DEFAULT_FINISH_REASON,
    }


def translate_chat_completion(
    body: Any,
    requested_model: str,
    show_reasoning: bool = False,
    now: Optional[float] = None,
) -> ChatCompletionResponse:
    """Convert one complete upstream body into the caller-facing envelope.

    Args:
        body: Parsed upstream JSON (anything non-dict yields no choices).
        requested_model: The caller's model string, echoed back verbatim
            even though a different upstream model served the request.
        show_reasoning: Whether to surface ``reasoning_content`` in a
            ``<think>`` section ahead of the content.
        now: Override for the current time (seconds), used for id/created.
    """
    now = time.time() if now is None else now
    if not isinstance(body, dict):
        logger.warning(
            "Upstream returned a non-object completion body (%s)", type(body).__name__
        )
        body = {}

    raw_choices = body.get("choices")
    if not isinstance(raw_choices, list):
        raw_choices = []

    return {
        "id": generate_completion_id(now),
        "object": "chat.completion",
        "created": int(now),
        "model": requested_model,
        "choices": [
            translate_choice(choice, position, show_reasoning)
            for position, choice in enumerate(raw_choices)
        ],
        "usage": body.get("usage") or zero_usage(),
    }
