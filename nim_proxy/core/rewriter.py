"""Rewriting of reassembled upstream frames into caller-facing SSE bytes.

NIM reasoning models stream ``delta.reasoning_content`` alongside
``delta.content``. OpenAI-style clients do not know the former, so it is
always removed. With reasoning display on, it is folded into ``content``
inside a ``<think>`` section:

    {reasoning: "A"}  -> content "<think>\\nA"
    {reasoning: "B"}  -> content "B"
    {content: "C"}    -> content "</think>\\n\\nC"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..types.chat import Delta
from .sse import DataFrame, LogicalFrame, RawFrame, TerminationMarker, TERMINATION_TOKEN

logger = logging.getLogger("nim-proxy")

THINK_OPEN = "<think>\n"
THINK_CLOSE = "</think>\n\n"

DONE_EVENT = f"data: {TERMINATION_TOKEN}\n\n".encode("utf-8")


@dataclass
class ReasoningMergeState:
    """Whether a ``<think>`` section has been opened but not yet closed."""

    open: bool = False


def get_path(obj: Any, *keys: Any) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step."""
    cur = obj
    for key in keys:
        if isinstance(key, int):
            if not isinstance(cur, list) or not -len(cur) <= key < len(cur):
                return None
            cur = cur[key]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(key)
    return cur


def merge_reasoning(
    reasoning: Any, content: Any, state: ReasoningMergeState
) -> str:
    """Combine one delta's reasoning and content, updating ``state``."""
    combined = ""
    if reasoning and not state.open:
        combined = THINK_OPEN + str(reasoning)
        state.open = True
    elif reasoning:
        combined = str(reasoning)

    if content and state.open:
        combined += THINK_CLOSE + str(content)
        state.open = False
    elif content:
        combined += str(content)
    return combined


def finalize_delta(delta: Delta) -> Delta:
    """Remove reasoning_content and make sure content is a string."""
    delta.pop("reasoning_content", None)
    if not delta.get("content"):
        delta["content"] = ""
    return delta


def encode_data_event(payload: Any) -> bytes:
    """Encode a JSON payload as one ``data:`` SSE event."""
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"data: {data}\n\n".encode("utf-8")


class FrameRewriter:
    """Per-stream rewriter turning LogicalFrames into outbound SSE bytes.

    Owns the ReasoningMergeState for one stream; create one per request.
    """

    def __init__(
        self,
        show_reasoning: bool = False,
        state: Optional[ReasoningMergeState] = None,
    ) -> None:
        self.show_reasoning = show_reasoning
        self.state = state or ReasoningMergeState()

    def rewrite(self, frame: LogicalFrame) -> list[bytes]:
        """Return the outbound events for one frame (possibly none)."""
        if isinstance(frame, TerminationMarker):
            return [DONE_EVENT]
        if isinstance(frame, RawFrame):
            return [f"{frame.line}\n".encode("utf-8")]
        if isinstance(frame, DataFrame):
            return [encode_data_event(self.rewrite_payload(frame.payload))]
        logger.warning("Dropping unknown frame type %s", type(frame).__name__)
        return []

    def rewrite_payload(self, payload: Any) -> Any:
        """Apply the reasoning policy to a parsed chunk in place and return it."""
        first_delta = get_path(payload, "choices", 0, "delta")
        if not isinstance(first_delta, dict):
            return payload

        if self.show_reasoning:
            combined = merge_reasoning(
                first_delta.get("reasoning_content"),
                first_delta.get("content"),
                self.state,
            )
            if combined:
                first_delta["content"] = combined

        for choice in payload["choices"]:
            delta = get_path(choice, "delta")
            if isinstance(delta, dict):
                finalize_delta(delta)
        return payload
