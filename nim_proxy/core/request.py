"""Inbound request validation and upstream request construction."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional

from .exceptions import InvalidRequestError

if TYPE_CHECKING:
    from ..settings import ProxySettings

DEFAULT_TEMPERATURE = 0.6
DEFAULT_MAX_TOKENS = 2048

THINKING_EXTENSION = {"chat_template_kwargs": {"thinking": True}}


@dataclass(frozen=True)
class ChatMessage:
    """One inbound chat message.

    The caller's fields are kept verbatim (tool calls, names, multi-part
    content) so the message reaches the upstream unchanged.
    """

    fields: Mapping[str, Any]

    @classmethod
    def from_payload(cls, item: Any, position: int) -> "ChatMessage":
        if not isinstance(item, Mapping):
            raise InvalidRequestError(
                f"Invalid message at index {position}: expected an object"
            )
        return cls(fields=MappingProxyType(dict(item)))

    def to_payload(self) -> dict[str, Any]:
        return dict(self.fields)


@dataclass(frozen=True)
class InboundRequest:
    model: str
    messages: tuple[ChatMessage, ...]
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    stream: bool = False


@dataclass(frozen=True)
class UpstreamRequest:
    model: str
    messages: tuple[ChatMessage, ...]
    temperature: float
    max_tokens: int
    stream: bool
    extra_body: Optional[Mapping[str, Any]] = field(default=None)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON body sent upstream (no undefined fields)."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_payload() for message in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }
        if self.extra_body is not None:
            payload["extra_body"] = self.extra_body
        return payload


def coerce_number(value: Any) -> Optional[float]:
    """Coerce a caller-supplied value to a finite float, or None."""
    if value is None:
        return None
    try:
        if isinstance(value, (bool, int, float)):
            number = float(value)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            number = float(text)
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def coerce_stream_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return value in (1, "1", "true")


def parse_inbound_request(
    payload: Mapping[str, Any], settings: Optional["ProxySettings"] = None
) -> InboundRequest:
    """Validate the inbound body and build an InboundRequest.

    Raises:
        InvalidRequestError: If ``model`` or ``messages`` is missing or malformed.
    """
    model = payload.get("model")
    if not isinstance(model, str) or not model:
        raise InvalidRequestError("Missing or invalid 'model' in request body")

    raw_messages = payload.get("messages")
    if not isinstance(raw_messages, list):
        raise InvalidRequestError("Missing or invalid 'messages' array in request body")
    messages = tuple(
        ChatMessage.from_payload(item, position)
        for position, item in enumerate(raw_messages)
    )

    temperature = coerce_number(payload.get("temperature"))
    max_tokens = coerce_number(payload.get("max_tokens"))

    stream = coerce_stream_flag(payload.get("stream"))
    if settings is not None and settings.force_no_stream:
        stream = False

    return InboundRequest(
        model=model,
        messages=messages,
        temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
        max_tokens=DEFAULT_MAX_TOKENS if max_tokens is None else int(max_tokens),
        stream=stream,
    )


def build_upstream_request(
    inbound: InboundRequest,
    upstream_model: str,
    settings: Optional["ProxySettings"] = None,
) -> UpstreamRequest:
    """Build the NIM request envelope for a validated inbound request."""
    extra_body = None
    if settings is not None and settings.enable_thinking_mode:
        extra_body = {
            "chat_template_kwargs": dict(THINKING_EXTENSION["chat_template_kwargs"])
        }
    return UpstreamRequest(
        model=upstream_model,
        messages=inbound.messages,
        temperature=inbound.temperature,
        max_tokens=inbound.max_tokens,
        stream=inbound.stream,
        extra_body=extra_body,
    )
