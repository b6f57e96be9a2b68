"""Type definitions for the proxy."""

from .chat import (
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    Delta,
    ErrorBody,
    ErrorEnvelope,
    Usage,
)

__all__ = [
    "ChatCompletionResponse",
    "ChatMessage",
    "Choice",
    "Delta",
    "ErrorBody",
    "ErrorEnvelope",
    "Usage",
]
