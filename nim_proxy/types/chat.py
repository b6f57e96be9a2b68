"""Types for the OpenAI-compatible chat completion wire format.

These describe what callers send and receive. NIM responses use the same
shapes plus the vendor ``reasoning_content`` field, which never reaches
callers.
"""

from typing import Any
from typing_extensions import TypedDict


class ChatMessage(TypedDict, total=False):
    """A message in a chat conversation (OpenAI format).

    Attributes:
        role: Role of the message sender ("system", "user", "assistant", "tool").
        content: Text content of the message, or a list of content parts.
        reasoning_content: NIM-only reasoning text on assistant messages.
    """
    role: str
    content: str | list[dict[str, Any]] | None
    name: str | None
    tool_calls: list[dict[str, Any]] | None
    tool_call_id: str | None
    reasoning_content: str | None


class Delta(TypedDict, total=False):
    """A streamed delta of a choice (OpenAI format, plus NIM reasoning)."""
    role: str | None
    content: str | None
    reasoning_content: str | None
    tool_calls: list[dict[str, Any]] | None


class Choice(TypedDict, total=False):
    """A choice in a chat completion response or chunk.

    Attributes:
        index: Zero-based index of this choice in the choices array.
        delta: The incremental content for streaming responses.
        message: The complete message for non-streaming responses.
        finish_reason: Reason why the model stopped generating.
    """
    index: int
    delta: Delta | None
    message: ChatMessage | None
    finish_reason: str | None


class Usage(TypedDict):
    """Token usage counters."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionResponse(TypedDict):
    """A non-streaming chat completion envelope returned to callers."""
    id: str
    object: str
    created: int
    model: str
    choices: list[Choice]
    usage: Usage | dict[str, Any]


class ErrorBody(TypedDict):
    message: str
    type: str
    code: int


class ErrorEnvelope(TypedDict):
    error: ErrorBody
