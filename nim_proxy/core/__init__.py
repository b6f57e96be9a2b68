"""Core module initialization."""

from .backend import Backend, build_outbound_headers, format_httpx_error
from .exceptions import (
    InvalidRequestError,
    ProxyError,
    ServerMisconfiguredError,
    UpstreamTimeoutError,
    UpstreamTransportError,
    build_error_envelope,
)
from .models import FallbackTiers, pick_fallback_model, resolve_model
from .request import (
    ChatMessage,
    InboundRequest,
    UpstreamRequest,
    build_upstream_request,
    parse_inbound_request,
)
from .rewriter import FrameRewriter, ReasoningMergeState
from .router import ProxyRouter
from .sse import DataFrame, RawFrame, SSEFrameReassembler, TerminationMarker, iter_frames
from .translator import translate_chat_completion

__all__ = [
    "Backend",
    "ChatMessage",
    "DataFrame",
    "FallbackTiers",
    "FrameRewriter",
    "InboundRequest",
    "InvalidRequestError",
    "ProxyError",
    "ProxyRouter",
    "RawFrame",
    "ReasoningMergeState",
    "SSEFrameReassembler",
    "ServerMisconfiguredError",
    "TerminationMarker",
    "UpstreamRequest",
    "UpstreamTimeoutError",
    "UpstreamTransportError",
    "build_error_envelope",
    "build_outbound_headers",
    "build_upstream_request",
    "format_httpx_error",
    "iter_frames",
    "parse_inbound_request",
    "pick_fallback_model",
    "resolve_model",
    "translate_chat_completion",
]
