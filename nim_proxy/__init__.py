"""nim-proxy - OpenAI-compatible front end for NVIDIA NIM.

Accepts OpenAI-style chat completion requests, maps the requested model to a
NIM model, forwards the call, and translates the reply back, including
re-framing streamed responses and folding NIM reasoning output into
``<think>`` sections when enabled.

This module provides:
- ProxyRouter: per-request orchestration against the NIM upstream
- SSEFrameReassembler / FrameRewriter: the streaming re-framing engine
- translate_chat_completion: the non-streaming response translation
- ProxySettings / load_settings: immutable configuration

Example:
    >>> from nim_proxy.main import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="0.0.0.0", port=10000)
"""

from .config_loader import load_config
from .core import (
    FrameRewriter,
    ProxyRouter,
    SSEFrameReassembler,
    resolve_model,
    translate_chat_completion,
)
from .logging import setup_logging
from .settings import ProxySettings, load_settings

__version__ = "1.0.0"

__all__ = [
    "FrameRewriter",
    "ProxyRouter",
    "ProxySettings",
    "SSEFrameReassembler",
    "load_config",
    "load_settings",
    "resolve_model",
    "setup_logging",
    "translate_chat_completion",
]
