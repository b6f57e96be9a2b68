"""Upstream (NIM) endpoint configuration and HTTP helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

import httpx

if TYPE_CHECKING:
    from ..settings import ProxySettings

logger = logging.getLogger("nim-proxy")

CHAT_COMPLETIONS_PATH = "/chat/completions"
SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "x-api-key"}


@dataclass(frozen=True)
class Backend:
    """The upstream provider a request is forwarded to."""

    base_url: str
    api_key: str
    timeout: float
    name: str = "nim"

    @classmethod
    def from_settings(cls, settings: "ProxySettings") -> "Backend":
        return cls(
            base_url=settings.api_base,
            api_key=settings.api_key or "",
            timeout=settings.timeout_seconds,
        )

    def build_url(self, path: str = CHAT_COMPLETIONS_PATH) -> str:
        """Build the full URL for a backend request."""
        base = self.base_url.rstrip("/")
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"

    def build_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout)


def build_outbound_headers(api_key: str, is_stream: bool = False) -> dict[str, str]:
    """Build headers for outbound requests to the upstream."""
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
        # Explicitly request uncompressed responses
        "Accept-Encoding": "identity",
    }
    headers["Accept"] = "text/event-stream" if is_stream else "application/json"
    return headers


def _safe_headers_for_log(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of headers with credentials masked."""
    safe: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            safe[key] = "***"
        else:
            safe[key] = value
    return safe


def format_httpx_error(exc: Any, backend: Backend, url: Optional[str] = None) -> str:
    """Produce a detailed, user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)

    try:
        request = exc.request
    except (AttributeError, RuntimeError):
        request = None
    if request is not None:
        parts.append(f"request={request.method} {request.url}")
    elif url:
        parts.append(f"url={url}")

    if isinstance(exc, httpx.TimeoutException):
        parts.append(f"timeout={backend.timeout}s")

    return "; ".join(parts)
