"""Per-request orchestration: validate, dispatch upstream, forward the result."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Mapping, Optional

import httpx
from fastapi import Response
from fastapi.responses import JSONResponse, StreamingResponse

from .backend import Backend, _safe_headers_for_log, build_outbound_headers, format_httpx_error
from .exceptions import (
    ServerMisconfiguredError,
    UpstreamTimeoutError,
    UpstreamTransportError,
    build_error_envelope,
)
from .models import list_model_ids, resolve_model
from .request import build_upstream_request, parse_inbound_request
from .rewriter import FrameRewriter
from .sse import SSEFrameReassembler, iter_frames
from .translator import translate_chat_completion

if TYPE_CHECKING:
    from ..settings import ProxySettings

logger = logging.getLogger("nim-proxy")

DisconnectChecker = Callable[[], Awaitable[bool]]

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}
MAX_LOGGED_ERROR_BODY = 2000


def build_upstream_error_response(status_code: int, content: bytes) -> Response:
    """Forward an upstream error status to the caller.

    Structured (JSON) bodies are forwarded byte-for-byte with the same status;
    anything else is wrapped in the standard error envelope.
    """
    try:
        data = json.loads(content) if content else None
    except ValueError:
        data = None
    if isinstance(data, (dict, list)):
        return Response(
            content=content, status_code=status_code, media_type="application/json"
        )

    text = content.decode("utf-8", errors="replace").strip()
    return JSONResponse(
        build_error_envelope(
            text or f"Upstream error {status_code}", "upstream_error", status_code
        ),
        status_code=status_code,
    )


class ProxyRouter:
    """Forwards chat completion requests to the NIM upstream.

    Each call walks Validating -> Dispatched -> one of StreamingForward,
    BufferedRespond or ErrorForward. All per-request state (parsed request,
    reassembly buffer, reasoning merge state) is created inside the call;
    the router itself only holds read-only settings and the shared client.
    """

    def __init__(self, settings: "ProxySettings", client: httpx.AsyncClient) -> None:
        self.settings = settings
        self.client = client
        self.backend = Backend.from_settings(settings)

    def list_model_names(self) -> list[str]:
        return list_model_ids(self.settings.model_mapping)

    async def forward_chat_completion(
        self,
        payload: Mapping[str, Any],
        disconnect_checker: Optional[DisconnectChecker] = None,
    ) -> Response:
        """Handle one chat completion request body.

        Raises:
            InvalidRequestError: The body failed validation (no upstream call).
            ServerMisconfiguredError: No API key is configured (no upstream call).
            UpstreamTimeoutError: The upstream did not answer in time.
            UpstreamTransportError: The upstream could not be reached.
        """
        inbound = parse_inbound_request(payload, self.settings)

        if not self.backend.api_key:
            logger.error("Refusing request: NIM_API_KEY is not configured")
            raise ServerMisconfiguredError(
                "Server misconfigured: NIM_API_KEY is missing "
                "(set it in the environment or the config file)."
            )

        upstream_model = resolve_model(
            inbound.model, self.settings.model_mapping, self.settings.fallback_tiers
        )
        upstream_request = build_upstream_request(inbound, upstream_model, self.settings)
        logger.info(
            "Forwarding model %s -> %s, messages=%d, stream=%s",
            inbound.model,
            upstream_model,
            len(inbound.messages),
            upstream_request.stream,
        )

        url = self.backend.build_url()
        headers = build_outbound_headers(self.backend.api_key, upstream_request.stream)
        body = json.dumps(upstream_request.to_payload(), ensure_ascii=False).encode("utf-8")

        if upstream_request.stream:
            return await self._stream_request(url, headers, body, disconnect_checker)
        return await self._buffered_request(url, headers, body, inbound.model)

    async def _send(
        self, url: str, headers: dict[str, str], body: bytes, stream: bool
    ) -> httpx.Response:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "POST %s (%d bytes, stream=%s) headers=%s",
                url,
                len(body),
                stream,
                _safe_headers_for_log(headers),
            )
        request = self.client.build_request(
            "POST", url, headers=headers, content=body, timeout=self.backend.build_timeout()
        )
        try:
            return await self.client.send(request, stream=stream)
        except httpx.TimeoutException as exc:
            detail = format_httpx_error(exc, self.backend, url=url)
            logger.error("Upstream request timed out: %s", detail)
            raise UpstreamTimeoutError(f"Upstream request timed out: {detail}") from exc
        except httpx.HTTPError as exc:
            detail = format_httpx_error(exc, self.backend, url=url)
            logger.error("No upstream response (network/DNS failure): %s", detail)
            raise UpstreamTransportError(f"Upstream request failed: {detail}") from exc

    def _error_forward(self, status_code: int, content: bytes) -> Response:
        logger.warning(
            "Upstream returned status %s: %s",
            status_code,
            content[:MAX_LOGGED_ERROR_BODY].decode("utf-8", errors="replace"),
        )
        return build_upstream_error_response(status_code, content)

    async def _buffered_request(
        self, url: str, headers: dict[str, str], body: bytes, requested_model: str
    ) -> Response:
        # Per-phase httpx timeouts do not bound a slowly trickling body.
        try:
            resp = await asyncio.wait_for(
                self._send(url, headers, body, stream=False),
                timeout=self.backend.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "Upstream request exceeded overall deadline of %ss: %s",
                self.backend.timeout,
                url,
            )
            raise UpstreamTimeoutError(
                f"Upstream request timed out after {self.backend.timeout}s"
            ) from exc
        logger.debug("Received response from %s: status %s", url, resp.status_code)

        if resp.status_code >= 400:
            return self._error_forward(resp.status_code, resp.content)

        try:
            data = resp.json()
        except ValueError:
            data = resp.text
        envelope = translate_chat_completion(
            data, requested_model, show_reasoning=self.settings.show_reasoning
        )
        return JSONResponse(envelope)

    async def _stream_request(
        self,
        url: str,
        headers: dict[str, str],
        body: bytes,
        disconnect_checker: Optional[DisconnectChecker],
    ) -> Response:
        resp = await self._send(url, headers, body, stream=True)

        if resp.status_code >= 400:
            try:
                content = await resp.aread()
            except httpx.HTTPError as exc:
                detail = format_httpx_error(exc, self.backend, url=url)
                raise UpstreamTransportError(
                    f"Failed to read upstream error body: {detail}"
                ) from exc
            finally:
                await resp.aclose()
            return self._error_forward(resp.status_code, content)

        logger.info("Streaming response from %s, status %s", url, resp.status_code)
        return StreamingResponse(
            self._forward_stream(resp, disconnect_checker),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    async def _upstream_chunks(
        self,
        resp: httpx.Response,
        disconnect_checker: Optional[DisconnectChecker],
        reassembler: SSEFrameReassembler,
    ) -> AsyncIterator[bytes]:
        chunk_count = 0
        async for chunk in resp.aiter_bytes():
            if disconnect_checker is not None and await disconnect_checker():
                logger.info(
                    "Client disconnected; abandoning upstream stream after %d chunks",
                    chunk_count,
                )
                reassembler.discard()
                return
            chunk_count += 1
            if chunk_count % 50 == 0:
                logger.debug("Streamed %d chunks from upstream", chunk_count)
            yield chunk
        logger.info("Upstream stream finished after %d chunks", chunk_count)

    async def _forward_stream(
        self, resp: httpx.Response, disconnect_checker: Optional[DisconnectChecker]
    ) -> AsyncIterator[bytes]:
        reassembler = SSEFrameReassembler()
        rewriter = FrameRewriter(show_reasoning=self.settings.show_reasoning)
        try:
            async for frame in iter_frames(
                self._upstream_chunks(resp, disconnect_checker, reassembler), reassembler
            ):
                for event in rewriter.rewrite(frame):
                    yield event
        except httpx.HTTPError as exc:
            # The caller sees the stream end; no error frame is emitted.
            logger.error("Stream error: %s", format_httpx_error(exc, self.backend))
        finally:
            await resp.aclose()
