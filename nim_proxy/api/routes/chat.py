"""OpenAI-compatible chat completions endpoint."""

import json
import logging
from typing import Mapping

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from ...core import ProxyError, ProxyRouter, build_error_envelope
from ...core.exceptions import InvalidRequestError

logger = logging.getLogger("nim-proxy")


def error_response(exc: ProxyError) -> JSONResponse:
    return JSONResponse(exc.to_envelope(), status_code=exc.status_code)


async def chat_completions(request: Request) -> Response:
    """Chat completions endpoint - OpenAI compatible.

    POST /v1/chat/completions

    Per-request faults never escape: validation and configuration errors map
    to their envelopes, and anything unexpected becomes a generic 500.
    """
    logger.info(f"Handling {request.method} request to {request.url.path}")
    router: ProxyRouter = request.app.state.router

    try:
        body = await request.body()
        try:
            payload = json.loads(body or b"{}")
        except ValueError as exc:
            logger.error(f"Invalid JSON payload: {exc}")
            raise InvalidRequestError("Invalid JSON payload") from exc

        if not isinstance(payload, Mapping):
            logger.error("Payload must be a JSON object")
            raise InvalidRequestError("Request body must be a JSON object")

        return await router.forward_chat_completion(
            payload, disconnect_checker=request.is_disconnected
        )
    except ProxyError as exc:
        if exc.status_code < 500:
            logger.warning(f"Rejected request: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.exception(f"Proxy error: {exc}")
        return JSONResponse(
            build_error_envelope(str(exc) or "Internal server error", "server_error", 500),
            status_code=500,
        )
