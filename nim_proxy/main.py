"""Main FastAPI application for the NIM proxy."""

import logging
import socket
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import chat_completions, health, list_models
from .core import ProxyRouter, build_error_envelope
from .logging import setup_logging
from .settings import ProxySettings, load_settings

logger = logging.getLogger("nim-proxy")


def _log_startup(settings: ProxySettings) -> None:
    logger.info("NIM proxy starting up...")
    logger.info("Configured bind address %s:%s", settings.host, settings.port)
    if settings.host == "0.0.0.0":
        hostname = socket.gethostname()
        logger.info("Reachable on local network at http://%s:%s", hostname, settings.port)
    logger.info("Health check: http://localhost:%s/health", settings.port)
    logger.info(
        "Force no stream: %s", "ENABLED" if settings.force_no_stream else "DISABLED"
    )
    logger.info(
        "Reasoning display: %s", "ENABLED" if settings.show_reasoning else "DISABLED"
    )
    logger.info(
        "Thinking mode: %s", "ENABLED" if settings.enable_thinking_mode else "DISABLED"
    )
    logger.info("NIM_API_BASE: %s", settings.api_base)
    logger.info("NIM_API_KEY present: %s", settings.api_key_present)
    if not settings.api_key_present:
        logger.warning("NIM_API_KEY is missing; chat completions will return 500")


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Unknown paths and unsupported methods both surface as 404.
    if exc.status_code in (404, 405):
        return JSONResponse(
            build_error_envelope(
                f"Endpoint {request.url.path} not found", "invalid_request_error", 404
            ),
            status_code=404,
        )
    return JSONResponse(
        build_error_envelope(str(exc.detail), "invalid_request_error", exc.status_code),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: Optional[ProxySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the proxy application.

    Args:
        settings: Immutable process settings. Loaded from config and the
            environment when omitted.
        transport: Optional httpx transport for the upstream client, used to
            run against an in-process upstream.

    Returns:
        The configured FastAPI application.
    """
    if settings is None:
        settings = load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout_seconds),
            transport=transport,
            follow_redirects=True,
        )
        app.state.router = ProxyRouter(settings, client)
        _log_startup(settings)
        try:
            yield
        finally:
            await client.aclose()
            logger.info("NIM proxy shut down")

    app = FastAPI(title="NIM Proxy", lifespan=lifespan)
    app.state.settings = settings
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)

    app.post("/v1/chat/completions")(chat_completions)
    app.post("/chat/completions")(chat_completions)
    app.get("/v1/models")(list_models)
    app.get("/models")(list_models)
    app.get("/health")(health)

    return app


app = create_app()

__all__ = ["app", "create_app"]
