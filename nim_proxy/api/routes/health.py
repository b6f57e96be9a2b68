"""Health/status endpoint."""

from fastapi import Request

SERVICE_NAME = "OpenAI to NVIDIA NIM Proxy"


async def health(request: Request) -> dict:
    """GET /health - configuration snapshot for operators (never the API key)."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        **request.app.state.settings.health_snapshot(),
    }
