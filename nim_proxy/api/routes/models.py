"""Models listing endpoint - OpenAI compatible."""

import logging
import time

from fastapi import Request

logger = logging.getLogger("nim-proxy")


async def list_models(request: Request) -> dict:
    """List caller-facing models in OpenAI API format.

    GET /v1/models
    """
    logger.info("Received models list request")

    router = request.app.state.router
    created = int(time.time())
    models = [
        {
            "id": model_name,
            "object": "model",
            "created": created,
            "owned_by": "nvidia-nim-proxy",
        }
        for model_name in router.list_model_names()
    ]

    return {
        "object": "list",
        "data": models,
    }
