"""
OpenAI-compatible API endpoints.

Provides /v1/chat/completions and /v1/models. A single model name is
published; requests naming any other model are rejected.
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from .errors import InvalidRequestError
from .models import ChatCompletionRequest, ModelInfo
from .relay import StreamRelay, relay_stream

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/v1/models")
async def list_models(request: Request):
    """List the published model (OpenAI-compatible)."""
    cfg = request.app.state.config
    model = ModelInfo(id=cfg.exposed_model, created=int(time.time()))
    return {"object": "list", "data": [model.model_dump()]}


async def _parse_request(request: Request) -> ChatCompletionRequest:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError("request body is not valid JSON")

    try:
        chat_request = ChatCompletionRequest.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidRequestError(f"invalid request at {location or 'body'}: {first.get('msg')}")

    exposed = request.app.state.config.exposed_model
    if chat_request.model != exposed:
        raise InvalidRequestError(f"model '{chat_request.model}' does not exist, use '{exposed}'")
    if not chat_request.messages:
        raise InvalidRequestError("messages must not be empty")
    return chat_request


@router.post("/v1/chat/completions")
async def chat_completions(request: Request):
    """
    OpenAI-compatible chat completions.

    Tools run server side; the client only ever sees assistant text. With
    ``stream: true`` the answer arrives as SSE chunks ending in ``[DONE]``.
    """
    chat_request = await _parse_request(request)
    engine = request.app.state.engine

    logger.info(f"Chat completion: messages={len(chat_request.messages)}, stream={chat_request.stream}")

    if chat_request.stream:
        relay = StreamRelay(request.app.state.config.exposed_model)
        return StreamingResponse(
            relay_stream(engine.stream(chat_request, request.is_disconnected), relay),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    response = await engine.complete(chat_request, request.is_disconnected)
    return response.model_dump(exclude_none=True)
