"""
OpenAI-compatible API Router
POST /v1/chat/completions
GET  /v1/models

Request lifecycle:
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Body validation (model, messages, stream, n)          │
  │ 2. Resolve candidates → cost-aware selection             │
  │ 3. Backend handle from cache (constructed on first use)  │
  │ 4. stream=false → n generations → chat.completion JSON   │
  │    stream=true  → first fragment pulled, THEN the SSE    │
  │                   response opens                         │
  └─────────────────────────────────────────────────────────┘

Errors raised before the response starts are GatewayErrors and become
`{"error", "details"}` JSON through the app's exception handler. Once the
SSE stream is open, failures are reported in-band and the stream still ends
with `data: [DONE]`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from costrouter.api.dependencies import Gateway
from costrouter.schemas.chat import ChatCompletion, ChatCompletionRequest, ErrorResponse, ModelList

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["OpenAI-compatible"])

SSE_HEADERS = {
    "Cache-Control":     "no-cache",
    "X-Accel-Buffering": "no",    # disable nginx buffering for SSE
    "Connection":        "keep-alive",
}


# ---------------------------------------------------------------------------
# POST /v1/chat/completions
# ---------------------------------------------------------------------------

@router.post(
    "/chat/completions",
    summary="Create a chat completion",
    description=(
        "Routes the request to the cheapest configured provider exposing "
        "`model`. With `stream=true` the response is a text/event-stream of "
        "chat.completion.chunk frames terminated by `data: [DONE]`."
    ),
    responses={
        200: {"model": ChatCompletion, "description": "Completion (or SSE stream)"},
        404: {"model": ErrorResponse, "description": "No provider exposes the requested model"},
        422: {"model": ErrorResponse, "description": "Malformed request body"},
        500: {"model": ErrorResponse, "description": "Provider selection or backend call failed"},
    },
)
async def chat_completions(
    request: Request,
    body:    ChatCompletionRequest,
    gateway: Gateway,
):
    if body.stream:
        frames = await gateway.open_stream(body, request.is_disconnected)
        return StreamingResponse(
            frames,
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    completion = await gateway.complete(body)
    return JSONResponse(content=completion)


# ---------------------------------------------------------------------------
# GET /v1/models
# ---------------------------------------------------------------------------

@router.get(
    "/models",
    response_model=ModelList,
    summary="List exposed models",
    description="Every distinct exposed model identifier across all providers.",
)
async def list_models(gateway: Gateway) -> dict:
    return gateway.list_models()
