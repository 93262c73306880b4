"""
Response Translator — backend output → OpenAI wire format

Single-shot:

    generations ──► chat.completion
                      choices[i]   one per generation, i = 0..n-1
                      usage        token-wise sum over all generations

Streaming (text/event-stream):

    data: {"choices":[{"delta":{"role":"assistant"}, ...}], ...}     role
    data: {"choices":[{"delta":{"content":"Hel"}, ...}], ...}        content ×N
    data: {"choices":[{"delta":{}, "finish_reason":"stop"}], ...}    terminal
    data: [DONE]

  A backend failure AFTER the first frame cannot change the HTTP status any
  more; it becomes an in-band frame, still followed by the sentinel:

    data: {"error": "Mid-stream connection failed."}
    data: [DONE]

Every frame of one response shares the same `chatcmpl-` id and `created`.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Sequence

from costrouter.core.errors import GatewayError
from costrouter.llm.backend import GenerationResult, TextStream, TokenUsage
from costrouter.schemas.chat import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionMessage,
    Choice,
    ChunkChoice,
    ChunkDelta,
    ErrorResponse,
    Usage,
)

logger = logging.getLogger(__name__)

DONE_SENTINEL        = "data: [DONE]\n\n"
MID_STREAM_ERROR     = "Mid-stream connection failed."
INTERNAL_ERROR       = "An unexpected error occurred."

DisconnectCheck = Callable[[], Awaitable[bool]]


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _usage(usage: TokenUsage) -> Usage:
    return Usage(
        prompt_tokens     = usage.prompt_tokens,
        completion_tokens = usage.completion_tokens,
        total_tokens      = usage.total_tokens,
    )


class ResponseTranslator:

    # -----------------------------------------------------------------------
    # Non-streaming
    # -----------------------------------------------------------------------

    def to_completion(self, generations: Sequence[GenerationResult], model_id: str) -> dict[str, Any]:
        total = TokenUsage()
        for generation in generations:
            total = total + generation.usage

        completion = ChatCompletion(
            id      = new_completion_id(),
            created = int(time.time()),
            model   = model_id,
            choices = [
                Choice(
                    index         = i,
                    message       = ChatCompletionMessage(content=generation.text),
                    finish_reason = generation.finish_reason,
                )
                for i, generation in enumerate(generations)
            ],
            usage   = _usage(total),
        )
        return completion.model_dump()

    # -----------------------------------------------------------------------
    # Streaming
    # -----------------------------------------------------------------------

    async def stream_frames(
        self,
        stream:          TextStream,
        model_id:        str,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """
        Yield SSE lines for one open stream. The upstream stream is always
        closed on exit, including when the client goes away.
        """
        completion_id = new_completion_id()
        created       = int(time.time())

        def frame(delta: ChunkDelta, finish_reason: str | None = None, usage: Usage | None = None) -> str:
            chunk = ChatCompletionChunk(
                id      = completion_id,
                created = created,
                model   = model_id,
                choices = [ChunkChoice(delta=delta, finish_reason=finish_reason)],
                usage   = usage,
            )
            return sse(chunk.to_wire())

        fragments = 0
        try:
            yield frame(ChunkDelta(role="assistant"))
            try:
                async for fragment in stream:
                    if is_disconnected is not None and await is_disconnected():
                        logger.info(
                            "ResponseTranslator | client disconnected model=%s fragments=%d",
                            model_id, fragments,
                        )
                        return
                    fragments += 1
                    yield frame(ChunkDelta(content=fragment))
            except Exception as exc:
                logger.warning(
                    "ResponseTranslator | mid-stream failure model=%s fragments=%d error=%s",
                    model_id, fragments, exc,
                )
                yield sse({"error": MID_STREAM_ERROR})
                yield DONE_SENTINEL
                return

            yield frame(ChunkDelta(), finish_reason=stream.finish_reason or "stop", usage=_usage(stream.usage))
            yield DONE_SENTINEL
            logger.debug("ResponseTranslator | stream complete model=%s fragments=%d", model_id, fragments)
        finally:
            await stream.aclose()

    # -----------------------------------------------------------------------
    # Errors
    # -----------------------------------------------------------------------

    @staticmethod
    def error_body(exc: Exception) -> dict[str, Any]:
        if isinstance(exc, GatewayError):
            body = ErrorResponse(error=exc.message, details=exc.details)
        else:
            body = ErrorResponse(error=INTERNAL_ERROR)
        return body.model_dump(exclude_none=True)
