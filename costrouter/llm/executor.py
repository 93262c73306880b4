"""
Execution Adapter — one backend call per request, no retries

  stream=False → `choice_count` independent generations run concurrently.
                 All-or-nothing: the first failure cancels the rest and the
                 request fails with UpstreamError.

  stream=True  → exactly one generation; choice_count > 1 is ignored (the
                 OpenAI API does not stream multiple choices either). The
                 stream is primed before returning, so a backend that fails
                 before producing any text fails HERE, while the caller can
                 still answer with a plain JSON error.

Every backend exception is surfaced as UpstreamError carrying the backend's
message. The optional timeout (settings.backend_timeout_seconds) bounds each
single-shot call and each wait for the next stream fragment.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from costrouter.core.errors import GatewayError, UpstreamError
from costrouter.llm.backend import BackendHandle, GenerationResult, TextStream
from costrouter.observability.tracing import traced

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Either a list of finished generations or one open text stream."""
    generations: list[GenerationResult] = field(default_factory=list)
    stream:      TextStream | None      = None

    @property
    def is_stream(self) -> bool:
        return self.stream is not None


def _upstream(exc: Exception) -> UpstreamError:
    return UpstreamError(str(exc) or type(exc).__name__)


class ExecutionAdapter:

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    async def execute(
        self,
        handle:       BackendHandle,
        model_name:   str,
        messages:     list[dict[str, Any]],
        stream:       bool = False,
        choice_count: int  = 1,
    ) -> ExecutionResult:
        if stream:
            if choice_count > 1:
                logger.debug("ExecutionAdapter | streaming ignores n=%d, using 1", choice_count)
            return ExecutionResult(stream=await self._open_stream(handle, model_name, messages))

        generations = await self._generate_all(handle, model_name, messages, max(1, choice_count))
        return ExecutionResult(generations=generations)

    # -----------------------------------------------------------------------
    # Single-shot
    # -----------------------------------------------------------------------

    async def _generate_all(
        self,
        handle:     BackendHandle,
        model_name: str,
        messages:   list[dict[str, Any]],
        count:      int,
    ) -> list[GenerationResult]:
        tasks = [
            asyncio.create_task(self._generate_one(handle, model_name, messages))
            for _ in range(count)
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    @traced("backend_generate")
    async def _generate_one(
        self,
        handle:     BackendHandle,
        model_name: str,
        messages:   list[dict[str, Any]],
    ) -> GenerationResult:
        if self._timeout is not None:
            try:
                return await asyncio.wait_for(
                    self._call_generate(handle, model_name, messages), self._timeout,
                )
            except asyncio.TimeoutError as exc:
                raise UpstreamError(f"backend call timed out after {self._timeout}s") from exc
        return await self._call_generate(handle, model_name, messages)

    @staticmethod
    async def _call_generate(
        handle:     BackendHandle,
        model_name: str,
        messages:   list[dict[str, Any]],
    ) -> GenerationResult:
        try:
            return await handle.generate(model_name, messages)
        except GatewayError:
            raise
        except Exception as exc:
            raise _upstream(exc) from exc

    # -----------------------------------------------------------------------
    # Streaming
    # -----------------------------------------------------------------------

    async def _open_stream(
        self,
        handle:     BackendHandle,
        model_name: str,
        messages:   list[dict[str, Any]],
    ) -> TextStream:
        try:
            text_stream = await handle.stream(model_name, messages)
        except GatewayError:
            raise
        except Exception as exc:
            raise _upstream(exc) from exc

        text_stream.timeout = self._timeout
        try:
            await text_stream.prime()
        except BaseException:
            await text_stream.aclose()
            raise
        return text_stream
