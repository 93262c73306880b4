"""
LLM Gateway — Unified Entry Point for all Chat Requests

The gateway is the single call site for the HTTP layer. It composes:

  ┌─────────────────────────────────────────────────────┐
  │  LLMGateway.complete() / .open_stream()             │
  │       │                                             │
  │       ▼                                             │
  │  ProviderRouter.route()      ← resolve + pick       │
  │       │                                             │
  │       ▼                                             │
  │  BackendClientCache          ← handle per provider  │
  │       │                                             │
  │       ▼                                             │
  │  ExecutionAdapter.execute()  ← one attempt, no retry│
  │       │                                             │
  │       ▼                                             │
  │  ResponseTranslator          ← JSON / SSE frames    │
  └─────────────────────────────────────────────────────┘

Usage (from the chat endpoint)::

    gateway = request.app.state.gateway
    body    = await gateway.complete(chat_request)

    # SSE streaming; raises BEFORE returning if the backend fails up front
    frames  = await gateway.open_stream(chat_request, request.is_disconnected)
    return StreamingResponse(frames, media_type="text/event-stream")

One gateway is built per application by the composition root (main.py) and
held on app.state; every collaborator is passed in explicitly.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

from costrouter.core.errors import UpstreamError
from costrouter.llm.cache import BackendClientCache
from costrouter.llm.executor import ExecutionAdapter
from costrouter.llm.resolver import Candidate, ProviderSource
from costrouter.llm.router import ProviderRouter
from costrouter.llm.translator import DisconnectCheck, ResponseTranslator
from costrouter.observability.tracing import span
from costrouter.schemas.chat import ChatCompletionRequest, ModelCard, ModelList

logger = logging.getLogger(__name__)


class LLMGateway:
    """
    Provider-agnostic chat interface with cost-aware routing.

    All public methods are async and safe for concurrent use.
    """

    def __init__(
        self,
        catalog:    ProviderSource,
        router:     ProviderRouter,
        cache:      BackendClientCache,
        executor:   ExecutionAdapter,
        translator: ResponseTranslator | None = None,
    ) -> None:
        self._catalog    = catalog
        self._router     = router
        self._cache      = cache
        self._executor   = executor
        self._translator = translator or ResponseTranslator()

    @property
    def cache(self) -> BackendClientCache:
        return self._cache

    # -----------------------------------------------------------------------
    # Non-streaming
    # -----------------------------------------------------------------------

    async def complete(self, request: ChatCompletionRequest) -> dict[str, Any]:
        """
        Route, execute `request.n` generations and return the completion body.

        Raises:
            ModelNotConfigured:      nothing exposes request.model (404)
            UnsupportedProviderType: selected provider has an unknown type
            UpstreamError:           any generation failed
        """
        candidate = self._router.route(request.model)
        handle    = await self._cache.get_or_create(candidate.provider)

        t0 = time.perf_counter()
        async with span("chat_completion", provider=candidate.provider.id, n=request.n):
            result = await self._executor.execute(
                handle,
                candidate.model.canonical_slug,
                request.message_dicts(),
                stream=False,
                choice_count=request.n,
            )
        body = self._translator.to_completion(result.generations, request.model)

        self._log_summary(candidate, request, t0, body["usage"]["total_tokens"])
        return body

    # -----------------------------------------------------------------------
    # Streaming
    # -----------------------------------------------------------------------

    async def open_stream(
        self,
        request:         ChatCompletionRequest,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """
        Route and open the upstream stream, returning an iterator of SSE lines.

        Pre-stream failures raise here, so the caller can still answer with
        a JSON error and a real status code.
        """
        candidate = self._router.route(request.model)
        handle    = await self._cache.get_or_create(candidate.provider)

        t0 = time.perf_counter()
        async with span("open_stream", provider=candidate.provider.id):
            result = await self._executor.execute(
                handle,
                candidate.model.canonical_slug,
                request.message_dicts(),
                stream=True,
                choice_count=request.n,
            )
        self._log_summary(candidate, request, t0, None)

        if result.stream is None:
            raise UpstreamError("backend returned no stream")
        return self._translator.stream_frames(result.stream, request.model, is_disconnected)

    # -----------------------------------------------------------------------
    # Model listing
    # -----------------------------------------------------------------------

    def list_models(self) -> dict[str, Any]:
        """Every distinct exposed identifier, in catalog order."""
        created = int(time.time())
        cards:  dict[str, ModelCard] = {}
        for provider in tuple(self._catalog.get_providers()):
            for model in provider.models:
                if model.exposed_id not in cards:
                    cards[model.exposed_id] = ModelCard(
                        id=model.exposed_id,
                        created=created,
                        owned_by=provider.id,
                    )
        return ModelList(data=list(cards.values())).model_dump()

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------

    @staticmethod
    def _log_summary(
        candidate:    Candidate,
        request:      ChatCompletionRequest,
        t0:           float,
        total_tokens: int | None,
    ) -> None:
        latency = (time.perf_counter() - t0) * 1000
        logger.info(
            "LLMGateway | model=%s provider=%s canonical=%s stream=%s n=%d tokens=%s latency_ms=%.1f",
            request.model, candidate.provider.id, candidate.model.canonical_slug,
            request.stream, 1 if request.stream else request.n,
            "-" if total_tokens is None else total_tokens, latency,
        )
