"""
Observability — LangSmith switch + span timing

Upstream calls all go through LangChain chat models, so LangSmith sees every
backend generation once LangChain's environment variables are present:

  LANGCHAIN_TRACING_V2=true
  LANGCHAIN_API_KEY=ls__...
  LANGCHAIN_PROJECT=costrouter

TracingConfig.init() exports those from settings (LANGSMITH_API_KEY /
LANGSMITH_PROJECT) unless the process environment already carries them.

Gateway-side spans go to the standard logging module and are always on:

    async with span("route", model=model_id):
        ...

    @traced("backend_generate")
    async def _generate_one(...): ...

A span logs DEBUG on success and WARNING (with the exception) on failure.
Cancellation is not a failure and is not logged.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


class TracingConfig:
    """Process-wide, idempotent: the app factory calls init() on every build."""

    _done: bool = False

    @classmethod
    def init(cls) -> None:
        if cls._done:
            return
        cls._done = True

        from costrouter.core.config import settings

        env_key = os.environ.get("LANGCHAIN_API_KEY")
        if settings.langsmith_api_key and not env_key:
            os.environ.update({
                "LANGCHAIN_TRACING_V2": "true",
                "LANGCHAIN_API_KEY":    settings.langsmith_api_key,
                "LANGCHAIN_PROJECT":    settings.langsmith_project,
            })
            logger.info("Tracing | LangSmith on project=%s", settings.langsmith_project)
        elif env_key and os.environ.get("LANGCHAIN_TRACING_V2") == "true":
            logger.info("Tracing | LangSmith on (environment) project=%s",
                        os.environ.get("LANGCHAIN_PROJECT", "default"))
        else:
            logger.debug("Tracing | LangSmith off")


@asynccontextmanager
async def span(name: str, **fields: Any) -> AsyncIterator[None]:
    started = time.perf_counter()
    tags    = " ".join(f"{k}={v}" for k, v in fields.items())
    try:
        yield
    except Exception as exc:
        logger.warning(
            "trace | span=%s %s elapsed_ms=%.1f error=%s: %s",
            name, tags, (time.perf_counter() - started) * 1000, type(exc).__name__, exc,
        )
        raise
    logger.debug("trace | span=%s %s elapsed_ms=%.1f ok", name, tags, (time.perf_counter() - started) * 1000)


def traced(name: str | None = None) -> Callable[[F], F]:
    """Wrap an async function in a span named `name` (default: its qualname)."""
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async with span(name or func.__qualname__):
                return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]
    return decorator
