"""
Backend Client Cache — one handle per provider instance

Handles are keyed by ``"{provider.type}:{provider.id}"`` and live for the
process lifetime unless clear() is called (the app wires clear() to catalog
change events, since a config update may rotate credentials).

Behaviour:
  • Populated key   → returned immediately, no await.
  • Missing key     → the first caller starts a construction task; every
                      concurrent caller for the same key awaits that SAME
                      task (single-flight). Different keys construct in
                      parallel.
  • Construction is shielded: a caller that is cancelled (client went away)
    does not abort the construction other callers are waiting on.
  • Failed constructions are not cached; the next request tries again.
  • clear() during an in-flight construction orphans it: its waiters still
    get the handle, but it is not stored.
"""

from __future__ import annotations

import asyncio
import logging

from costrouter.core.errors import GatewayError, UpstreamError
from costrouter.llm.backend import BackendHandle
from costrouter.llm.registry import BackendRegistry
from costrouter.observability.tracing import traced
from costrouter.schemas.catalog import Provider

logger = logging.getLogger(__name__)


class BackendClientCache:

    def __init__(self, registry: BackendRegistry) -> None:
        self._registry   = registry
        self._handles:  dict[str, BackendHandle] = {}
        self._inflight: dict[str, asyncio.Task[BackendHandle]] = {}
        self._generation = 0

    async def get_or_create(self, provider: Provider) -> BackendHandle:
        key    = provider.cache_key
        handle = self._handles.get(key)
        if handle is not None:
            return handle

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._construct(key, provider, self._generation),
                name=f"backend-construct:{key}",
            )
            self._inflight[key] = task
        else:
            logger.debug("BackendClientCache | awaiting in-flight construction key=%s", key)

        return await asyncio.shield(task)

    @traced("backend_construct")
    async def _construct(self, key: str, provider: Provider, generation: int) -> BackendHandle:
        try:
            handle = await self._registry.create(provider)
        except GatewayError:
            raise
        except Exception as exc:
            logger.warning("BackendClientCache | construction failed key=%s error=%s", key, exc)
            raise UpstreamError(f"Failed to initialise provider '{provider.id}': {exc}") from exc
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

        if generation == self._generation:
            self._handles[key] = handle
            logger.info("BackendClientCache | constructed key=%s", key)
        else:
            logger.info("BackendClientCache | cache cleared during construction, not storing key=%s", key)
        return handle

    def clear(self) -> None:
        """Drop every cached handle. Used when provider credentials change."""
        dropped = len(self._handles)
        self._handles.clear()
        self._inflight.clear()
        self._generation += 1
        logger.info("BackendClientCache | cleared %d handles", dropped)

    def __contains__(self, key: str) -> bool:
        return key in self._handles

    def stats(self) -> dict:
        return {
            "handles":  sorted(self._handles),
            "inflight": sorted(self._inflight),
        }
