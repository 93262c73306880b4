"""
Provider Catalog — JSON-file backed configuration store

The catalog is the read-mostly source of truth for which providers exist,
which models they serve and what those models cost.

  ┌──────────────────────────────────────────────────────────────┐
  │  JSONCatalog                                                  │
  │                                                               │
  │   get_config() / get_providers()  ← one immutable snapshot    │
  │                                                               │
  │   update_config(cfg)   validate → write file → swap → notify  │
  │   reload_config()      read file → validate → swap → notify   │
  │                                                               │
  │   on_change(cb)        cb(new_config) after every swap        │
  └──────────────────────────────────────────────────────────────┘

Consistency:
  - A snapshot (AppConfig) is frozen. Swapping is a single attribute
    assignment, so a request that grabbed get_providers() keeps resolving
    against that one snapshot even if a reload lands mid-request.
  - Writers (update/reload) are serialised by an asyncio.Lock.
  - Change callbacks run after the swap. A failing callback is logged and
    does not undo the swap or fail the admin request.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from costrouter.core.errors import CatalogError
from costrouter.schemas.catalog import AppConfig, Provider

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[AppConfig], "Awaitable[None] | None"]


class JSONCatalog:
    """
    Usage::

        catalog = await JSONCatalog.initialize("config.json")
        catalog.on_change(lambda cfg: cache.clear())
        providers = catalog.get_providers()

    Pass ``path=None`` for a purely in-memory catalog (tests, embedding).
    """

    def __init__(self, config: AppConfig | None = None, path: Path | str | None = None) -> None:
        self._config    = config or AppConfig()
        self._path      = Path(path) if path is not None else None
        self._callbacks: list[ChangeCallback] = []
        self._lock      = asyncio.Lock()

    @classmethod
    async def initialize(cls, path: Path | str) -> "JSONCatalog":
        """Load the catalog file, creating it with an empty provider list if absent."""
        catalog = cls(path=path)
        if catalog._path is not None and not catalog._path.exists():
            logger.info("Catalog | creating empty catalog at %s", catalog._path)
            await catalog._write(catalog._path, catalog._config)
        else:
            catalog._config = await catalog._read()

        logger.info(
            "Catalog | loaded path=%s providers=%d",
            catalog._path, len(catalog._config.providers),
        )
        return catalog

    # -----------------------------------------------------------------------
    # Read access
    # -----------------------------------------------------------------------

    def get_config(self) -> AppConfig:
        return self._config

    def get_providers(self) -> tuple[Provider, ...]:
        return self._config.providers

    def on_change(self, callback: ChangeCallback) -> None:
        self._callbacks.append(callback)

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    async def update_config(self, new_config: AppConfig | dict[str, Any]) -> None:
        """Validate, persist and publish a complete replacement configuration."""
        config = self._validate(new_config)
        async with self._lock:
            if self._path is not None:
                await self._write(self._path, config)
            self._config = config
        logger.info("Catalog | updated providers=%d", len(config.providers))
        await self._emit(config)

    async def reload_config(self) -> None:
        """Re-read the catalog file and publish it."""
        async with self._lock:
            config = await self._read()
            self._config = config
        logger.info("Catalog | reloaded providers=%d", len(config.providers))
        await self._emit(config)

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    @staticmethod
    def _validate(raw: AppConfig | dict[str, Any]) -> AppConfig:
        if isinstance(raw, AppConfig):
            return raw
        try:
            return AppConfig.model_validate(raw)
        except ValidationError as exc:
            raise CatalogError("Invalid configuration.", details=str(exc)) from exc

    async def _read(self) -> AppConfig:
        if self._path is None:
            return self._config
        try:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            raw  = json.loads(text) if text.strip() else {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Catalog | read failed path=%s error=%s", self._path, exc)
            raise CatalogError("Failed to read configuration.", details=str(exc)) from exc
        return self._validate(raw)

    @staticmethod
    async def _write(path: Path, config: AppConfig) -> None:
        payload = json.dumps(config.to_json_dict(), indent=2)
        try:
            await asyncio.to_thread(_atomic_write, path, payload)
        except OSError as exc:
            logger.error("Catalog | write failed path=%s error=%s", path, exc)
            raise CatalogError("Failed to persist configuration.", details=str(exc)) from exc

    async def _emit(self, config: AppConfig) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback(config)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("Catalog | change callback failed (non-fatal): %s", exc)


def _atomic_write(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(payload, encoding="utf-8")
    os.replace(tmp, path)
