"""
GitHub Copilot bearer tokens.

Copilot providers are configured with a long-lived GitHub OAuth token. Every
chat call needs a short-lived bearer token obtained from the Copilot token
endpoint. Tokens are cached per OAuth token and refreshed once they are within
5 minutes of expiry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import httpx
from langchain_core.language_models.chat_models import BaseChatModel

from costrouter.core.config import settings
from costrouter.llm.backend import ChatBackend
from costrouter.schemas.catalog import Provider

logger = logging.getLogger(__name__)

_REFRESH_MARGIN_SECONDS = 5 * 60

# (canonical_slug, bearer_token) -> chat model
CopilotModelBuilder = Callable[[str, str], BaseChatModel]


@dataclass(frozen=True)
class CopilotToken:
    token:      str
    expires_at: float   # unix seconds

    def is_fresh(self, now: float | None = None) -> bool:
        return (now or time.time()) < self.expires_at - _REFRESH_MARGIN_SECONDS


def _parse_expiry(raw: object) -> float:
    if isinstance(raw, (int, float)):
        return float(raw)
    return datetime.fromisoformat(str(raw).replace("Z", "+00:00")).timestamp()


class CopilotTokenManager:
    """In-memory bearer token cache keyed by OAuth token."""

    def __init__(self, token_url: str | None = None, timeout: float = 10.0) -> None:
        self._token_url = token_url or settings.copilot_token_url
        self._timeout   = timeout
        self._store: dict[str, CopilotToken] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get_bearer_token(self, provider: Provider) -> str:
        if not provider.oauth_token:
            raise ValueError(f"Copilot provider '{provider.id}' has no oauthToken configured")

        cached = self._store.get(provider.oauth_token)
        if cached is not None and cached.is_fresh():
            return cached.token

        lock = self._locks.setdefault(provider.oauth_token, asyncio.Lock())
        async with lock:
            cached = self._store.get(provider.oauth_token)
            if cached is None or not cached.is_fresh():
                logger.debug("Copilot | refreshing bearer token provider=%s", provider.id)
                cached = await self._fetch(provider.oauth_token)
                self._store[provider.oauth_token] = cached
        return cached.token

    async def _fetch(self, oauth_token: str) -> CopilotToken:
        async with httpx.AsyncClient(timeout=self._timeout) as http:
            resp = await http.get(
                self._token_url,
                headers={
                    "User-Agent":    "costrouter",
                    "Authorization": f"token {oauth_token}",
                },
            )
            resp.raise_for_status()
            body = resp.json()
        return CopilotToken(token=body["token"], expires_at=_parse_expiry(body["expires_at"]))

    def clear(self) -> None:
        """Forget every bearer token; the next call per OAuth token refetches."""
        self._store.clear()


class CopilotBackend(ChatBackend):
    """ChatBackend that rebuilds its chat models whenever the bearer token rotates."""

    def __init__(
        self,
        provider: Provider,
        tokens:   CopilotTokenManager,
        build:    CopilotModelBuilder,
    ) -> None:
        super().__init__(provider.id, builder=lambda name: build(name, self._token_in_use))
        self._provider     = provider
        self._tokens       = tokens
        self._token_in_use = ""

    async def chat_model(self, model_name: str) -> BaseChatModel:
        token = await self._tokens.get_bearer_token(self._provider)
        if token != self._token_in_use:
            self._models.clear()
            self._token_in_use = token
        return await super().chat_model(model_name)
