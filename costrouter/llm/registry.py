"""
Backend Registry — provider type → handle factory

Every provider in the catalog names a `type`. The registry maps that tag to a
factory that turns the provider's config into a BackendHandle:

    registry = default_registry()
    handle   = await registry.create(provider)      # may perform I/O

Built-in types (all LangChain chat models):

  openai             ChatOpenAI (baseURL optional, e.g. a proxy)
  openai-compatible  ChatOpenAI against the provider's baseURL (required)
  openrouter         ChatOpenAI → https://openrouter.ai/api/v1
  deepinfra          ChatOpenAI → https://api.deepinfra.com/v1/openai
  azure_openai       AzureChatOpenAI (canonical_slug = deployment name)
  ollama             ChatOllama (local / air-gapped)
  copilot            ChatOpenAI → Copilot API, bearer token exchanged from
                     the provider's oauthToken at construction time

Adding a provider type:
  registry.register("my-type", factory) — the factory may be sync or async.

SDK-level retries are disabled on every chat model (max_retries=0): the
gateway makes exactly one attempt per request.
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Union

from costrouter.core.config import settings
from costrouter.core.errors import UnsupportedProviderType
from costrouter.llm.backend import BackendHandle, ChatBackend
from costrouter.llm.copilot import CopilotBackend, CopilotTokenManager
from costrouter.schemas.catalog import Provider

logger = logging.getLogger(__name__)

BackendFactory = Callable[[Provider], Union[BackendHandle, Awaitable[BackendHandle]]]

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEEPINFRA_BASE_URL  = "https://api.deepinfra.com/v1/openai"


class BackendRegistry:
    """Open tagged registry of backend factories."""

    def __init__(self, factories: dict[str, BackendFactory] | None = None) -> None:
        self._factories: dict[str, BackendFactory] = dict(factories or {})

    def register(self, provider_type: str, factory: BackendFactory) -> None:
        if provider_type in self._factories:
            logger.info("BackendRegistry | replacing factory for type=%s", provider_type)
        self._factories[provider_type] = factory

    def supported_types(self) -> list[str]:
        return list(self._factories)

    def factory_for(self, provider_type: str) -> BackendFactory:
        factory = self._factories.get(provider_type)
        if factory is None:
            raise UnsupportedProviderType(provider_type, self.supported_types())
        return factory

    async def create(self, provider: Provider) -> BackendHandle:
        factory = self.factory_for(provider.type)
        handle  = factory(provider)
        if inspect.isawaitable(handle):
            handle = await handle
        return handle


# ---------------------------------------------------------------------------
# Provider-specific builders
# ---------------------------------------------------------------------------

def _build_openai(provider: Provider) -> ChatBackend:
    from langchain_openai import ChatOpenAI

    def build(model_name: str) -> ChatOpenAI:
        return ChatOpenAI(
            model=model_name,
            api_key=provider.api_key or None,
            base_url=provider.base_url,
            max_retries=0,
            stream_usage=True,
        )

    return ChatBackend(provider.id, build)


def _openai_compatible(default_base_url: str | None) -> BackendFactory:
    def factory(provider: Provider) -> ChatBackend:
        from langchain_openai import ChatOpenAI

        base_url = provider.base_url or default_base_url
        if not base_url:
            raise ValueError(f"Provider '{provider.id}' of type '{provider.type}' requires baseURL")

        def build(model_name: str) -> ChatOpenAI:
            return ChatOpenAI(
                model=model_name,
                api_key=provider.api_key or "EMPTY",   # local servers ignore it
                base_url=base_url,
                max_retries=0,
                stream_usage=True,
            )

        return ChatBackend(provider.id, build)

    return factory


def _build_azure_openai(provider: Provider) -> ChatBackend:
    from langchain_openai import AzureChatOpenAI

    if not provider.base_url:
        raise ValueError(f"Azure OpenAI provider '{provider.id}' requires baseURL (the endpoint)")

    def build(model_name: str) -> AzureChatOpenAI:
        return AzureChatOpenAI(
            azure_deployment=model_name,
            azure_endpoint=provider.base_url,
            api_key=provider.api_key,   # type: ignore[arg-type]
            api_version=provider.api_version or settings.azure_openai_api_version,
            max_retries=0,
            stream_usage=True,
        )

    return ChatBackend(provider.id, build)


def _build_ollama(provider: Provider) -> ChatBackend:
    from langchain_community.chat_models import ChatOllama

    def build(model_name: str) -> ChatOllama:
        return ChatOllama(
            model=model_name,
            base_url=provider.base_url or "http://localhost:11434",
        )

    return ChatBackend(provider.id, build)


def _copilot_factory(tokens: CopilotTokenManager) -> BackendFactory:
    async def factory(provider: Provider) -> CopilotBackend:
        from langchain_openai import ChatOpenAI

        # Exchange credentials up front: a bad oauthToken fails construction.
        await tokens.get_bearer_token(provider)
        base_url = provider.base_url or settings.copilot_base_url

        def build(model_name: str, bearer_token: str) -> ChatOpenAI:
            return ChatOpenAI(
                model=model_name,
                api_key=bearer_token,
                base_url=base_url,
                default_headers={
                    "Copilot-Integration-Id": "vscode-chat",
                    "Editor-Version":         "costrouter/1.0",
                },
                max_retries=0,
                stream_usage=True,
            )

        return CopilotBackend(provider, tokens, build)

    return factory


def default_registry(copilot_tokens: CopilotTokenManager | None = None) -> BackendRegistry:
    """Registry pre-populated with every built-in provider type."""
    return BackendRegistry({
        "openai":            _build_openai,
        "openai-compatible": _openai_compatible(None),
        "openrouter":        _openai_compatible(OPENROUTER_BASE_URL),
        "deepinfra":         _openai_compatible(DEEPINFRA_BASE_URL),
        "azure_openai":      _build_azure_openai,
        "ollama":            _build_ollama,
        "copilot":           _copilot_factory(copilot_tokens or CopilotTokenManager()),
    })
