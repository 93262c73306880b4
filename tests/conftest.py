"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : backends, registry, catalog, make_app, app, async_client

Environment strategy:
  - No test touches a real provider: every provider in the test catalogs has
    type "fake" and is served by a FakeBackend from the `backends` fixture.
  - Catalogs are in-memory (JSONCatalog without a path) unless a test needs
    file persistence, in which case it uses tmp_path.
  - The router gets a seeded random.Random so zero-cost picks are repeatable.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # API tests through the ASGI app
  pytest tests/unit/test_router.py
"""

from __future__ import annotations

import os
import random
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from langchain_core.messages import AIMessageChunk

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("APP_ENV",           "development")
os.environ.setdefault("LOG_LEVEL",         "debug")
os.environ.setdefault("CATALOG_PATH",      "test-catalog.json")
os.environ.setdefault("LANGSMITH_API_KEY", "")

from costrouter.catalog.store import JSONCatalog                    # noqa: E402
from costrouter.llm.backend import GenerationResult, TextStream, TokenUsage  # noqa: E402
from costrouter.llm.registry import BackendRegistry                 # noqa: E402
from costrouter.schemas.catalog import AppConfig, Model, Pricing, Provider  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Catalog builders
# ─────────────────────────────────────────────────────────────────────────────

def make_model(
    canonical: str,
    exposed:   str | None = None,
    **pricing: float,
) -> Model:
    """
    Build a Model. Pricing keywords: input, output, per_request.
    No keywords → no pricing object at all.
    """
    price = None
    if pricing:
        price = Pricing(
            input_cost_per_million_tokens=pricing.get("input"),
            output_cost_per_million_tokens=pricing.get("output"),
            cost_per_request=pricing.get("per_request"),
        )
    return Model(canonical_slug=canonical, exposed_slug=exposed, pricing=price)


def make_provider(provider_id: str, *models: Model, type: str = "fake") -> Provider:
    return Provider(id=provider_id, type=type, api_key="sk-test", models=models)


# ─────────────────────────────────────────────────────────────────────────────
# Fake backend handle
# ─────────────────────────────────────────────────────────────────────────────

class FakeBackend:
    """
    Scripted BackendHandle.

    fail_generate     : exception raised by every generate() call
    fail_stream_after : index of the fragment at which the stream raises
                        (0 = before any text, 1 = after the first fragment)
    """

    def __init__(
        self,
        text:              str = "Hello world",
        fragments:         tuple[str, ...] = ("Hello", " world"),
        finish_reason:     str = "stop",
        usage:             TokenUsage = TokenUsage(prompt_tokens=7, completion_tokens=3),
        fail_generate:     Exception | None = None,
        fail_stream_after: int | None = None,
    ) -> None:
        self.text              = text
        self.fragments         = fragments
        self.finish_reason     = finish_reason
        self.usage             = usage
        self.fail_generate     = fail_generate
        self.fail_stream_after = fail_stream_after
        self.generate_calls: list[str] = []
        self.stream_calls:   list[str] = []
        self.pulled   = 0
        self.closed   = False

    async def generate(self, model_name: str, messages: list[dict[str, Any]]) -> GenerationResult:
        self.generate_calls.append(model_name)
        if self.fail_generate is not None:
            raise self.fail_generate
        return GenerationResult(text=self.text, finish_reason=self.finish_reason, usage=self.usage)

    async def stream(self, model_name: str, messages: list[dict[str, Any]]) -> TextStream:
        self.stream_calls.append(model_name)
        return TextStream(self._chunks())

    async def _chunks(self):
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_stream_after == i:
                    raise RuntimeError("upstream connection reset")
                self.pulled += 1
                yield AIMessageChunk(content=fragment)
            yield AIMessageChunk(
                content="",
                response_metadata={"finish_reason": self.finish_reason},
                usage_metadata={
                    "input_tokens":  self.usage.prompt_tokens,
                    "output_tokens": self.usage.completion_tokens,
                    "total_tokens":  self.usage.total_tokens,
                },
            )
        finally:
            self.closed = True


# ─────────────────────────────────────────────────────────────────────────────
# Registry + catalog fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def backends() -> dict[str, FakeBackend]:
    """provider id → FakeBackend; tests add or replace entries freely."""
    return {
        "free-a": FakeBackend(text="from free-a"),
        "paid-b": FakeBackend(text="from paid-b"),
        "paid-c": FakeBackend(text="from paid-c"),
    }


@pytest.fixture
def construction_log() -> list[str]:
    return []


@pytest.fixture
def registry(backends, construction_log) -> BackendRegistry:
    def factory(provider: Provider) -> FakeBackend:
        construction_log.append(provider.id)
        return backends[provider.id]

    return BackendRegistry({"fake": factory})


@pytest.fixture
def catalog_config() -> AppConfig:
    """
    Two paid providers sharing "shared/chat" plus one free provider that also
    exposes it, and one model only paid-c serves.
    """
    return AppConfig(providers=(
        make_provider(
            "paid-b",
            make_model("b-chat", "shared/chat", input=2.0, output=5.0),
        ),
        make_provider(
            "paid-c",
            make_model("c-chat", "shared/chat", input=1.0, output=1.0),
            make_model("c-solo", input=3.0, output=4.0),
        ),
        make_provider(
            "free-a",
            make_model("a-free", "free/chat", input=0, output=0),
        ),
    ))


@pytest.fixture
def catalog(catalog_config) -> JSONCatalog:
    return JSONCatalog(catalog_config)


# ─────────────────────────────────────────────────────────────────────────────
# App + HTTP client
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_app(registry):
    """Factory: build the FastAPI app around any catalog."""
    def _build(catalog: JSONCatalog, seed: int = 0):
        from costrouter.main import create_app
        return create_app(catalog=catalog, registry=registry, rng=random.Random(seed))
    return _build


@pytest.fixture
def app(make_app, catalog):
    return make_app(catalog)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client over the ASGI app (no server, no lifespan)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
