"""
FastAPI dependencies — per-application components from app.state

The composition root (main.create_app) builds one catalog and one gateway per
application and stores them on ``app.state``. Routes receive them through
these dependencies instead of module-level singletons, so tests can build an
app around an in-memory catalog and a fake backend registry.

Usage in route handlers::

    @router.get("/models")
    async def list_models(gateway: Gateway) -> dict: ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from costrouter.catalog.store import JSONCatalog
from costrouter.llm.gateway import LLMGateway


def get_gateway(request: Request) -> LLMGateway:
    return request.app.state.gateway


def get_catalog(request: Request) -> JSONCatalog:
    return request.app.state.catalog


# ---------------------------------------------------------------------------
# Convenience type aliases for route signatures
# ---------------------------------------------------------------------------

Gateway = Annotated[LLMGateway,  Depends(get_gateway)]
Catalog = Annotated[JSONCatalog, Depends(get_catalog)]
