"""
Configuration API Router

  GET  /config/get     current catalog (camelCase, as stored on disk)
  POST /config/set     validate + persist + swap; cached backend handles are
                       dropped through the catalog's change notification
  POST /admin/reload   re-read the catalog file, same notification path

Every failure answers 500 with the route's own message and the underlying
reason in `details`.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body

from costrouter.api.dependencies import Catalog
from costrouter.core.errors import CatalogError
from costrouter.schemas.chat import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Configuration"])

_ERRORS = {500: {"model": ErrorResponse, "description": "Catalog could not be read or written"}}


def _reason(exc: Exception) -> str:
    if isinstance(exc, CatalogError):
        return exc.details or exc.message
    return str(exc) or type(exc).__name__


@router.get("/config/get", summary="Current provider catalog", responses=_ERRORS)
async def get_config(catalog: Catalog) -> dict[str, Any]:
    try:
        return catalog.get_config().to_json_dict()
    except Exception as exc:
        logger.error("ConfigAPI | get failed: %s", exc)
        raise CatalogError("Failed to retrieve config.", details=_reason(exc)) from exc


@router.post("/config/set", summary="Replace the provider catalog", responses=_ERRORS)
async def set_config(catalog: Catalog, new_config: dict[str, Any] = Body(...)) -> dict[str, str]:
    try:
        await catalog.update_config(new_config)
    except Exception as exc:
        logger.error("ConfigAPI | set failed: %s", exc)
        raise CatalogError("Failed to update configuration.", details=_reason(exc)) from exc
    return {"message": "Configuration updated successfully."}


@router.post("/admin/reload", summary="Reload the catalog file", responses=_ERRORS)
async def reload_config(catalog: Catalog) -> dict[str, str]:
    try:
        await catalog.reload_config()
    except Exception as exc:
        logger.error("ConfigAPI | reload failed: %s", exc)
        raise CatalogError("Failed to reload configuration.", details=_reason(exc)) from exc
    return {"message": "Configuration reloaded successfully."}
