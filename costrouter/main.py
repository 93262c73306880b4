"""
FastAPI Application — Entry Point

Cost-aware OpenAI-compatible LLM gateway

Architecture:
  - OpenAI-compatible routes under /v1/ (chat completions, models)
  - Catalog administration under /config/ and /admin/
  - One catalog + one gateway per application, built here (the composition
    root) and held on app.state; routes reach them through dependencies
  - Structured JSON error responses on all 4xx/5xx: {"error", "details"}

Composition:

  JSONCatalog ──► CandidateResolver ──► ProviderRouter ─┐
       │                                                 ├─► LLMGateway
       └─ on_change ─► BackendClientCache.clear()        │
                       BackendClientCache ◄─ Registry ───┤
                       ExecutionAdapter ─────────────────┤
                       ResponseTranslator ───────────────┘

Middleware stack (innermost → outermost):
  1. CORS — open, like the OpenAI API
  2. Request ID + logging — X-Request-ID header on every response
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from costrouter.api.config import router as config_router
from costrouter.api.v1.chat import router as chat_router
from costrouter.catalog.store import JSONCatalog
from costrouter.core.config import settings
from costrouter.core.errors import GatewayError
from costrouter.llm.cache import BackendClientCache
from costrouter.llm.copilot import CopilotTokenManager
from costrouter.llm.executor import ExecutionAdapter
from costrouter.llm.gateway import LLMGateway
from costrouter.llm.registry import BackendRegistry, default_registry
from costrouter.llm.resolver import CandidateResolver
from costrouter.llm.router import ProviderRouter
from costrouter.llm.translator import ResponseTranslator
from costrouter.schemas.chat import ErrorResponse

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Catalog / env log levels → stdlib logging
_LOG_LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info":  logging.INFO,
    "warn":  logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


def resolve_log_level(name: str | None) -> int:
    if not name:
        return logging.DEBUG if settings.debug else logging.INFO
    return _LOG_LEVELS.get(name.lower(), logging.INFO)


logging.basicConfig(
    level=resolve_log_level(settings.log_level),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def build_gateway(
    catalog:  JSONCatalog,
    registry: BackendRegistry | None = None,
    rng:      random.Random | None   = None,
) -> LLMGateway:
    """Wire the routing core around one catalog."""
    if registry is None:
        tokens   = CopilotTokenManager()
        registry = default_registry(tokens)
        catalog.on_change(lambda _config: tokens.clear())

    cache = BackendClientCache(registry)
    # Config updates may rotate credentials; drop every cached handle.
    catalog.on_change(lambda _config: cache.clear())

    return LLMGateway(
        catalog    = catalog,
        router     = ProviderRouter(CandidateResolver(catalog), rng=rng),
        cache      = cache,
        executor   = ExecutionAdapter(timeout=settings.backend_timeout_seconds),
        translator = ResponseTranslator(),
    )


def install_catalog(app: FastAPI, catalog: JSONCatalog) -> None:
    app.state.catalog = catalog
    app.state.gateway = build_gateway(catalog, app.state.registry, app.state.rng)

    # The catalog's logLevel wins over LOG_LEVEL
    catalog_level = catalog.get_config().log_level
    if catalog_level:
        logging.getLogger().setLevel(resolve_log_level(catalog_level))
        logger.info("Log level set from catalog | level=%s", catalog_level)


# ---------------------------------------------------------------------------
# Application lifespan, startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run on startup: load the catalog file (unless one was injected).
    Run on shutdown: log only; handles hold no process-level resources.
    """
    if getattr(app.state, "catalog", None) is None:
        install_catalog(app, await JSONCatalog.initialize(settings.catalog_path))

    logger.info(
        "Starting costrouter | env=%s catalog=%s providers=%d timeout=%s",
        settings.app_env, settings.catalog_path,
        len(app.state.catalog.get_providers()), settings.backend_timeout_seconds,
    )

    yield

    logger.info("Shutting down costrouter")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    catalog:  JSONCatalog | None     = None,
    registry: BackendRegistry | None = None,
    rng:      random.Random | None   = None,
) -> FastAPI:
    """
    Build the application. Passing `catalog` wires everything immediately
    (tests, embedding); otherwise the catalog file is loaded at startup.
    """
    app = FastAPI(
        title="costrouter",
        description=(
            "OpenAI-compatible gateway that routes each chat request to the "
            "cheapest configured provider serving the requested model."
        ),
        version=VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.rng      = rng
    app.state.catalog  = None
    if catalog is not None:
        install_catalog(app, catalog)

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order; last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform {"error", "details"} bodies
    # ----------------------------------------------------------------

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "GatewayError | path=%s status=%d error=%s details=%s",
            request.url.path, exc.status_code, exc.message, exc.details,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ResponseTranslator.error_body(exc),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to the gateway error body."""
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        body = ErrorResponse(error="Invalid request body.", details=details)
        return JSONResponse(
            status_code=422,
            content=body.model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseTranslator.error_body(exc),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(chat_router)
    app.include_router(config_router)

    # Initialise observability tracing (LangSmith)
    from costrouter.observability.tracing import TracingConfig
    TracingConfig.init()

    # ----------------------------------------------------------------
    # Health endpoint (no external checks, used by load balancer)
    # ----------------------------------------------------------------

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {
            "status":    "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version":   VERSION,
        }

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Console entry point
# ---------------------------------------------------------------------------

def run() -> None:
    import uvicorn

    uvicorn.run(
        "costrouter.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.app_env == "development" and settings.debug,
        log_level=logging.getLevelName(resolve_log_level(settings.log_level)).lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run()
