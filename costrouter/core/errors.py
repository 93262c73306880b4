"""
Gateway error taxonomy.

Every failure the routing core can produce is a GatewayError subclass carrying
the HTTP status it maps to. The FastAPI exception handler in main.py turns
these into the wire error shape::

    {"error": "<message>", "details": "<optional backend message>"}

  ┌──────────────────────────┬────────┬──────────────────────────────────────┐
  │ Error                    │ Status │ Raised by                            │
  ├──────────────────────────┼────────┼──────────────────────────────────────┤
  │ ModelNotConfigured       │  404   │ ProviderRouter.route (no candidates) │
  │ NoAvailableCandidate     │  500   │ ProviderRouter.select                │
  │ UnsupportedProviderType  │  500   │ BackendRegistry.create               │
  │ UpstreamError            │  500   │ ExecutionAdapter / TextStream        │
  │ CatalogError             │  500   │ JSONCatalog load / update / reload   │
  └──────────────────────────┴────────┴──────────────────────────────────────┘

Mid-stream failures never raise past the translator: once SSE headers are
sent the status cannot change, so the stream is closed with an in-band error
frame instead (see llm/translator.py).
"""

from __future__ import annotations

from fastapi import status


class GatewayError(Exception):
    """Base class for all errors surfaced at the gateway boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ModelNotConfigured(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, model: str) -> None:
        super().__init__(f"No configured provider found for model: {model}")
        self.model = model


class NoAvailableCandidate(GatewayError):
    def __init__(self, model: str | None = None) -> None:
        super().__init__("Failed to select a suitable provider.")
        self.model = model


class UnsupportedProviderType(GatewayError):
    def __init__(self, provider_type: str, supported: list[str]) -> None:
        super().__init__(
            f"Unsupported provider type: {provider_type}. "
            f"Supported types: {', '.join(supported)}"
        )
        self.provider_type = provider_type
        self.supported     = supported


class UpstreamError(GatewayError):
    """The chosen backend failed before producing any output."""

    MESSAGE = "AI generation failed due to a server or API error."

    def __init__(self, details: str) -> None:
        super().__init__(self.MESSAGE, details=details)


class CatalogError(GatewayError):
    """Provider configuration could not be loaded, validated or persisted."""
