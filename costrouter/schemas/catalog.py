"""
Catalog schemas — Providers, Models, Pricing

These mirror the on-disk JSON catalog (camelCase keys, as written by the admin
UI) while exposing snake_case attributes to Python code::

    {
      "logLevel": "info",
      "providers": [
        {
          "id": "openai-main",
          "type": "openai",
          "apiKey": "sk-...",
          "models": [
            {
              "canonical_slug": "gpt-4o-mini",
              "exposed_slug":   "openai/gpt-4o-mini",
              "pricing": {"inputCostPerMillionTokens": 0.15,
                          "outputCostPerMillionTokens": 0.6}
            }
          ]
        }
      ]
    }

All models are frozen: a catalog snapshot is never mutated in place, a reload
replaces the whole AppConfig.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


_FROZEN = ConfigDict(frozen=True, populate_by_name=True)


class Pricing(BaseModel):
    """
    USD pricing for one model. Every field is optional: a missing field means
    "unknown", never zero.
    """
    model_config = _FROZEN

    input_cost_per_million_tokens:  float | None = Field(None, alias="inputCostPerMillionTokens")
    output_cost_per_million_tokens: float | None = Field(None, alias="outputCostPerMillionTokens")
    cost_per_request:               float | None = Field(None, alias="costPerRequest")

    def defined_costs(self) -> list[float]:
        return [
            value for value in (
                self.input_cost_per_million_tokens,
                self.output_cost_per_million_tokens,
                self.cost_per_request,
            )
            if value is not None
        ]


class Model(BaseModel):
    model_config = _FROZEN

    canonical_slug: str          = Field(..., min_length=1, description="Name sent to the backend")
    exposed_slug:   str | None   = Field(None, description="Name clients request")
    display_name:   str | None   = None
    pricing:        Pricing | None = None

    @property
    def exposed_id(self) -> str:
        """The identifier clients use; falls back to the canonical slug."""
        return self.exposed_slug or self.canonical_slug


class Provider(BaseModel):
    model_config = _FROZEN

    id:          str             = Field(..., min_length=1, max_length=32)
    type:        str             = Field(..., min_length=1)
    api_key:     str             = Field("", alias="apiKey")
    base_url:    str | None      = Field(None, alias="baseURL")
    oauth_token: str | None      = Field(None, alias="oauthToken")    # copilot only
    api_version: str | None      = Field(None, alias="apiVersion")    # azure_openai only
    models:      tuple[Model, ...] = ()

    @property
    def cache_key(self) -> str:
        return f"{self.type}:{self.id}"

    @model_validator(mode="after")
    def _canonical_slugs_unique(self) -> "Provider":
        seen: set[str] = set()
        for model in self.models:
            if model.canonical_slug in seen:
                raise ValueError(
                    f"Provider '{self.id}' lists model '{model.canonical_slug}' more than once"
                )
            seen.add(model.canonical_slug)
        return self


LogLevel = Literal["trace", "debug", "info", "warn", "error", "fatal"]


class AppConfig(BaseModel):
    """The full catalog snapshot held by the Catalog."""
    model_config = _FROZEN

    providers: tuple[Provider, ...] = ()
    log_level: LogLevel | None      = Field(None, alias="logLevel")

    @model_validator(mode="after")
    def _provider_ids_unique(self) -> "AppConfig":
        ids = [p.id for p in self.providers]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider ids: {', '.join(duplicates)}")
        return self

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
