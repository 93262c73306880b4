"""
Candidate resolution — which (provider, model) pairs can serve a request?

A client asks for an EXPOSED identifier ("openai/gpt-4o-mini"). Several
providers may expose the same identifier under different canonical slugs;
each such pair is a Candidate. Matching is exact and case-sensitive, and
candidates come back in catalog order (provider order, then model order) so
that everything downstream is deterministic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from costrouter.schemas.catalog import Model, Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A provider/model pair able to serve one requested model identifier."""
    provider: Provider
    model:    Model

    @property
    def label(self) -> str:
        return f"{self.provider.id}/{self.model.canonical_slug}"


class ProviderSource(Protocol):
    def get_providers(self) -> Iterable[Provider]: ...


def resolve(providers: Iterable[Provider], model_identifier: str) -> list[Candidate]:
    """Return every candidate whose exposed identifier equals ``model_identifier``."""
    return [
        Candidate(provider=provider, model=model)
        for provider in providers
        for model in provider.models
        if model.exposed_id == model_identifier
    ]


class CandidateResolver:
    """Resolves against a single catalog snapshot per call."""

    def __init__(self, catalog: ProviderSource) -> None:
        self._catalog = catalog

    def resolve(self, model_identifier: str) -> list[Candidate]:
        providers  = tuple(self._catalog.get_providers())
        candidates = resolve(providers, model_identifier)
        logger.debug(
            "Resolver | model=%s candidates=%s",
            model_identifier, ", ".join(c.label for c in candidates) or "-",
        )
        return candidates
