"""
Provider Router — Cost-Aware Candidate Selection

The router is the decision engine that answers:
  "Which provider should serve this model identifier?"

Selection policy:

  1. Resolve — every (provider, model) pair exposing the identifier.
       none  → ModelNotConfigured (404)

  2. Partition by cost:
       zero-cost → pricing defined and every defined field == 0
       paid      → everything else (including unknown pricing)

  3. Pick:
       any zero-cost → uniformly random among them (no cost signal to rank
                       on, so spread load evenly)
       else paid     → cheapest by (input $/Mtok, output $/Mtok); candidates
                       missing either price sort after all fully-priced ones;
                       ties keep catalog order (stable sort)
       else          → NoAvailableCandidate (500)

Design principles:
  - Pure Python, no I/O, no await — resolution and selection never suspend.
  - The random source is injected so tests can force or sweep outcomes.
  - One routing decision per request. There is no failover to the runner-up.
"""

from __future__ import annotations

import logging
import math
import random

from costrouter.core.errors import ModelNotConfigured, NoAvailableCandidate
from costrouter.llm.pricing import CatalogPriceSource, PriceSource, is_zero_cost, lookup_pricing
from costrouter.llm.resolver import Candidate, CandidateResolver

logger = logging.getLogger(__name__)


class ProviderRouter:
    """
    Usage::

        router    = ProviderRouter(CandidateResolver(catalog), rng=random.Random(7))
        candidate = router.route("openai/gpt-4o-mini")
    """

    def __init__(
        self,
        resolver:     CandidateResolver,
        price_source: PriceSource | None   = None,
        rng:          random.Random | None = None,
    ) -> None:
        self._resolver     = resolver
        self._price_source = price_source or CatalogPriceSource()
        self._rng          = rng or random.Random()

    def route(self, model_identifier: str) -> Candidate:
        """Resolve and select in one step."""
        candidates = self._resolver.resolve(model_identifier)
        if not candidates:
            logger.warning("ProviderRouter | no configured provider for model=%s", model_identifier)
            raise ModelNotConfigured(model_identifier)

        selected = self.select(candidates, model_identifier)
        logger.info(
            "ProviderRouter | selected provider=%s model=%s canonical=%s candidates=%d",
            selected.provider.id, model_identifier,
            selected.model.canonical_slug, len(candidates),
        )
        return selected

    def select(self, candidates: list[Candidate], model_identifier: str | None = None) -> Candidate:
        zero_cost, paid = self.partition(candidates)

        if zero_cost:
            logger.debug("ProviderRouter | %d zero-cost candidates, picking randomly", len(zero_cost))
            return self._rng.choice(zero_cost)

        if paid:
            logger.debug("ProviderRouter | no zero-cost candidates, ranking %d paid", len(paid))
            return sorted(paid, key=self._cost_key)[0]

        logger.error("ProviderRouter | no selectable candidate for model=%s", model_identifier)
        raise NoAvailableCandidate(model_identifier)

    def partition(self, candidates: list[Candidate]) -> tuple[list[Candidate], list[Candidate]]:
        zero_cost: list[Candidate] = []
        paid:      list[Candidate] = []
        for candidate in candidates:
            if is_zero_cost(candidate, self._price_source):
                zero_cost.append(candidate)
            else:
                paid.append(candidate)
        return zero_cost, paid

    def _cost_key(self, candidate: Candidate) -> tuple[bool, float, float]:
        pricing = lookup_pricing(candidate, self._price_source)
        input_cost  = getattr(pricing, "input_cost_per_million_tokens", None)
        output_cost = getattr(pricing, "output_cost_per_million_tokens", None)

        has_missing = input_cost is None or output_cost is None
        return (
            has_missing,
            math.inf if input_cost is None else input_cost,
            math.inf if output_cost is None else output_cost,
        )
