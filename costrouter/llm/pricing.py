"""
Pricing lookup and zero-cost classification.

A candidate is zero-cost only when pricing EXISTS, defines at least one cost
field, and every defined field is exactly 0. No pricing at all means unknown
cost, and unknown is never free.

Classification never raises: if the price source throws (e.g. a remote price
feed is temporarily unavailable) the candidate is simply treated as paid.
"""

from __future__ import annotations

import logging
from typing import Protocol

from costrouter.llm.resolver import Candidate
from costrouter.schemas.catalog import Model, Pricing, Provider

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    def price_for(self, provider: Provider, model: Model) -> Pricing | None: ...


class CatalogPriceSource:
    """Pricing comes exclusively from each model's ``pricing`` block in the catalog."""

    def price_for(self, provider: Provider, model: Model) -> Pricing | None:
        return model.pricing


def lookup_pricing(candidate: Candidate, source: PriceSource) -> Pricing | None:
    """Price lookup that degrades to "unknown" instead of raising."""
    try:
        return source.price_for(candidate.provider, candidate.model)
    except Exception as exc:
        logger.debug("Pricing | lookup failed for %s: %s", candidate.label, exc)
        return None


def is_zero_cost(candidate: Candidate, source: PriceSource | None = None) -> bool:
    pricing = lookup_pricing(candidate, source or CatalogPriceSource())
    if pricing is None:
        return False

    try:
        defined = pricing.defined_costs()
    except Exception as exc:
        logger.debug("Pricing | unusable pricing for %s: %s", candidate.label, exc)
        return False
    return bool(defined) and all(cost == 0 for cost in defined)
