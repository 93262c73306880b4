"""
LLM Gateway Package

Routes OpenAI-compatible chat requests to the cheapest configured backend:
  - resolver    (provider, model) candidates for an exposed identifier
  - pricing     zero-cost classification
  - router      cost-aware selection
  - registry    provider type → backend factory
  - cache       one backend handle per provider, single-flight construction
  - executor    single-shot / streaming execution
  - translator  chat.completion JSON and SSE chunk frames

Public API::

    from costrouter.llm import LLMGateway

    body   = await gateway.complete(request)
    frames = await gateway.open_stream(request)
"""

from costrouter.llm.cache import BackendClientCache
from costrouter.llm.executor import ExecutionAdapter, ExecutionResult
from costrouter.llm.gateway import LLMGateway
from costrouter.llm.registry import BackendRegistry, default_registry
from costrouter.llm.resolver import Candidate, CandidateResolver
from costrouter.llm.router import ProviderRouter
from costrouter.llm.translator import ResponseTranslator

__all__ = [
    "BackendClientCache",
    "BackendRegistry",
    "Candidate",
    "CandidateResolver",
    "ExecutionAdapter",
    "ExecutionResult",
    "LLMGateway",
    "ProviderRouter",
    "ResponseTranslator",
    "default_registry",
]
