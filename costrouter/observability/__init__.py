"""
Observability Package

Provides:
  TracingConfig   — LangSmith switch from settings
  span            — async context manager timing a block
  traced          — decorator form of span for async functions
"""

from costrouter.observability.tracing import TracingConfig, span, traced

__all__ = ["TracingConfig", "span", "traced"]
