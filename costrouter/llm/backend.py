"""
Backend handles — the two capabilities every provider exposes

A backend handle is bound to ONE provider instance (credentials + endpoint)
and can serve any of that provider's models:

    result = await handle.generate("gpt-4o-mini", messages)
    #   → GenerationResult(text, finish_reason, usage)

    stream = await handle.stream("gpt-4o-mini", messages)
    async for fragment in stream:        # text deltas, in backend order
        ...
    stream.finish_reason, stream.usage   # resolved once exhausted

ChatBackend implements both on top of a LangChain BaseChatModel (.ainvoke /
.astream), building one chat model per canonical slug on first use.

TextStream is finite and not restartable. aclose() closes the underlying
LangChain async generator, which in turn closes the upstream HTTP response;
callers MUST aclose() a stream they stop consuming early.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, convert_to_messages

from costrouter.core.errors import UpstreamError

logger = logging.getLogger(__name__)


# Legacy OpenAI function calling reports its own reason
_FINISH_REASONS: dict[str, str] = {
    "function_call": "tool_calls",
}


def normalize_finish_reason(reason: str | None) -> str:
    if not reason:
        return "stop"
    return _FINISH_REASONS.get(reason, reason)


def content_text(content: Any) -> str:
    """Flatten LangChain message content (str or list of parts) to plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return ""


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens:     int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )

    @classmethod
    def from_metadata(cls, usage: Any) -> "TokenUsage":
        """Build from LangChain ``usage_metadata`` (may be None)."""
        if not usage:
            return cls()
        return cls(
            prompt_tokens=int(usage.get("input_tokens", 0) or 0),
            completion_tokens=int(usage.get("output_tokens", 0) or 0),
        )


@dataclass(frozen=True)
class GenerationResult:
    """The result of one single-shot backend generation."""
    text:          str
    finish_reason: str
    usage:         TokenUsage


def _metadata_finish_reason(message: Any) -> str | None:
    meta = getattr(message, "response_metadata", None) or {}
    return meta.get("finish_reason") or meta.get("done_reason")


# ---------------------------------------------------------------------------
# TextStream
# ---------------------------------------------------------------------------

class TextStream:
    """
    Lazy, cancellable sequence of text fragments from one backend generation.

    Backend failures while pulling are raised as UpstreamError. Chunks that
    carry no text (role-only or usage-only chunks) are absorbed for their
    metadata and never yielded.
    """

    def __init__(self, chunks: AsyncIterator[Any], timeout: float | None = None) -> None:
        self._chunks  = chunks
        self._pending: list[str] = []
        self._done    = False
        self._closed  = False
        self.timeout  = timeout
        self.finish_reason: str | None = None
        self.usage    = TokenUsage()

    def __aiter__(self) -> "TextStream":
        return self

    async def __anext__(self) -> str:
        if self._pending:
            return self._pending.pop(0)
        if self._done or self._closed:
            raise StopAsyncIteration

        while True:
            try:
                chunk = await self._pull()
            except StopAsyncIteration:
                self._done = True
                self.finish_reason = normalize_finish_reason(self.finish_reason)
                raise
            except asyncio.TimeoutError as exc:
                if self.timeout is None:
                    raise UpstreamError(str(exc) or type(exc).__name__) from exc
                raise UpstreamError(f"backend stream timed out after {self.timeout}s") from exc
            except UpstreamError:
                raise
            except Exception as exc:
                raise UpstreamError(str(exc) or type(exc).__name__) from exc

            self._absorb(chunk)
            text = content_text(getattr(chunk, "content", chunk))
            if text:
                return text

    async def prime(self) -> None:
        """
        Pull the first fragment now and hold it for the consumer, so that a
        backend that fails immediately fails here rather than mid-response.
        """
        try:
            first = await self.__anext__()
        except StopAsyncIteration:
            return
        self._pending.append(first)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    async def _pull(self) -> Any:
        if self.timeout is None:
            return await self._chunks.__anext__()
        return await asyncio.wait_for(self._chunks.__anext__(), self.timeout)

    def _absorb(self, chunk: Any) -> None:
        reason = _metadata_finish_reason(chunk)
        if reason:
            self.finish_reason = reason
        usage = getattr(chunk, "usage_metadata", None)
        if usage:
            self.usage = self.usage + TokenUsage.from_metadata(usage)


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------

class BackendHandle(Protocol):
    async def generate(self, model_name: str, messages: list[dict[str, Any]]) -> GenerationResult: ...

    async def stream(self, model_name: str, messages: list[dict[str, Any]]) -> TextStream: ...


ChatModelBuilder = Callable[[str], BaseChatModel]


class ChatBackend:
    """BackendHandle backed by LangChain chat models for one provider."""

    def __init__(self, provider_id: str, builder: ChatModelBuilder) -> None:
        self.provider_id = provider_id
        self._builder    = builder
        self._models: dict[str, BaseChatModel] = {}

    async def chat_model(self, model_name: str) -> BaseChatModel:
        llm = self._models.get(model_name)
        if llm is None:
            llm = self._models[model_name] = self._builder(model_name)
        return llm

    async def generate(self, model_name: str, messages: list[dict[str, Any]]) -> GenerationResult:
        llm     = await self.chat_model(model_name)
        message = await llm.ainvoke(self._to_messages(messages))
        return GenerationResult(
            text=content_text(message.content),
            finish_reason=normalize_finish_reason(_metadata_finish_reason(message)),
            usage=TokenUsage.from_metadata(getattr(message, "usage_metadata", None)),
        )

    async def stream(self, model_name: str, messages: list[dict[str, Any]]) -> TextStream:
        llm = await self.chat_model(model_name)
        return TextStream(llm.astream(self._to_messages(messages)))

    @staticmethod
    def _to_messages(messages: list[dict[str, Any]]) -> list[BaseMessage]:
        return convert_to_messages(messages)
