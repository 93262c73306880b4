"""
OpenAI-compatible wire schemas — Chat Completions + Models

Covers:
  - POST /v1/chat/completions request body
  - Non-streaming `chat.completion` response
  - Streaming `chat.completion.chunk` frames
  - GET /v1/models listing
  - The gateway error body  {"error": "...", "details": "..."}

Design decisions:
  - Unknown request fields (temperature, tools, ...) are accepted and ignored;
    clients written against the OpenAI SDK send many of them.
  - `content` may be a plain string or a list of content parts; it is passed
    through to the backend untouched.
  - `model` in every response is the EXPOSED identifier the client asked for,
    never the provider-specific canonical slug.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role:    str
    content: str | list[dict[str, Any]] | None = None


class ChatCompletionRequest(BaseModel):
    """Incoming chat-completion payload."""
    model_config = ConfigDict(extra="ignore")

    model:    str               = Field(..., min_length=1, examples=["openai/gpt-4o-mini"])
    messages: list[ChatMessage] = Field(..., min_length=1)
    stream:   bool              = False
    n:        int               = Field(
        default=1,
        ge=1,
        description="Number of choices. Ignored (forced to 1) when stream=true.",
    )

    def message_dicts(self) -> list[dict[str, Any]]:
        # Assistant turns carrying tool_calls arrive with content: null
        return [
            {"content": "", **m.model_dump(exclude_none=True)}
            for m in self.messages
        ]


# ---------------------------------------------------------------------------
# Non-streaming response
# ---------------------------------------------------------------------------

class Usage(BaseModel):
    prompt_tokens:     int = 0
    completion_tokens: int = 0
    total_tokens:      int = 0


class ChatCompletionMessage(BaseModel):
    role:    Literal["assistant"] = "assistant"
    content: str
    refusal: str | None = None


class Choice(BaseModel):
    index:         int
    message:       ChatCompletionMessage
    finish_reason: str
    logprobs:      None = None


class ChatCompletion(BaseModel):
    id:      str
    object:  Literal["chat.completion"] = "chat.completion"
    created: int
    model:   str
    choices: list[Choice]
    usage:   Usage


# ---------------------------------------------------------------------------
# Streaming frames
# ---------------------------------------------------------------------------

class ChunkDelta(BaseModel):
    role:    str | None = None
    content: str | None = None


class ChunkChoice(BaseModel):
    index:         int = 0
    delta:         ChunkDelta
    finish_reason: str | None = None
    logprobs:      None = None


class ChatCompletionChunk(BaseModel):
    id:      str
    object:  Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model:   str
    choices: list[ChunkChoice]
    usage:   Usage | None = None

    def to_wire(self) -> dict[str, Any]:
        """Dump with empty delta keys dropped, as OpenAI does."""
        body = self.model_dump(exclude={"usage"} if self.usage is None else None)
        for choice, src in zip(body["choices"], self.choices):
            choice["delta"] = src.delta.model_dump(exclude_none=True)
        return body


# ---------------------------------------------------------------------------
# Models listing
# ---------------------------------------------------------------------------

class ModelCard(BaseModel):
    id:       str
    object:   Literal["model"] = "model"
    created:  int
    owned_by: str


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data:   list[ModelCard]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ErrorResponse(BaseModel):
    """Uniform error body for every non-2xx gateway response."""
    error:   str
    details: str | None = None
