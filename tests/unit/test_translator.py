"""
Unit Tests — ResponseTranslator
════════════════════════════════
Coverage targets:
  ✅ One generation → chat.completion with one choice, usage copied
  ✅ n generations → choices indexed 0..n-1 in order, usage summed
  ✅ Stream: role frame, content frames in order, terminal frame, [DONE]
  ✅ Every stream frame shares one chatcmpl- id
  ✅ Mid-stream failure → error frame, then [DONE]
  ✅ Client disconnect → stop pulling, upstream closed, no [DONE]
  ✅ Upstream stream always closed
  ✅ error_body() shapes
"""

from __future__ import annotations

import json

import pytest

from costrouter.core.errors import ModelNotConfigured, UpstreamError
from costrouter.llm.backend import GenerationResult, TextStream, TokenUsage
from costrouter.llm.translator import DONE_SENTINEL, ResponseTranslator
from tests.conftest import FakeBackend


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _payloads(frames: list[str]) -> list:
    """Decode `data: ...` frames; [DONE] stays a string."""
    out = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        body = frame[len("data: "):-2]
        out.append(body if body == "[DONE]" else json.loads(body))
    return out


async def _collect(frames) -> list[str]:
    return [frame async for frame in frames]


async def _open(backend: FakeBackend) -> TextStream:
    stream = await backend.stream("m", [])
    await stream.prime()
    return stream


@pytest.mark.unit
class TestCompletion:

    def test_single_choice(self):
        body = ResponseTranslator().to_completion(
            [GenerationResult("hi there", "length", TokenUsage(5, 2))],
            "openai/gpt-4o-mini",
        )

        assert body["object"] == "chat.completion"
        assert body["id"].startswith("chatcmpl-")
        assert body["model"] == "openai/gpt-4o-mini"
        assert body["choices"] == [{
            "index":         0,
            "message":       {"role": "assistant", "content": "hi there", "refusal": None},
            "finish_reason": "length",
            "logprobs":      None,
        }]
        assert body["usage"] == {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}

    def test_multi_choice_usage_is_summed(self):
        generations = [
            GenerationResult(f"answer {i}", "stop", TokenUsage(10, i + 1))
            for i in range(3)
        ]

        body = ResponseTranslator().to_completion(generations, "m")

        assert [c["index"] for c in body["choices"]] == [0, 1, 2]
        assert [c["message"]["content"] for c in body["choices"]] == ["answer 0", "answer 1", "answer 2"]
        assert body["usage"] == {"prompt_tokens": 30, "completion_tokens": 6, "total_tokens": 36}


@pytest.mark.unit
class TestStreamFrames:

    async def test_frame_sequence(self):
        backend = FakeBackend(fragments=("Hel", "lo", "!"), finish_reason="length", usage=TokenUsage(4, 3))
        stream  = await _open(backend)

        frames   = await _collect(ResponseTranslator().stream_frames(stream, "free/chat"))
        payloads = _payloads(frames)

        assert frames[-1] == DONE_SENTINEL
        role, *content, terminal, done = payloads
        assert role["choices"][0]["delta"] == {"role": "assistant"}
        assert [c["choices"][0]["delta"] for c in content] == [
            {"content": "Hel"}, {"content": "lo"}, {"content": "!"},
        ]
        assert terminal["choices"][0]["delta"] == {}
        assert terminal["choices"][0]["finish_reason"] == "length"
        assert terminal["usage"]["total_tokens"] == 7
        assert done == "[DONE]"

        chunk_ids = {p["id"] for p in payloads[:-1]}
        assert len(chunk_ids) == 1 and chunk_ids.pop().startswith("chatcmpl-")
        assert all(p["object"] == "chat.completion.chunk" for p in payloads[:-1])
        assert all(p["model"] == "free/chat" for p in payloads[:-1])
        assert "usage" not in role
        assert backend.closed is True

    async def test_mid_stream_failure_ends_with_done(self):
        backend = FakeBackend(fragments=("a", "b", "c"), fail_stream_after=1)
        stream  = await _open(backend)

        frames = await _collect(ResponseTranslator().stream_frames(stream, "m"))
        payloads = _payloads(frames)

        assert payloads[1]["choices"][0]["delta"] == {"content": "a"}
        assert payloads[-2] == {"error": "Mid-stream connection failed."}
        assert frames[-1] == "data: [DONE]\n\n"
        assert backend.closed is True

    async def test_disconnect_stops_pulling(self):
        backend = FakeBackend(fragments=tuple("abcdefgh"))
        stream  = await _open(backend)
        checks  = iter([False, False, True])

        async def is_disconnected() -> bool:
            return next(checks, True)

        frames = await _collect(ResponseTranslator().stream_frames(stream, "m", is_disconnected))

        assert len(frames) == 3          # role + two content frames
        assert DONE_SENTINEL not in frames
        assert backend.pulled < len(backend.fragments)
        assert backend.closed is True

    async def test_consumer_abandoning_iteration_closes_upstream(self):
        backend = FakeBackend(fragments=tuple("abcdef"))
        stream  = await _open(backend)

        frames = ResponseTranslator().stream_frames(stream, "m")
        await frames.__anext__()
        await frames.__anext__()
        await frames.aclose()

        assert backend.closed is True


@pytest.mark.unit
class TestErrorBody:

    def test_gateway_error_with_details(self):
        body = ResponseTranslator.error_body(UpstreamError("boom"))
        assert body == {"error": "AI generation failed due to a server or API error.", "details": "boom"}

    def test_gateway_error_without_details(self):
        body = ResponseTranslator.error_body(ModelNotConfigured("x"))
        assert body == {"error": "No configured provider found for model: x"}

    def test_unexpected_error_hides_internals(self):
        body = ResponseTranslator.error_body(KeyError("secret"))
        assert body == {"error": "An unexpected error occurred."}
