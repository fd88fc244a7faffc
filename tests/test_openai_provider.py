"""Tests for the OpenAI-compatible streaming adapter."""

from __future__ import annotations

import json

import pytest
from pytest_httpx import HTTPXMock

from errors import ConfigurationError, ContentError, UpstreamError
from llm.openai_provider import OpenAIProvider, extract_delta_text, normalize_openai_base
from models.message import ChatMessage, ChatPart, ImageAttachment
from models.settings import ModelConfig

from helpers import model, user

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"
PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgo="


def _config(**kwargs) -> ModelConfig:
    values = {"id": "gpt", "label": "GPT", "provider": "openai", "model": "gpt-4o", "api_key": "sk-test"}
    values.update(kwargs)
    return ModelConfig(**values)


def _sse(*events) -> bytes:
    lines = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode()


def _delta(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}}]}


async def _collect(stream) -> list:
    return [fragment async for fragment in stream]


class TestBaseNormalization:
    @pytest.mark.parametrize(
        ("base", "expected"),
        [
            (None, "https://api.openai.com/v1"),
            ("", "https://api.openai.com/v1"),
            ("https://proxy.example.com/", "https://proxy.example.com/v1"),
            ("https://proxy.example.com/v2", "https://proxy.example.com/v2"),
            ("https://proxy.example.com/openai/v1/", "https://proxy.example.com/openai/v1"),
        ],
    )
    def test_normalize(self, base, expected) -> None:
        assert normalize_openai_base(base) == expected


class TestDeltaExtraction:
    def test_string_content(self) -> None:
        assert extract_delta_text(_delta("hi")) == "hi"

    def test_list_content(self) -> None:
        event = {"choices": [{"delta": {"content": [{"type": "text", "text": "a"}, {"content": "b"}]}}]}
        assert extract_delta_text(event) == "ab"

    def test_choice_text_fallback(self) -> None:
        assert extract_delta_text({"choices": [{"text": "legacy"}]}) == "legacy"

    def test_empty_event(self) -> None:
        assert extract_delta_text({"choices": []}) == ""
        assert extract_delta_text({"choices": [{"delta": {}}]}) == ""


class TestRequestMapping:
    def test_text_history_uses_plain_content(self) -> None:
        provider = OpenAIProvider(_config())
        payload = provider.build_request([user("hi"), model("hello")], [ChatPart(text="again")])

        assert payload["model"] == "gpt-4o"
        assert payload["stream"] is True
        assert payload["temperature"] == 0.7
        assert payload["messages"] == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "again"},
        ]

    def test_image_turn_uses_content_blocks(self) -> None:
        provider = OpenAIProvider(_config(temperature=0.1))
        parts = [ChatPart(text="what is this"), ChatPart(image=ImageAttachment(url=PNG_DATA_URI, type="image/png"))]
        payload = provider.build_request([], parts)

        assert payload["temperature"] == 0.1
        assert payload["messages"][0]["content"] == [
            {"type": "text", "text": "what is this"},
            {"type": "image_url", "image_url": {"url": PNG_DATA_URI, "detail": "high"}},
        ]


class TestStreamGuards:
    def test_empty_turn_rejected_before_network(self, httpx_mock: HTTPXMock) -> None:
        provider = OpenAIProvider(_config())
        with pytest.raises(ContentError):
            provider.stream([], [])
        with pytest.raises(ContentError):
            provider.stream([], [ChatPart(text="")])
        assert httpx_mock.get_requests() == []

    def test_missing_api_key(self) -> None:
        provider = OpenAIProvider(_config(api_key=None))
        with pytest.raises(ConfigurationError):
            provider.stream([], [ChatPart(text="hi")])

    def test_non_data_uri_image_rejected(self) -> None:
        provider = OpenAIProvider(_config())
        image = ImageAttachment(url="https://example.com/cat.png")
        with pytest.raises(ContentError):
            provider.stream([], [ChatPart(image=image)])


class TestStreaming:
    @pytest.mark.asyncio
    async def test_streams_deltas_in_order(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=COMPLETIONS_URL,
            method="POST",
            content=_sse(_delta("He"), _delta("llo"), {"choices": [{"delta": {}}]}, "[DONE]"),
        )

        provider = OpenAIProvider(_config())
        fragments = await _collect(provider.stream([], [ChatPart(text="hi")]))

        assert fragments == ["He", "llo"]
        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(request.content)["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_malformed_event_is_skipped(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=COMPLETIONS_URL,
            method="POST",
            content=_sse("{not json", _delta("ok"), "[DONE]"),
        )

        provider = OpenAIProvider(_config())
        assert await _collect(provider.stream([], [ChatPart(text="hi")])) == ["ok"]

    @pytest.mark.asyncio
    async def test_stops_at_done_sentinel(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=COMPLETIONS_URL,
            method="POST",
            content=_sse(_delta("a"), "[DONE]", _delta("ignored")),
        )

        provider = OpenAIProvider(_config())
        assert await _collect(provider.stream([], [ChatPart(text="hi")])) == ["a"]

    @pytest.mark.asyncio
    async def test_custom_base_url(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url="https://proxy.example.com/v1/chat/completions",
            method="POST",
            content=_sse(_delta("x"), "[DONE]"),
        )

        provider = OpenAIProvider(_config(base_url="https://proxy.example.com/"))
        assert await _collect(provider.stream([], [ChatPart(text="hi")])) == ["x"]

    @pytest.mark.asyncio
    async def test_non_2xx_raises_upstream_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=COMPLETIONS_URL,
            method="POST",
            status_code=429,
            text="Rate limit reached",
        )

        provider = OpenAIProvider(_config())
        with pytest.raises(UpstreamError) as exc_info:
            await _collect(provider.stream([], [ChatPart(text="hi")]))

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "HTTP_429"
        assert exc_info.value.message == "Rate limit reached"

    @pytest.mark.asyncio
    async def test_empty_error_body_gets_status_message(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=COMPLETIONS_URL, method="POST", status_code=500)

        provider = OpenAIProvider(_config())
        with pytest.raises(UpstreamError, match="OpenAI request failed with status 500"):
            await _collect(provider.stream([], [ChatPart(text="hi")]))

    @pytest.mark.asyncio
    async def test_history_with_images_is_sent_as_blocks(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=COMPLETIONS_URL, method="POST", content=_sse("[DONE]"))

        history = [ChatMessage(role="user", parts=[ChatPart(image=ImageAttachment(url=PNG_DATA_URI))])]
        provider = OpenAIProvider(_config())
        assert await _collect(provider.stream(history, [ChatPart(text="and now?")])) == []

        sent = json.loads(httpx_mock.get_request().content)
        assert sent["messages"][0]["content"][0]["type"] == "image_url"
        assert sent["messages"][1] == {"role": "user", "content": "and now?"}
