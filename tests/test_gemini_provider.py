"""Tests for the Gemini streaming adapter."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import errors as genai_errors

from errors import ConfigurationError, ContentError, UpstreamError
from llm.gemini_provider import GeminiProvider
from models.message import ChatPart, ImageAttachment
from models.settings import ModelConfig

from helpers import model, user

PNG_BYTES = b"\x89PNG\r\n\x1a\n"
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


def _config(**kwargs) -> ModelConfig:
    values = {"id": "gem", "label": "Gemini", "provider": "gemini", "model": "gemini-2.5-flash", "api_key": "g-key"}
    values.update(kwargs)
    return ModelConfig(**values)


def _mock_client(chunks=None, error=None) -> MagicMock:
    async def _chunks():
        for chunk in chunks or []:
            yield chunk
        if error is not None:
            raise error

    chat = MagicMock()
    chat.send_message_stream = AsyncMock(return_value=_chunks())
    client = MagicMock()
    client.aio.chats.create.return_value = chat
    client.aio.aclose = AsyncMock()
    return client


async def _collect(stream) -> list:
    return [fragment async for fragment in stream]


class TestRequestMapping:
    def test_history_becomes_content_objects(self) -> None:
        provider = GeminiProvider(_config())
        request = provider.build_request([user("hi"), model("hello")], [ChatPart(text="again")])

        history = request["history"]
        assert [c.role for c in history] == ["user", "model"]
        assert history[1].parts[0].text == "hello"
        assert request["message"] == ["again"]
        assert request["config"].max_output_tokens == 8000
        assert len(request["config"].safety_settings) == 4

    def test_image_becomes_inline_data(self) -> None:
        provider = GeminiProvider(_config(), max_output_tokens=256)
        parts = [ChatPart(text="look"), ChatPart(image=ImageAttachment(url=PNG_DATA_URI, type="image/png"))]
        request = provider.build_request([], parts)

        text, image = request["message"]
        assert text == "look"
        assert image.inline_data.data == PNG_BYTES
        assert image.inline_data.mime_type == "image/png"
        assert request["config"].max_output_tokens == 256

    def test_invalid_base64_rejected(self) -> None:
        provider = GeminiProvider(_config())
        image = ImageAttachment(url="data:image/png;base64,***", type="image/png")
        with pytest.raises(ContentError):
            provider.stream([], [ChatPart(image=image)])


class TestStreamGuards:
    def test_empty_turn(self) -> None:
        with pytest.raises(ContentError):
            GeminiProvider(_config()).stream([], [])

    def test_missing_key(self) -> None:
        with pytest.raises(ConfigurationError):
            GeminiProvider(_config(api_key=" ")).stream([], [ChatPart(text="hi")])


class TestStreaming:
    @pytest.mark.asyncio
    async def test_yields_chunk_text(self) -> None:
        client = _mock_client([
            SimpleNamespace(text="He"),
            SimpleNamespace(text=None),
            SimpleNamespace(text="llo"),
        ])
        with patch("llm.gemini_provider.genai.Client", return_value=client) as client_cls:
            provider = GeminiProvider(_config())
            fragments = await _collect(provider.stream([user("hi"), model("yo")], [ChatPart(text="again")]))

        assert fragments == ["He", "llo"]
        client_cls.assert_called_once_with(api_key="g-key")

        create_kwargs = client.aio.chats.create.call_args.kwargs
        assert create_kwargs["model"] == "gemini-2.5-flash"
        assert len(create_kwargs["history"]) == 2
        client.aio.chats.create.return_value.send_message_stream.assert_awaited_once_with(["again"])
        client.aio.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_custom_base_url(self) -> None:
        client = _mock_client([SimpleNamespace(text="x")])
        with patch("llm.gemini_provider.genai.Client", return_value=client) as client_cls:
            provider = GeminiProvider(_config(base_url="https://proxy.example.com/"))
            assert await _collect(provider.stream([], [ChatPart(text="hi")])) == ["x"]

        http_options = client_cls.call_args.kwargs["http_options"]
        assert http_options.base_url == "https://proxy.example.com"

    @pytest.mark.asyncio
    async def test_api_error_becomes_upstream_error(self) -> None:
        error = genai_errors.APIError(
            429, {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
        )
        client = _mock_client([SimpleNamespace(text="partial")], error=error)
        with patch("llm.gemini_provider.genai.Client", return_value=client):
            stream = GeminiProvider(_config()).stream([], [ChatPart(text="hi")])
            received = []
            with pytest.raises(UpstreamError) as exc_info:
                async for fragment in stream:
                    received.append(fragment)

        assert received == ["partial"]
        client.aio.aclose.assert_awaited_once()
        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Quota exceeded"
