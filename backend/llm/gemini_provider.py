"""
Gemini LLM provider implementation.
Uses the Google Gen AI SDK chat handle with streamed replies.
"""

import logging
from typing import Any, AsyncGenerator, Dict, List

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from errors import TransportError, UpstreamError
from llm.base import LLMProvider
from models.message import ChatMessage, ChatPart

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_TOKENS = 8000

# Moderation is left to the provider; the client blocks nothing itself
_HARM_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


class GeminiProvider(LLMProvider):
    """
    Gemini API provider.
    Seeds a stateful chat with the mapped history, then streams the new turn.
    """

    provider_name = "gemini"

    def __init__(self, config, max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS):
        super().__init__(config)
        self.max_output_tokens = max_output_tokens

    def _create_client(self) -> genai.Client:
        """One SDK client per request, closed when the stream ends; honours a custom base URL."""
        if self.base_url:
            return genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(base_url=self.base_url.rstrip("/")),
            )
        return genai.Client(api_key=self.api_key)

    def _to_parts(self, parts: List[ChatPart]) -> List[Any]:
        """Native parts: plain strings for text, inline data for images."""
        native: List[Any] = []
        for part in parts:
            if part.text:
                native.append(part.text)
            if part.image is not None:
                mime_type, raw = self.decode_image(part.image)
                native.append(types.Part.from_bytes(data=raw, mime_type=mime_type))
        return native

    def _to_content(self, message: ChatMessage) -> types.Content:
        parts = []
        for native in self._to_parts(message.parts):
            parts.append(types.Part(text=native) if isinstance(native, str) else native)
        return types.Content(role=message.role, parts=parts)

    def _generation_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            max_output_tokens=self.max_output_tokens,
            temperature=self.config.temperature,
            safety_settings=[
                types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE)
                for category in _HARM_CATEGORIES
            ],
        )

    def build_request(self, history: List[ChatMessage], new_parts: List[ChatPart]) -> Dict[str, Any]:
        """Map history to Content objects and the new turn to native parts."""
        return {
            "history": [self._to_content(m) for m in history],
            "message": self._to_parts(new_parts),
            "config": self._generation_config(),
        }

    async def _stream(self, request: Dict[str, Any]) -> AsyncGenerator[str, None]:
        """Stream response chunks from the Gemini chat handle."""
        client = self._create_client()
        logger.debug(f"Gemini stream request for model {self.config.model}")

        try:
            chat = client.aio.chats.create(
                model=self.config.model,
                history=request["history"],
                config=request["config"],
            )
            async for chunk in await chat.send_message_stream(request["message"]):
                text = chunk.text
                if text:
                    yield text
        except genai_errors.APIError as e:
            logger.error(f"Gemini API error {e.code}: {e.message}")
            raise UpstreamError(e.message or str(e), status_code=e.code)
        except httpx.HTTPError as e:
            logger.error(f"Gemini transport failure: {e}")
            raise TransportError(f"Gemini stream failed: {e}")
        finally:
            await client.aio.aclose()
