"""
OpenAI-compatible LLM provider implementation.
Talks to any /chat/completions endpoint that streams Server-Sent Events.
"""

import json
import logging
import re
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx

from errors import TransportError, UpstreamError
from llm.base import LLMProvider
from models.message import ChatMessage, ChatPart

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_ORIGIN = "https://api.openai.com"
DEFAULT_TEMPERATURE = 0.7
DONE_SENTINEL = "[DONE]"

_VERSION_SUFFIX = re.compile(r"/v\d+$")


def normalize_openai_base(base_url: Optional[str]) -> str:
    """Default the origin, strip a trailing slash, append /v1 unless versioned."""
    base = (base_url or "").strip() or DEFAULT_OPENAI_ORIGIN
    trimmed = base[:-1] if base.endswith("/") else base
    return trimmed if _VERSION_SUFFIX.search(trimmed) else f"{trimmed}/v1"


def extract_delta_text(event: Dict[str, Any]) -> str:
    """
    Pull the text out of one chat-completion chunk.

    Fallback order: choices[0].delta.content as a string; as a list of
    sub-parts (each `text` or `content`, concatenated); choices[0].text.
    """
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    choice = choices[0]
    if not isinstance(choice, dict):
        return ""

    delta = choice.get("delta")
    content = delta.get("content") if isinstance(delta, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for sub in content:
            if isinstance(sub, dict):
                pieces.append(sub.get("text") or sub.get("content") or "")
        return "".join(p for p in pieces if isinstance(p, str))
    if isinstance(choice.get("text"), str):
        return choice["text"]
    return ""


class OpenAIProvider(LLMProvider):
    """
    OpenAI-compatible API provider.
    Authenticates with a bearer token and parses the SSE delta stream.
    """

    provider_name = "openai"

    def __init__(self, config):
        super().__init__(config)
        self.base_url = normalize_openai_base(config.base_url)

    def _get_headers(self) -> Dict[str, str]:
        """Build request headers with authentication."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    @staticmethod
    def _role(message: ChatMessage) -> str:
        return "assistant" if message.role == "model" else "user"

    def _content_blocks(self, parts: List[ChatPart]) -> List[Dict[str, Any]]:
        """Text and image_url blocks in original part order."""
        blocks: List[Dict[str, Any]] = []
        for part in parts:
            if part.text:
                blocks.append({"type": "text", "text": part.text})
            if part.image is not None:
                blocks.append({
                    "type": "image_url",
                    "image_url": {"url": self.validate_image(part.image), "detail": "high"},
                })
        return blocks

    def _format_message(self, role: str, parts: List[ChatPart]) -> Dict[str, Any]:
        # Plain string content unless an image forces the multimodal array
        if not any(part.image is not None for part in parts):
            return {"role": role, "content": "".join(part.text or "" for part in parts)}
        return {"role": role, "content": self._content_blocks(parts)}

    def build_request(self, history: List[ChatMessage], new_parts: List[ChatPart]) -> Dict[str, Any]:
        """Build the streaming chat-completion payload."""
        messages = [self._format_message(self._role(m), m.parts) for m in history]
        messages.append(self._format_message("user", new_parts))

        temperature = self.config.temperature
        return {
            "model": self.config.model,
            "messages": messages,
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "stream": True,
        }

    async def _stream(self, payload: Dict[str, Any]) -> AsyncGenerator[str, None]:
        """Stream response fragments from the chat-completions endpoint."""
        url = f"{self.base_url}/chat/completions"
        logger.debug(f"OpenAI stream request for model {payload['model']}")

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(120.0, read=None)) as client:
                async with client.stream(
                    "POST",
                    url,
                    headers=self._get_headers(),
                    json=payload
                ) as response:
                    if response.status_code < 200 or response.status_code >= 300:
                        body = (await response.aread()).decode("utf-8", errors="replace").strip()
                        logger.error(f"OpenAI API error {response.status_code}")
                        raise UpstreamError(
                            body or f"OpenAI request failed with status {response.status_code}",
                            status_code=response.status_code,
                        )

                    data_lines: List[str] = []
                    async for line in response.aiter_lines():
                        if line.startswith("data:"):
                            data_lines.append(line[5:].lstrip(" "))
                            continue
                        if line.strip() or not data_lines:
                            # Comments, event names and ids carry nothing we need
                            continue

                        data = "\n".join(data_lines)
                        data_lines = []
                        if data == DONE_SENTINEL:
                            return
                        text = self._parse_event(data)
                        if text:
                            yield text

                    # Stream closed without a trailing blank line
                    if data_lines:
                        data = "\n".join(data_lines)
                        if data != DONE_SENTINEL:
                            text = self._parse_event(data)
                            if text:
                                yield text
        except httpx.HTTPError as e:
            logger.error(f"OpenAI transport failure: {e}")
            raise TransportError(f"OpenAI stream failed: {e}")

    @staticmethod
    def _parse_event(data: str) -> str:
        """Decode one event payload; malformed events are skipped."""
        try:
            event = json.loads(data)
        except ValueError as e:
            logger.warning(f"Failed to parse chunk: {e}")
            return ""
        if not isinstance(event, dict):
            return ""
        return extract_delta_text(event)
