"""
HTTP client for a deployed gateway server.

Implements the same start_stream() interface as the in-process
StreamingGateway so the orchestrator can run against either one.
"""

import logging
import time
from typing import AsyncIterator, List, Optional, Sequence

import httpx

from errors import AuthError, InvalidRequestError, TransportError, UpstreamError
from models.message import ChatMessage, ChatPart
from models.settings import ModelListResponse
from utils.signature import generate_signature

logger = logging.getLogger(__name__)


class RemoteGateway:
    """
    Streaming gateway reached over HTTP.

    Args:
        base_url: Server origin, e.g. http://localhost:8000
        password: Site password sent as `pass`, if the server is gated
        secret: Signing secret shared with the server, if signing is on
        timeout: Connect/write timeout in seconds; reads never time out
        client: Pre-built httpx.AsyncClient (mainly for tests)
    """

    def __init__(
        self,
        base_url: str,
        password: Optional[str] = None,
        secret: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.password = password
        self.secret = (secret or "").strip()
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, read=None))

    async def __aenter__(self) -> "RemoteGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        except ValueError:
            pass
        return response.text or f"Request failed with status {response.status_code}"

    def _handle_error(self, response: httpx.Response) -> None:
        status = response.status_code
        message = self._error_message(response)

        if status == 400:
            raise InvalidRequestError(message)
        if status == 401:
            raise AuthError(message)
        raise UpstreamError(message, status_code=status)

    def _build_body(self, messages: List[ChatMessage], model_id: Optional[str]) -> dict:
        timestamp = int(time.time() * 1000)
        last_text = messages[-1].text if messages else ""
        body = {
            "messages": [m.to_wire() for m in messages],
            "time": timestamp,
            "pass": self.password,
            "sign": generate_signature(timestamp, last_text, self.secret) if self.secret else None,
        }
        if model_id:
            body["modelId"] = model_id
        return body

    async def start_stream(
        self,
        history: Sequence[ChatMessage],
        new_parts: Sequence[ChatPart],
        model_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        POST the conversation to /api/generate and yield text fragments.

        Raises:
            InvalidRequestError / AuthError / UpstreamError: error responses
            TransportError: network failure mid-request or mid-stream
        """
        messages = list(history) + [ChatMessage(role="user", parts=list(new_parts))]
        body = self._build_body(messages, model_id)

        try:
            async with self._client.stream(
                "POST",
                f"{self.base_url}/api/generate",
                json=body,
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    self._handle_error(response)

                async for text in response.aiter_text():
                    if text:
                        yield text
        except httpx.HTTPError as e:
            logger.error(f"Gateway request failed: {e}")
            raise TransportError(f"Gateway request failed: {e}")

    async def list_models(self) -> ModelListResponse:
        """Fetch the public model listing and the server default."""
        try:
            response = await self._client.get(f"{self.base_url}/api/models")
        except httpx.HTTPError as e:
            raise TransportError(f"Gateway request failed: {e}")
        if response.status_code != 200:
            self._handle_error(response)
        return ModelListResponse.model_validate(response.json())

    async def check_password(self, password: str) -> bool:
        """Ask the server whether a password is accepted."""
        try:
            response = await self._client.post(f"{self.base_url}/api/auth", json={"pass": password})
        except httpx.HTTPError as e:
            raise TransportError(f"Gateway request failed: {e}")
        try:
            return response.json().get("code") == 0
        except (ValueError, AttributeError):
            logger.warning(f"Unexpected /api/auth response: {response.status_code}")
            return False
