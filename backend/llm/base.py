"""
Abstract base class for LLM providers.
All provider adapters must implement this interface.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncGenerator, AsyncIterator, List, Sequence, Tuple

from errors import ConfigurationError, ContentError
from models.message import ChatMessage, ChatPart, ImageAttachment
from models.settings import ModelConfig

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Each provider implementation must:
    1. Implement build_request() to map history + new turn to its wire shape
    2. Implement _stream() to yield decoded text fragments in arrival order

    stream() runs every check (credentials, content, image payloads)
    eagerly, so a bad request fails before any network call is made.
    """

    provider_name: str = "base"

    def __init__(self, config: ModelConfig):
        """
        Initialize provider with a resolved model binding.

        Args:
            config: ModelConfig carrying model name, credentials and options
        """
        self.config = config
        self.api_key = (config.api_key or "").strip()
        self.base_url = config.base_url

    def stream(
        self,
        history: Sequence[ChatMessage],
        new_parts: Sequence[ChatPart],
    ) -> AsyncIterator[str]:
        """
        Start a streamed reply.

        Args:
            history: Prior turns, oldest first (may be empty)
            new_parts: Parts of the new user turn

        Returns:
            Lazy, single-pass async iterator of text fragments

        Raises:
            ConfigurationError: No API key in the resolved config
            ContentError: Empty turn or malformed image data
        """
        if not self.api_key:
            raise ConfigurationError(
                f"An API key is required for the {self.provider_name} provider (model '{self.config.id}')"
            )
        if not any(part.has_content() for part in new_parts):
            raise ContentError("Message must contain text or images")

        request = self.build_request(list(history), list(new_parts))
        return self._stream(request)

    @abstractmethod
    def build_request(self, history: List[ChatMessage], new_parts: List[ChatPart]) -> Any:
        """
        Map the conversation into the provider's request representation.

        Returns:
            Provider-specific request object consumed by _stream()
        """
        pass

    @abstractmethod
    def _stream(self, request: Any) -> AsyncGenerator[str, None]:
        """
        Perform the network call and yield text fragments.

        Yields:
            Decoded text fragments; boundaries carry no meaning
        """
        pass

    @staticmethod
    def validate_image(image: ImageAttachment) -> str:
        """Ensure an image payload is a data URI and return it unchanged."""
        if not image.url or not image.url.startswith(DATA_URI_PREFIX):
            raise ContentError("Failed to process uploaded image: expected a data URI")
        return image.url

    @classmethod
    def decode_image(cls, image: ImageAttachment) -> Tuple[str, bytes]:
        """
        Split a data URI into MIME type and raw bytes.

        Returns:
            (mime_type, payload_bytes); the declared part type wins over the
            MIME type embedded in the URI.
        """
        url = cls.validate_image(image)
        header, sep, payload = url.partition(",")
        if not sep or not payload:
            raise ContentError("Failed to process uploaded image: missing payload")
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise ContentError("Failed to process uploaded image: invalid base64 data")

        mime_type = image.type or header[len(DATA_URI_PREFIX):].split(";")[0] or "image/jpeg"
        return mime_type, raw
