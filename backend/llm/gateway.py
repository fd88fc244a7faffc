"""
Streaming gateway.

Single entry point that resolves a model id through the registry and
dispatches to the matching provider adapter. The adapter's stream is
returned unmodified so callers never special-case providers.
"""

import logging
from typing import AsyncIterator, Dict, Optional, Sequence

from config import Settings
from errors import InvalidRequestError
from llm.factory import create_provider
from llm.registry import ModelRegistry, load_registry
from models.message import ChatMessage, ChatPart

logger = logging.getLogger(__name__)


class StreamingGateway:
    """
    Provider-agnostic streaming façade.

    Attributes:
        registry: Model registry snapshot used for resolution.
        provider_options: Extra constructor options per provider name.
    """

    def __init__(self, registry: ModelRegistry, provider_options: Optional[Dict[str, dict]] = None):
        self.registry = registry
        self.provider_options = provider_options or {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "StreamingGateway":
        return cls(
            load_registry(settings),
            provider_options={"gemini": {"max_output_tokens": settings.gemini_max_output_tokens}},
        )

    def start_stream(
        self,
        history: Sequence[ChatMessage],
        new_parts: Sequence[ChatPart],
        model_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Resolve the model and start the adapter's stream.

        Args:
            history: Prior turns, oldest first
            new_parts: Parts of the new user turn
            model_id: Registry id; the default model when omitted

        Returns:
            Async iterator of text fragments

        Raises:
            InvalidRequestError: Unknown model id or no model configured
        """
        config = self.registry.resolve(model_id)
        if config is None:
            if model_id:
                raise InvalidRequestError(f"Unknown model id: {model_id}")
            raise InvalidRequestError("No model is configured on this server")

        provider = create_provider(config, **self.provider_options.get(config.provider, {}))
        if provider is None:
            raise InvalidRequestError(f"Provider {config.provider} not available")

        logger.info(f"Dispatching stream: model_id={config.id} provider={config.provider} model={config.model}")
        return provider.stream(history, new_parts)
