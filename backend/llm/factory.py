"""
LLM Provider factory module.
Creates provider adapters for resolved model configurations.
"""

import logging
from typing import Dict, List, Optional

from llm.base import LLMProvider
from llm.openai_provider import OpenAIProvider
from llm.gemini_provider import GeminiProvider
from models.settings import ModelConfig

logger = logging.getLogger(__name__)

# ============================================================
# Provider Registry
# ============================================================
PROVIDERS: Dict[str, type] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def create_provider(config: ModelConfig, **kwargs) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance.

    Args:
        config: Resolved model configuration
        **kwargs: Provider-specific options (e.g. max_output_tokens for Gemini)

    Returns:
        LLMProvider instance or None if provider not found
    """
    provider_class = PROVIDERS.get(config.provider)

    if not provider_class:
        logger.error(f"Unknown provider: {config.provider}")
        return None

    return provider_class(config, **kwargs)


def get_available_providers() -> List[str]:
    """Get list of all supported provider names."""
    return list(PROVIDERS.keys())
