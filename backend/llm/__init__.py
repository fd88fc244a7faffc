"""
LLM providers package.
Unified streaming interface over OpenAI-compatible and Gemini backends.
"""

from llm.base import LLMProvider
from llm.factory import create_provider, get_available_providers
from llm.gateway import StreamingGateway
from llm.registry import ModelRegistry, load_registry

__all__ = [
    "LLMProvider",
    "StreamingGateway",
    "ModelRegistry",
    "load_registry",
    "create_provider",
    "get_available_providers",
]
