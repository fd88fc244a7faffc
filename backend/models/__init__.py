"""
Pydantic models package.
Each module contains models for a specific domain.
"""

from models.message import ImageAttachment, ChatPart, ChatMessage, GenerateRequest, AuthRequest
from models.conversation import ChatSession, LegacyMessage, DEFAULT_TITLE
from models.settings import ModelConfig, PublicModelOption, ModelListResponse, Provider

__all__ = [
    "ImageAttachment", "ChatPart", "ChatMessage", "GenerateRequest", "AuthRequest",
    "ChatSession", "LegacyMessage", "DEFAULT_TITLE",
    "ModelConfig", "PublicModelOption", "ModelListResponse", "Provider",
]
