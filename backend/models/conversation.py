"""
Conversation model definitions.
Represents a persisted chat session (one conversation thread).
"""

from typing import List
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from models.message import ChatMessage

DEFAULT_TITLE = "New Chat"


class ChatSession(BaseModel):
    """
    One conversation thread as stored in the client's session list.
    Timestamps are epoch milliseconds; stored keys use camelCase.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = DEFAULT_TITLE
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: int = Field(0, alias="createdAt")
    updated_at: int = Field(0, alias="updatedAt")

    def to_storage(self) -> dict:
        """Serialize to the persisted (camelCase, no empty fields) form."""
        return self.model_dump(by_alias=True, exclude_none=True)


class LegacyMessage(BaseModel):
    """A turn from the pre-session single-thread message log."""
    role: str
    content: str = ""
