"""
Message model definitions.
Represents turns and their content parts in a conversation.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ImageAttachment(BaseModel):
    """An image attached to a chat turn.

    Attributes:
        url: Base64 data URI (data:<mime>;base64,<payload>).
        name: Original filename for display.
        size: Size in bytes as reported by the uploader.
        type: MIME type (image/jpeg, image/png, etc.).
    """
    url: str
    name: str = ""
    size: int = 0
    type: str = "image/jpeg"


class ChatPart(BaseModel):
    """A content fragment: text, an image, or (rarely) both."""
    text: Optional[str] = None
    image: Optional[ImageAttachment] = None

    def has_content(self) -> bool:
        return bool(self.text) or self.image is not None


class ChatMessage(BaseModel):
    """One turn in a conversation, attributed to the user or the model."""
    role: Literal["user", "model"]
    parts: List[ChatPart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of all parts."""
        return "".join(part.text or "" for part in self.parts)

    @property
    def images(self) -> List[ImageAttachment]:
        return [part.image for part in self.parts if part.image is not None]

    def has_content(self) -> bool:
        return any(part.has_content() for part in self.parts)

    def to_wire(self) -> dict:
        """Serialize without empty optional fields."""
        return self.model_dump(exclude_none=True)


class GenerateRequest(BaseModel):
    """Body of POST /api/generate.

    Args:
        messages: Full turn sequence; the last turn must come from the user.
        time: Client epoch-ms timestamp, part of the signed payload.
        pass_: Site password (sent as `pass`).
        model_id: Registry id to use (sent as `modelId`); default when omitted.
        sign: Hex SHA-256 request signature.
    """
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    messages: List[ChatMessage] = Field(default_factory=list)
    time: Optional[int] = None
    pass_: Optional[str] = Field(None, alias="pass")
    model_id: Optional[str] = Field(None, alias="modelId")
    sign: Optional[str] = None


class AuthRequest(BaseModel):
    """Body of POST /api/auth."""
    model_config = ConfigDict(populate_by_name=True)
    pass_: Optional[str] = Field(None, alias="pass")
