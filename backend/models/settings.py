"""
Model registry definitions.
Resolved provider bindings and their public (secret-free) projection.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Provider = Literal["openai", "gemini"]
PROVIDER_NAMES = ("openai", "gemini")


class ModelConfig(BaseModel):
    """A resolved, ready-to-use provider binding. Immutable once built."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str
    label: str
    provider: Provider
    model: str = Field(..., min_length=1)
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: Optional[float] = None

    def to_public(self) -> "PublicModelOption":
        return PublicModelOption(id=self.id, label=self.label, provider=self.provider, model=self.model)


class PublicModelOption(BaseModel):
    """Model option safe to show to untrusted callers."""
    model_config = ConfigDict(protected_namespaces=())
    id: str
    label: str
    provider: Provider
    model: str


class ModelListResponse(BaseModel):
    """Response of GET /api/models."""
    model_config = ConfigDict(populate_by_name=True)
    models: List[PublicModelOption] = Field(default_factory=list)
    default_model_id: Optional[str] = Field(None, alias="defaultModelId")
