"""
Pydantic models for agentwire API requests and responses.
This module defines the request and response schemas used by the agentwire API.
"""

from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from agentwire.core.schema import Role


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ChatMessage(BaseModel):
    """One prior turn as the caller sees it: a role and plain text."""

    role: Role
    content: str


class ChatRequest(BaseModel):
    """Incoming conversation."""

    messages: List[ChatMessage] = Field(
        default_factory=list, description="Ordered conversation, oldest first"
    )
    model: Optional[str] = Field(None, description="Model id; defaults to the configured default")
    system: Optional[str] = Field(None, description="Optional system instruction")

    def system_instruction(self) -> Optional[str]:
        """Return the trimmed system instruction, or *None* when blank."""
        if self.system is None:
            return None
        return self.system.strip() or None


class ModelInfo(BaseModel):
    """An allow-listed model."""

    id: str
    name: str
