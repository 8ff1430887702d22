"""Pydantic schemas for provider chat calls."""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One message of a chat transcript."""
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """A single provider call."""
    model: str = Field(..., min_length=1, description="Model identifier (router style, e.g. openai/gpt-4o)")
    messages: List[ChatMessage] = Field(..., min_length=1)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    timeout_ms: int = Field(default=30_000, gt=0)
    response_format: Optional[Dict[str, Any]] = None

    @property
    def system_prompt(self) -> Optional[str]:
        """All system messages joined, for backends that take it separately."""
        parts = [m.content for m in self.messages if m.role == "system"]
        return "\n\n".join(parts) if parts else None

    @property
    def conversation(self) -> List[ChatMessage]:
        """Non-system messages in order."""
        return [m for m in self.messages if m.role != "system"]

    def payload_messages(self) -> List[Dict[str, str]]:
        return [m.model_dump() for m in self.messages]

