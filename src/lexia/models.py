"""
Defines the core Pydantic data models for the application.

These models are the validated data contract shared by the store, the LLM
providers, the engine and the layout. Message fields mirror the columns of the
``messages`` table (``id, role, content, created_at``).
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
Role = Literal["user", "assistant"]

OPENAI_PROVIDER = "openai"
GEMINI_PROVIDER = "gemini"
Provider = Literal["openai", "gemini"]
PROVIDERS = (OPENAI_PROVIDER, GEMINI_PROVIDER)

PREVIEW_LENGTH = 40


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    return text[:length] + ("..." if len(text) > length else "")


# --- Models ---
class ChatMessage(BaseModel):
    """A single persisted message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=_now)


class Credential(BaseModel):
    """The API key the user supplied, tagged with the provider it belongs to."""

    api_key: str
    provider: Provider = OPENAI_PROVIDER

    def __repr__(self) -> str:
        return f"Credential(provider={self.provider!r}, api_key='***')"

    __str__ = __repr__


class Conversation(BaseModel):
    """Sidebar summary of a conversation."""

    id: str
    title: str
    last_message: str = ""
    created_at: datetime = Field(default_factory=_now)
    message_count: int = 0

    @classmethod
    def from_messages(
        cls, messages: List[ChatMessage], convo_id: str = "default"
    ) -> Optional["Conversation"]:
        """Summarise a message history, or return None when it has no user turn."""
        first_user_msg = next(
            (msg for msg in messages if msg.role == USER_ROLE), None
        )
        if first_user_msg is None:
            return None
        return cls(
            id=convo_id,
            title=_preview(first_user_msg.content),
            last_message=_preview(messages[-1].content),
            created_at=messages[0].created_at,
            message_count=len(messages),
        )


class Notification(BaseModel):
    """A transient, user-visible toast."""

    title: str = "Error"
    description: str
    variant: Literal["default", "destructive"] = "destructive"


class SendStatus(str, enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    FAILED = "failed"
