"""Pydantic models and enums for the conversation session."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """Author of a turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class SubmitState(str, Enum):
    """Chat submission state machine."""

    IDLE = "idle"
    SUBMITTING = "submitting"


class Message(BaseModel):
    """One turn of the conversation. Immutable once created.

    ``transient`` marks a just-submitted user turn for optimistic display.
    It is a presentation hint only and plays no part in ordering or identity.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    created_at: float | None = None
    transient: bool = False

    def to_chat(self) -> dict[str, str]:
        """The ``{role, content}`` pair sent to the chat endpoint."""
        return {"role": self.role.value, "content": self.content}


class SessionSnapshot(BaseModel):
    """Read-only view of the controller handed to presentation layers."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...]
    input_text: str
    is_recording: bool
    is_loading: bool
    submit_state: SubmitState
    can_submit: bool
    can_record: bool
