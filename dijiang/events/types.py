"""Pydantic models for events published by the session controller."""

import time
from enum import Enum

from pydantic import BaseModel, Field

from dijiang.session.types import Message


class SessionEventType(str, Enum):
    """What changed in the session."""

    MESSAGE_APPENDED = "message_appended"
    INPUT_CHANGED = "input_changed"
    STATE_CHANGED = "state_changed"
    ALERT = "alert"


class SessionEvent(BaseModel):
    """A single notification for UI observers.

    Fields populated by type:
      - message_appended: message
      - input_changed: text (the new input buffer)
      - alert: text (human-readable error, transient)
      - state_changed: none; observers re-read the snapshot
    """

    type: SessionEventType
    timestamp: float = Field(default_factory=time.time)
    message: Message | None = None
    text: str | None = None
