"""Session event fan-out for UI observers."""

from dijiang.events.event_bus import EventBus
from dijiang.events.types import SessionEvent, SessionEventType

__all__ = ["EventBus", "SessionEvent", "SessionEventType"]
