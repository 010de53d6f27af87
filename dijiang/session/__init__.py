"""Conversation session: timeline and message types.

The controller lives in :mod:`dijiang.session.controller`.
"""

from dijiang.session.timeline import SYSTEM_MESSAGE_ID, Timeline
from dijiang.session.types import Message, Role, SessionSnapshot, SubmitState

__all__ = [
    "Message",
    "Role",
    "SYSTEM_MESSAGE_ID",
    "SessionSnapshot",
    "SubmitState",
    "Timeline",
]
