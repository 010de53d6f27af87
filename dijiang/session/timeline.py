"""Append-only conversation timeline anchored by the system prompt."""

import logging
from typing import Iterator

from dijiang.session.types import Message, Role

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE_ID = "system-prompt"


class Timeline:
    """Ordered, append-only sequence of turns for one session.

    The first entry is always the system message created here; it cannot be
    displaced or duplicated. Message ids are unique for the timeline's life.
    """

    def __init__(self, system_prompt: str) -> None:
        system = Message(id=SYSTEM_MESSAGE_ID, role=Role.SYSTEM, content=system_prompt)
        self._messages: list[Message] = [system]
        self._ids: set[str] = {system.id}

    def append(self, message: Message) -> None:
        """Append *message*; raises ValueError on a second system turn or a reused id."""
        if message.role == Role.SYSTEM:
            raise ValueError("the system message is fixed at session start")
        if message.id in self._ids:
            raise ValueError(f"duplicate message id: {message.id}")
        self._messages.append(message)
        self._ids.add(message.id)
        logger.debug("Appended %s turn %s", message.role.value, message.id)

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def get(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def to_chat_payload(self) -> list[dict[str, str]]:
        """Serialize every turn, system prompt first, as ``{role, content}`` pairs."""
        return [message.to_chat() for message in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))
