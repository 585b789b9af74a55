"""Ordered, append-only conversation history owned by one turn at a time."""

import asyncio
from typing import Iterable, Iterator, List, Tuple

from .models import BaseMessage, UserMessage


class ConversationHistory:
    """
    The ordered message history of one conversation.

    Insertion order is the order the model sees. Messages are only ever appended.
    ``lock`` serializes turns: a turn holds it from the moment the user message is
    added until the assistant message is committed or the turn fails.
    """

    def __init__(self, messages: Iterable[BaseMessage] = ()) -> None:
        self._messages: List[BaseMessage] = list(messages)
        self.lock = asyncio.Lock()

    @property
    def messages(self) -> Tuple[BaseMessage, ...]:
        return tuple(self._messages)

    def append(self, message: BaseMessage) -> None:
        self._messages.append(message)

    def add_user_message(self, content: str) -> UserMessage:
        message = UserMessage(content=content)
        self._messages.append(message)
        return message

    def snapshot(self) -> List[BaseMessage]:
        """A copy of the history that a turn can extend without touching the original."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[BaseMessage]:
        return iter(tuple(self._messages))

    def __getitem__(self, index: int) -> BaseMessage:
        return self._messages[index]
