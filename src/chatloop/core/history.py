"""In-memory chat history for a single session."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One immutable turn of the conversation.

    Known role strings are coerced to ``ChatRole``. Anything else is kept
    as-is; the prompt formatter simply skips such messages.
    """

    model_config = ConfigDict(frozen=True)

    role: ChatRole | str = Field(union_mode="left_to_right")
    content: str


class ChatHistory:
    """Append-only, ordered sequence of ``ChatMessage``.

    Insertion order is conversation order. Alternation of roles is the
    caller's business and is not enforced here.
    """

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []

    def append(self, content: str, role: ChatRole | str) -> ChatMessage:
        if content is None or role is None:
            raise TypeError("content and role must not be None")
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> ChatMessage | None:
        return self._messages[-1] if self._messages else None

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> ChatMessage:
        return self._messages[index]

    def __repr__(self) -> str:
        return f"ChatHistory({len(self._messages)} messages)"
