"""Conversation state and the generation loop."""

from .batch import BatchManager, PendingBatch  # noqa: F401
from .context import ContextWindow  # noqa: F401
from .history import ChatHistory, ChatMessage, ChatRole  # noqa: F401
from .prompt import format_prompt  # noqa: F401
from .session import (  # noqa: F401
    END_OF_GENERATION,
    ChatSession,
    SessionState,
    SessionStateError,
    StopReason,
)
