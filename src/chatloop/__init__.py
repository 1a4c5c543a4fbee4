"""Step-wise chat sessions over a llama.cpp engine."""

from chatloop.core import (  # noqa: F401
    END_OF_GENERATION,
    ChatMessage,
    ChatRole,
    ChatSession,
    SessionState,
    SessionStateError,
    StopReason,
    format_prompt,
)
from chatloop.core.deps import open_session  # noqa: F401
from chatloop.engine import (  # noqa: F401
    ContextInitError,
    DecodeError,
    EngineError,
    InferenceEngine,
    ModelLoadError,
)

__version__ = "0.1.0"
