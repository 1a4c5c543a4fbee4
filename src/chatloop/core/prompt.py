"""Flat, role-prefixed chat prompt.

No model-specific template metadata is consulted: every turn becomes
``"<Label>: <content>\\n\\n"`` and the prompt ends with an assistant cue,
which base and instruction-tuned models alike continue sensibly.
"""

from collections.abc import Iterable

from .history import ChatMessage, ChatRole

ROLE_LABELS: dict[ChatRole, str] = {
    ChatRole.SYSTEM: "System",
    ChatRole.USER: "User",
    ChatRole.ASSISTANT: "Assistant",
}

TURN_SEPARATOR = "\n\n"
ASSISTANT_CUE = f"{ROLE_LABELS[ChatRole.ASSISTANT]}: "


def format_prompt(messages: Iterable[ChatMessage]) -> str:
    """Render *messages* in order, followed by the assistant cue.

    Messages with an unrecognised role are dropped silently.
    """
    parts: list[str] = []
    for message in messages:
        label = ROLE_LABELS.get(message.role)  # type: ignore[call-overload]
        if label is None:
            continue
        parts.append(f"{label}: {message.content}{TURN_SEPARATOR}")
    parts.append(ASSISTANT_CUE)
    return "".join(parts)
