"""Event type constants."""

# ---------------------------------------------------------------------------
# Event type constants
# ---------------------------------------------------------------------------

EVENT_TYPE_PROMPT_SUBMITTED = "prompt_submitted"
EVENT_TYPE_PIECE = "piece"
EVENT_TYPE_STOPPED = "stopped"

VALID_EVENT_TYPES = frozenset(
    {
        EVENT_TYPE_PROMPT_SUBMITTED,
        EVENT_TYPE_PIECE,
        EVENT_TYPE_STOPPED,
    }
)
