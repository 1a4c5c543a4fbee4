"""Interactive terminal client for a chat session."""
