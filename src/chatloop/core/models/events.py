"""Session events passed to an optional observer callback."""

from typing import Literal

from pydantic import BaseModel, Field


class PromptSubmittedEvent(BaseModel):
    """The formatted history was tokenized and handed to the engine."""

    type: Literal["prompt_submitted"] = "prompt_submitted"
    prompt: str = Field(description="Full formatted prompt text")
    n_tokens: int = Field(description="Tokens in the prompt batch")
    context_used: int = Field(description="Context positions used after submission")


class PieceEvent(BaseModel):
    """One sampled token rendered to text."""

    type: Literal["piece"] = "piece"
    token: int = Field(description="Sampled token id")
    piece: str = Field(description="Decoded text for the token (may be empty)")
    context_used: int = Field(description="Context positions used after the step")


class StoppedEvent(BaseModel):
    """Generation for the current turn ended."""

    type: Literal["stopped"] = "stopped"
    reason: Literal[
        "end_of_generation", "context_exhausted", "cancelled", "length"
    ] = Field(description="Why generation ended")
    response: str = Field(description="Assistant text accumulated for the turn")
    persisted: bool = Field(description="Whether the response was added to history")
    context_used: int = Field(description="Context positions used at stop time")


SessionEvent = PromptSubmittedEvent | PieceEvent | StoppedEvent
