"""Inference engine contract and the errors it raises.

The session layer never touches weights, the tokenizer or the KV cache
directly; everything goes through an ``InferenceEngine``.  Batches are
opaque native handles exposing per-slot ``token``, ``pos``,
``n_seq_id``, ``seq_id`` and ``logits`` arrays plus an ``n_tokens``
count, the layout of ``llama_batch``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class EngineError(Exception):
    """Base class for failures reported by the inference engine."""


class ModelLoadError(EngineError):
    """The model file is missing or could not be loaded."""


class ContextInitError(EngineError):
    """The engine context could not be created for a loaded model."""


class DecodeError(EngineError):
    """A batch decode failed. The session is unusable afterwards."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class InferenceEngine(ABC):
    """Model + context + sampler owned by exactly one session."""

    @property
    @abstractmethod
    def context_size(self) -> int:
        """Number of token positions the context can hold."""

    @abstractmethod
    def tokenize(self, text: str) -> list[int]: ...

    @abstractmethod
    def batch_init(self, n_tokens: int) -> Any:
        """Allocate a native batch with room for *n_tokens* slots."""

    @abstractmethod
    def batch_free(self, batch: Any) -> None: ...

    @abstractmethod
    def decode(self, batch: Any) -> None:
        """Run the model over *batch*; raises ``DecodeError`` on failure."""

    @abstractmethod
    def sample(self) -> int:
        """Draw the next token from the logits of the last decode."""

    @abstractmethod
    def is_end_of_generation(self, token: int) -> bool: ...

    @abstractmethod
    def token_to_piece(self, token: int) -> bytes:
        """Raw UTF-8 bytes for *token*; may be a partial character."""

    @abstractmethod
    def close(self) -> None:
        """Release native resources. Must be idempotent."""
