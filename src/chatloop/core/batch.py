"""Batch lifecycle manager.

Owns at most one native batch at a time. Every successful ``build_*``
call is matched by exactly one later ``release()`` or replacement
``build_*``; a batch that fails half-way through being filled is freed
before the error propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from chatloop.engine.base import InferenceEngine

from .context import ContextWindow
from .metrics import BATCHES_LIVE, CONTEXT_USED_TOKENS

logger = logging.getLogger(__name__)

SEQUENCE_ID = 0


@dataclass(frozen=True)
class PendingBatch:
    """What the held native batch contains, for inspection and logging."""

    tokens: tuple[int, ...]
    positions: tuple[int, ...]
    logits: tuple[bool, ...]
    seq_id: int = SEQUENCE_ID

    @property
    def n_tokens(self) -> int:
        return len(self.tokens)


class BatchManager:
    """Builds position-indexed batches against a ``ContextWindow``."""

    def __init__(self, engine: InferenceEngine, window: ContextWindow) -> None:
        self._engine = engine
        self._window = window
        self._native: Any = None
        self._pending: PendingBatch | None = None

    @property
    def pending(self) -> PendingBatch | None:
        return self._pending

    @property
    def native(self) -> Any:
        return self._native

    @property
    def is_held(self) -> bool:
        return self._native is not None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def build_prompt_batch(self, tokens: Sequence[int]) -> PendingBatch:
        """Submit a whole prompt; only the last token requests logits."""
        if not tokens:
            raise ValueError("cannot build a prompt batch from zero tokens")
        return self._build(list(tokens))

    def build_step_batch(self, token: int) -> PendingBatch:
        """Submit the single token sampled by the previous step."""
        return self._build([token])

    def _build(self, tokens: list[int]) -> PendingBatch:
        self.release()

        start = self._window.used
        n = len(tokens)
        native = self._engine.batch_init(n)
        try:
            for i, token in enumerate(tokens):
                native.token[i] = token
                native.pos[i] = start + i
                native.n_seq_id[i] = 1
                native.seq_id[i][0] = SEQUENCE_ID
                native.logits[i] = i == n - 1
            native.n_tokens = n
        except BaseException:
            self._engine.batch_free(native)
            raise

        self._native = native
        self._pending = PendingBatch(
            tokens=tuple(tokens),
            positions=tuple(range(start, start + n)),
            logits=tuple(i == n - 1 for i in range(n)),
        )
        BATCHES_LIVE.inc()
        self._window.advance(n)
        CONTEXT_USED_TOKENS.set(self._window.used)
        return self._pending

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self) -> None:
        """Free the held batch, if any. Safe to call repeatedly."""
        native, self._native = self._native, None
        self._pending = None
        if native is None:
            return
        BATCHES_LIVE.dec()
        self._engine.batch_free(native)

    def __enter__(self) -> "BatchManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
