"""Chat session: history, prompt submission and the step-wise generation loop.

A session owns one engine (model + context + sampler) for its whole
lifetime and drives it one token per ``step()`` call. Pacing is entirely
up to the caller::

    with ChatSession(engine) as session:
        session.start_completion("Hello")
        while (piece := session.step()) is not END_OF_GENERATION:
            print(piece, end="", flush=True)

End-of-generation tokens and an exhausted context window both end the
turn normally: the accumulated reply is appended to the history and
``step()`` returns the ``END_OF_GENERATION`` sentinel. Engine failures
propagate unchanged and leave the session in ``SessionState.FAILED``.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import Callable, Iterator
from enum import Enum

from chatloop.engine.base import DecodeError, InferenceEngine
from chatloop.infra.telemetry import (
    ATTR_BATCH_TOKENS,
    ATTR_CONTEXT_CAPACITY,
    ATTR_CONTEXT_USED,
    ATTR_HISTORY_MESSAGES,
    ATTR_PROMPT_TOKENS,
    SPAN_DECODE,
    SPAN_PROMPT_SUBMIT,
    tracer,
)

from .batch import BatchManager, PendingBatch
from .context import ContextWindow
from .history import ChatHistory, ChatMessage, ChatRole
from .metrics import (
    COMPLETIONS_TOTAL,
    DECODE_FAILURES_TOTAL,
    DECODE_LATENCY_SECONDS,
    GENERATED_TOKENS_TOTAL,
    PROMPT_TOKENS,
)
from .models import PieceEvent, PromptSubmittedEvent, SessionEvent, StoppedEvent
from .prompt import format_prompt

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    PROMPT_SUBMITTED = "prompt_submitted"
    GENERATING = "generating"
    STOPPED = "stopped"
    FAILED = "failed"
    CLOSED = "closed"


class StopReason(str, Enum):
    END_OF_GENERATION = "end_of_generation"
    CONTEXT_EXHAUSTED = "context_exhausted"
    CANCELLED = "cancelled"
    LENGTH = "length"


class Sentinel(Enum):
    END_OF_GENERATION = "[EOG]"


END_OF_GENERATION = Sentinel.END_OF_GENERATION
"""Returned by ``step()`` when the turn is over. Never equal to a piece."""

_RUNNING = frozenset({SessionState.PROMPT_SUBMITTED, SessionState.GENERATING})

Observer = Callable[[SessionEvent], None]


class SessionStateError(RuntimeError):
    """Operation is not valid in the session's current state."""


def _new_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


class ChatSession:
    """Single-user conversation over an ``InferenceEngine``.

    Parameters
    ----------
    engine
        Engine exclusively owned by this session; closed by ``close()``.
    observer
        Optional callback receiving ``PromptSubmittedEvent``,
        ``PieceEvent`` and ``StoppedEvent`` as the loop progresses.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        *,
        observer: Observer | None = None,
    ) -> None:
        self._engine = engine
        self._observer = observer
        self._history = ChatHistory()
        self._window = ContextWindow(capacity=engine.context_size)
        self._batches = BatchManager(engine, self._window)
        self._state = SessionState.IDLE
        self._stop_reason: StopReason | None = None
        self._response_parts: list[str] = []
        self._decoder = _new_decoder()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def history(self) -> ChatHistory:
        return self._history

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stop_reason(self) -> StopReason | None:
        return self._stop_reason

    @property
    def response(self) -> str:
        """Assistant text accumulated for the current (or last) turn."""
        return "".join(self._response_parts)

    @property
    def context_used(self) -> int:
        return self._window.used

    @property
    def context_capacity(self) -> int:
        return self._window.capacity

    @property
    def pending_batch(self) -> PendingBatch | None:
        return self._batches.pending

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def add_message(self, content: str, role: ChatRole | str = ChatRole.SYSTEM) -> None:
        """Append a message without generating (system prompts, seeded turns)."""
        self._history.append(content, role)

    def start_completion(self, query: str) -> None:
        """Add *query* as a user turn and submit the whole history as a prompt.

        A completion still in progress is abandoned without being
        written to the history.
        """
        self._require_usable("start_completion")
        if self._state in _RUNNING:
            logger.warning(
                "Abandoning unfinished completion (%d chars) for a new query",
                len(self.response),
            )
            self._batches.release()
            self._state = SessionState.STOPPED

        user_turn = ChatMessage(role=ChatRole.USER, content=query)
        prompt = format_prompt([*self._history, user_turn])
        logger.debug("Formatted prompt:\n%s", prompt)

        try:
            with tracer.start_as_current_span(SPAN_PROMPT_SUBMIT) as span:
                tokens = self._engine.tokenize(prompt)
                self._batches.build_prompt_batch(tokens)
                span.set_attribute(ATTR_PROMPT_TOKENS, len(tokens))
                span.set_attribute(ATTR_HISTORY_MESSAGES, len(self._history) + 1)
                span.set_attribute(ATTR_CONTEXT_USED, self._window.used)
                span.set_attribute(ATTR_CONTEXT_CAPACITY, self._window.capacity)
        except Exception as exc:
            logger.error("Prompt submission failed: %s", exc)
            self._batches.release()
            self._state = SessionState.FAILED
            raise

        # The user turn joins the history only once its prompt is held.
        self._history.append(query, ChatRole.USER)

        logger.debug(
            "Tokenized prompt into %d tokens; context used %d/%d",
            len(tokens),
            self._window.used,
            self._window.capacity,
        )
        if not self._window.can_advance(0):
            logger.warning(
                "Prompt of %d tokens fills the context window (%d/%d)",
                len(tokens),
                self._window.used,
                self._window.capacity,
            )
        PROMPT_TOKENS.observe(len(tokens))

        self._response_parts = []
        self._decoder = _new_decoder()
        self._stop_reason = None
        self._state = SessionState.PROMPT_SUBMITTED
        self._emit(
            PromptSubmittedEvent(
                prompt=prompt, n_tokens=len(tokens), context_used=self._window.used
            )
        )

    def step(self) -> str | Sentinel:
        """Decode the held batch and sample one token.

        Returns the token's text piece, or ``END_OF_GENERATION`` once the
        turn has ended. A piece may be empty when a token carries only
        part of a multi-byte character.
        """
        if self._state not in _RUNNING:
            raise SessionStateError(
                f"step() requires a submitted prompt; session is {self._state.value}"
            )

        if not self._window.can_advance(0):
            logger.warning(
                "Context window exhausted (%d/%d); ending the turn",
                self._window.used,
                self._window.capacity,
            )
            return self._finish(StopReason.CONTEXT_EXHAUSTED)

        pending = self._batches.pending
        kind = "prompt" if self._state is SessionState.PROMPT_SUBMITTED else "step"
        try:
            with tracer.start_as_current_span(SPAN_DECODE) as span:
                span.set_attribute(ATTR_BATCH_TOKENS, pending.n_tokens if pending else 0)
                span.set_attribute(ATTR_CONTEXT_USED, self._window.used)
                with DECODE_LATENCY_SECONDS.labels(kind=kind).time():
                    self._engine.decode(self._batches.native)

            token = self._engine.sample()
            end_of_turn = self._engine.is_end_of_generation(token)
            if not end_of_turn:
                piece = self._decoder.decode(self._engine.token_to_piece(token))
                self._response_parts.append(piece)
                self._batches.build_step_batch(token)
        except Exception as exc:
            if isinstance(exc, DecodeError):
                DECODE_FAILURES_TOTAL.inc()
            logger.error("Generation step failed: %s", exc)
            self._batches.release()
            self._state = SessionState.FAILED
            raise

        # Observer errors surface to the caller without failing the session.
        if end_of_turn:
            return self._finish(StopReason.END_OF_GENERATION)

        GENERATED_TOKENS_TOTAL.inc()
        self._state = SessionState.GENERATING
        self._emit(PieceEvent(token=token, piece=piece, context_used=self._window.used))
        return piece

    def stop_completion(self, keep_partial: bool = False) -> None:
        """Release the held batch, ending any running completion.

        The partial reply is discarded from the history unless
        *keep_partial* is set; it stays readable through ``response``.
        """
        if self._state in _RUNNING:
            self._finish(StopReason.CANCELLED, persist=keep_partial)
        else:
            self._batches.release()

    def generate(self, query: str, max_pieces: int | None = None) -> Iterator[str]:
        """Run a full turn, yielding pieces until the sentinel.

        With *max_pieces* set, the turn is cut after that many pieces and
        the partial reply is kept in the history. Closing the iterator
        early cancels the turn.
        """
        self.start_completion(query)
        emitted = 0
        try:
            while True:
                if max_pieces is not None and emitted >= max_pieces:
                    self._finish(StopReason.LENGTH)
                    return
                piece = self.step()
                if piece is END_OF_GENERATION:
                    return
                emitted += 1
                yield piece
        finally:
            if self._state in _RUNNING:
                self.stop_completion()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Free the held batch and the engine. Idempotent."""
        if self._state is SessionState.CLOSED:
            return
        try:
            self._batches.release()
        finally:
            self._state = SessionState.CLOSED
            self._engine.close()

    def __enter__(self) -> "ChatSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_usable(self, operation: str) -> None:
        if self._state in (SessionState.FAILED, SessionState.CLOSED):
            raise SessionStateError(
                f"{operation}() is not allowed once the session is {self._state.value}"
            )

    def _finish(self, reason: StopReason, persist: bool = True) -> Sentinel:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._response_parts.append(tail)
        self._batches.release()

        response = self.response
        if persist:
            self._history.append(response, ChatRole.ASSISTANT)
        self._state = SessionState.STOPPED
        self._stop_reason = reason
        COMPLETIONS_TOTAL.labels(reason=reason.value).inc()
        logger.info(
            "Completion stopped (%s): %d chars, context %d/%d",
            reason.value,
            len(response),
            self._window.used,
            self._window.capacity,
        )
        self._emit(
            StoppedEvent(
                reason=reason.value,
                response=response,
                persisted=persist,
                context_used=self._window.used,
            )
        )
        return END_OF_GENERATION

    def _emit(self, event: SessionEvent) -> None:
        if self._observer is not None:
            self._observer(event)
