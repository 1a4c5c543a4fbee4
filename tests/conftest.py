"""Shared fixtures: a scripted, allocation-tracking fake engine."""

from dataclasses import dataclass, field
from typing import Callable

import pytest

from chatloop.engine.base import DecodeError, InferenceEngine

EOG_TOKEN = 0


@dataclass(eq=False)
class FakeBatch:
    """Mirror of ``llama_batch``: parallel per-slot arrays."""

    size: int
    token: list[int] = field(init=False)
    pos: list[int] = field(init=False)
    n_seq_id: list[int] = field(init=False)
    seq_id: list[list[int]] = field(init=False)
    logits: list[bool] = field(init=False)
    n_tokens: int = 0

    def __post_init__(self) -> None:
        self.token = [-1] * self.size
        self.pos = [-1] * self.size
        self.n_seq_id = [0] * self.size
        self.seq_id = [[-1] for _ in range(self.size)]
        self.logits = [False] * self.size


@dataclass
class DecodedBatch:
    tokens: list[int]
    positions: list[int]
    seq_ids: list[int]
    logits: list[bool]


class FakeEngine(InferenceEngine):
    """Tokenizes one token per character and samples from a script.

    Token ids for prompt text are ``1000 + ord(char)``; sampled ids come
    from *script* and render through *pieces* (default ``b"<id>"``).
    Once the script runs out, the end-of-generation token is sampled.
    """

    def __init__(
        self,
        script: list[int] | None = None,
        context_size: int = 256,
        pieces: dict[int, bytes] | None = None,
    ) -> None:
        self._context_size = context_size
        self.script = list(script or [])
        self.pieces = dict(pieces or {})
        self.tokenized: list[str] = []
        self.decoded: list[DecodedBatch] = []
        self.allocated: list[FakeBatch] = []
        self.freed: list[FakeBatch] = []
        self.fail_decode_at: int | None = None
        self.on_decode: Callable[[FakeBatch], None] | None = None
        self.closed = 0

    # -- helpers ------------------------------------------------------

    @property
    def live(self) -> list[FakeBatch]:
        return [b for b in self.allocated if not any(b is f for f in self.freed)]

    # -- InferenceEngine ----------------------------------------------

    @property
    def context_size(self) -> int:
        return self._context_size

    def tokenize(self, text: str) -> list[int]:
        self.tokenized.append(text)
        return [1000 + ord(ch) for ch in text]

    def batch_init(self, n_tokens: int) -> FakeBatch:
        batch = FakeBatch(n_tokens)
        self.allocated.append(batch)
        return batch

    def batch_free(self, batch: FakeBatch) -> None:
        assert any(batch is b for b in self.allocated), "freeing unknown batch"
        assert not any(batch is b for b in self.freed), "double free"
        self.freed.append(batch)

    def decode(self, batch: FakeBatch) -> None:
        assert any(batch is b for b in self.live), "decoding a freed batch"
        if self.on_decode is not None:
            self.on_decode(batch)
        if self.fail_decode_at is not None and len(self.decoded) == self.fail_decode_at:
            raise DecodeError("decode failed", code=-1)
        n = batch.n_tokens
        self.decoded.append(
            DecodedBatch(
                tokens=batch.token[:n],
                positions=batch.pos[:n],
                seq_ids=[batch.seq_id[i][0] for i in range(n)],
                logits=batch.logits[:n],
            )
        )

    def sample(self) -> int:
        return self.script.pop(0) if self.script else EOG_TOKEN

    def is_end_of_generation(self, token: int) -> bool:
        return token == EOG_TOKEN

    def token_to_piece(self, token: int) -> bytes:
        return self.pieces.get(token, f"<{token}>".encode())

    def close(self) -> None:
        self.closed += 1


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine(
        script=[1, 2, 3],
        pieces={1: b"Hi", 2: b" there", 3: b"!"},
    )


@pytest.fixture
def make_engine() -> Callable[..., FakeEngine]:
    return FakeEngine
