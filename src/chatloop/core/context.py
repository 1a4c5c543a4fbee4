"""Context window accounting."""

from dataclasses import dataclass


@dataclass
class ContextWindow:
    """Tracks how many positions of the engine's KV cache are occupied.

    ``used`` is the single source of positional indices: a token at
    offset ``i`` of a new batch sits at ``used + i``. One position is kept
    as headroom, so decoding stops once ``used`` reaches ``capacity - 1``.
    """

    capacity: int
    used: int = 0

    def __post_init__(self) -> None:
        if self.capacity < 2:
            raise ValueError(f"capacity must be at least 2, got {self.capacity}")
        if self.used < 0:
            raise ValueError(f"used must be non-negative, got {self.used}")

    def can_advance(self, n_new: int = 0) -> bool:
        return self.used + n_new < self.capacity - 1

    def advance(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"cannot advance the context by {n}")
        self.used += n

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - 1 - self.used)
