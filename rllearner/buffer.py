from __future__ import annotations

from typing import List, Optional

import numpy as np

from .errors import InsufficientDataError
from .types import Transition


class ReplayBuffer:
    """
    Fixed-capacity ring of transitions.

    Grows by append until `capacity`, then overwrites the oldest entry.
    Entries are stored as given; shape checks happen when a batch is built.
    """

    def __init__(self, capacity: int, seed: int = 42):
        if int(capacity) <= 0:
            raise ValueError("capacity must be positive.")
        self.capacity = int(capacity)
        self._items: List[Optional[Transition]] = [None] * self.capacity
        self._ptr = 0
        self._size = 0
        self.rng = np.random.default_rng(int(seed))

    def __len__(self) -> int:
        return self._size

    def is_full(self) -> bool:
        return self._size == self.capacity

    def add(self, transition: Transition) -> None:
        self._items[self._ptr] = transition
        self._ptr = (self._ptr + 1) % self.capacity
        self._size = min(self._size + 1, self.capacity)

    def sample(self, batch_size: int) -> List[Transition]:
        """Uniform sample with replacement."""
        if int(batch_size) < 1:
            raise ValueError("batch_size must be at least 1.")
        if self._size < 1:
            raise InsufficientDataError("Cannot sample from an empty replay buffer.")
        idx = self.rng.integers(0, self._size, size=int(batch_size))
        return [self._items[i] for i in idx]

    def transitions(self) -> List[Transition]:
        """Stored transitions, oldest first."""
        if self._size < self.capacity:
            return list(self._items[: self._size])
        return self._items[self._ptr:] + self._items[: self._ptr]
