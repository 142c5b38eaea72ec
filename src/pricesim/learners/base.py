"""Learner contract and the observation log used by contextual learners.

A learner is owned by exactly one agent in exactly one replicate. Within a
period every agent first calls ``select`` (which may only read state as of the
end of the previous period), the environment scores the joint prices, and then
every agent calls ``update`` with what it observed.
"""

from typing import Dict, Protocol, Sequence

import numpy as np


class Learner(Protocol):
    """Protocol shared by all pricing algorithms."""

    def select(self, t: int) -> int:
        """Choose the price index to charge in period t."""
        ...

    def update(
        self, t: int, own_index: int, rival_indices: Sequence[int], reward: float
    ) -> None:
        """Consume the prices realised in period t and the agent's own profit."""
        ...

    def snapshot(self) -> Dict[str, np.ndarray]:
        """Return a copy of the learner's state for offline analysis."""
        ...


class ObservationLog:
    """Append-only record of (own index, rival indices, reward) per period.

    Storage grows geometrically so that appending and slicing stay cheap over
    long replicates.
    """

    def __init__(self, n_rivals: int, capacity: int = 1024):
        self.n_rivals = n_rivals
        self._own = np.empty(capacity, dtype=np.int64)
        self._rivals = np.empty((capacity, n_rivals), dtype=np.int64)
        self._rewards = np.empty(capacity, dtype=float)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def append(
        self, own_index: int, rival_indices: Sequence[int], reward: float
    ) -> None:
        """Record one period's observation."""
        if self._size == self._own.size:
            self._grow()
        self._own[self._size] = own_index
        self._rivals[self._size] = rival_indices
        self._rewards[self._size] = reward
        self._size += 1

    def _grow(self) -> None:
        capacity = 2 * self._own.size
        own = np.empty(capacity, dtype=np.int64)
        rivals = np.empty((capacity, self.n_rivals), dtype=np.int64)
        rewards = np.empty(capacity, dtype=float)
        own[: self._size] = self._own[: self._size]
        rivals[: self._size] = self._rivals[: self._size]
        rewards[: self._size] = self._rewards[: self._size]
        self._own, self._rivals, self._rewards = own, rivals, rewards

    @property
    def own(self) -> np.ndarray:
        return self._own[: self._size]

    @property
    def rivals(self) -> np.ndarray:
        return self._rivals[: self._size]

    @property
    def rewards(self) -> np.ndarray:
        return self._rewards[: self._size]

    def sample_indices(
        self, start: int, batch_size: int, rng: np.random.Generator
    ) -> np.ndarray:
        """Draw up to batch_size distinct row indices uniformly from [start, len).

        Indices are row positions, which coincide with period indices because
        a learner logs exactly one row per period starting at period 0.
        """
        available = self._size - start
        if available <= 0:
            return np.empty(0, dtype=np.int64)
        size = min(batch_size, available)
        return np.sort(rng.choice(available, size=size, replace=False)) + start
