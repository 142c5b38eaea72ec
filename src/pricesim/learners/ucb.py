"""UCB1-Tuned learner over the price grid.

The learner ignores rival prices; they only reach it through the realised
profit. Every arm is played once, in a random order, before the index is used.
"""

from dataclasses import dataclass, field
from typing import Dict, Sequence

import numpy as np

from ..validation import StateError, validate_positive
from .exploration import argmax_random_tiebreak


@dataclass
class UCBParams:
    """Hyper-parameters for UCB1-Tuned."""

    variance_cap: float = 0.25  # 1/4 bounds the variance of rewards in [0, 1]

    def __post_init__(self) -> None:
        """Validate the variance cap."""
        validate_positive("UCB variance cap", self.variance_cap)


@dataclass
class UCBStats:
    """Per-arm pull counts, reward sums and squared-reward sums."""

    counts: np.ndarray
    sums: np.ndarray
    squared_sums: np.ndarray = field(repr=False)

    @classmethod
    def empty(cls, n_arms: int) -> "UCBStats":
        return cls(
            counts=np.zeros(n_arms, dtype=np.int64),
            sums=np.zeros(n_arms),
            squared_sums=np.zeros(n_arms),
        )

    @property
    def total_pulls(self) -> int:
        return int(self.counts.sum())

    def record(self, arm: int, reward: float) -> None:
        """Add one observation to the played arm only."""
        self.counts[arm] += 1
        self.sums[arm] += reward
        self.squared_sums[arm] += reward * reward

    def means(self) -> np.ndarray:
        if np.any(self.counts == 0):
            raise StateError("Every arm must be played once before means exist")
        return self.sums / self.counts


class UCBLearner:
    """UCB1-Tuned pricing agent."""

    def __init__(
        self,
        grid_size: int,
        params: UCBParams,
        rng: np.random.Generator,
    ):
        self.grid_size = grid_size
        self.params = params
        self._rng = rng
        self.stats = UCBStats.empty(grid_size)
        self._initial_order = rng.permutation(grid_size)

    @property
    def initialized(self) -> bool:
        return self.stats.total_pulls >= self.grid_size

    def index(self) -> np.ndarray:
        """Compute the UCB1-Tuned index of every arm.

        index = mean + sqrt((ln T / n) * min(cap, V)), with
        V = sumsq / n - mean^2 + sqrt(2 ln T / n) and T the total number of pulls.

        Raises:
            StateError: If some arm has not been played yet
        """
        if not self.initialized:
            raise StateError(
                f"UCB index requested after {self.stats.total_pulls} of "
                f"{self.grid_size} initial pulls"
            )
        counts = self.stats.counts.astype(float)
        means = self.stats.means()
        log_total = np.log(self.stats.total_pulls)
        variance = (
            self.stats.squared_sums / counts
            - means**2
            + np.sqrt(2.0 * log_total / counts)
        )
        bonus = np.sqrt(
            (log_total / counts) * np.minimum(self.params.variance_cap, variance)
        )
        return means + bonus

    def select(self, t: int) -> int:
        pulls = self.stats.total_pulls
        if pulls < self.grid_size:
            return int(self._initial_order[pulls])
        return argmax_random_tiebreak(self.index(), self._rng)

    def update(
        self, t: int, own_index: int, rival_indices: Sequence[int], reward: float
    ) -> None:
        self.stats.record(own_index, reward)

    def snapshot(self) -> Dict[str, np.ndarray]:
        return {
            "counts": self.stats.counts.copy(),
            "sums": self.stats.sums.copy(),
            "squared_sums": self.stats.squared_sums.copy(),
        }
