"""Exploration schedule and arm selection shared by the learners.

Every agent owns its own ``numpy.random.Generator``; all exploration draws and
tie-breaks for that agent come from it, so agents never share a draw.
"""

import math
from dataclasses import dataclass

import numpy as np

from ..validation import NumericalError, validate_positive


@dataclass(frozen=True)
class ExplorationScheduler:
    """Time-decaying exploration probability p(t) = exp(-decay * t)."""

    decay: float

    def __post_init__(self) -> None:
        """Validate the decay constant is positive."""
        validate_positive("Exploration decay", self.decay)

    def probability(self, t: int) -> float:
        """Return the exploration probability for period t."""
        return math.exp(-self.decay * t)

    def should_explore(self, t: int, rng: np.random.Generator) -> bool:
        """Draw one Bernoulli(p(t)) outcome from the agent's generator."""
        return bool(rng.random() < self.probability(t))


def argmax_random_tiebreak(values: np.ndarray, rng: np.random.Generator) -> int:
    """Return the index of a maximal value, breaking exact ties uniformly.

    Raises:
        NumericalError: If any value is NaN or infinite
    """
    values = np.asarray(values, dtype=float)
    if not np.all(np.isfinite(values)):
        raise NumericalError(f"Cannot select from non-finite estimates {values}")
    best = np.flatnonzero(values == values.max())
    if best.size == 1:
        return int(best[0])
    return int(rng.choice(best))


def select_arm(
    values: np.ndarray, explore_probability: float, rng: np.random.Generator
) -> int:
    """Choose an arm: uniform exploration with the given probability, else greedy.

    Args:
        values: Current value estimate for each arm
        explore_probability: Probability of exploring this period
        rng: The selecting agent's generator

    Returns:
        Index of the chosen arm
    """
    if not np.all(np.isfinite(values)):
        raise NumericalError(f"Cannot select from non-finite estimates {values}")
    if rng.random() < explore_probability:
        return int(rng.integers(len(values)))
    return argmax_random_tiebreak(values, rng)
