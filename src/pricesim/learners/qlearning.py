"""Tabular Q-learning over joint last-period prices.

The state is the tuple (own last price index, rival last price indices...)
flattened to one integer; the action is the own price index for the next
period. The Q-table starts from the exact one-shot profit of each action
against the rival prices encoded in the state.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..config import get_settings
from ..games.logit import static_profit_matrix
from ..validation import (
    ConfigurationError,
    validate_positive,
    validate_price_grid,
    validate_unit_interval,
)
from .exploration import ExplorationScheduler, select_arm


@dataclass
class QLearningParams:
    """Hyper-parameters for Q-learning."""

    alpha: float = 0.15  # Learning rate
    gamma: float = 0.95  # Discount factor
    decay: float = field(default_factory=lambda: get_settings().qlearning_decay)
    grid_stride: int = 1  # Keep every n-th grid price

    def __post_init__(self) -> None:
        """Validate hyper-parameter ranges."""
        validate_unit_interval("Learning rate alpha", self.alpha, include_zero=False)
        if not 0 <= self.gamma < 1:
            raise ConfigurationError(
                f"Discount factor gamma {self.gamma} must be in [0, 1)"
            )
        validate_positive("Exploration decay", self.decay)
        if not isinstance(self.grid_stride, int) or self.grid_stride < 1:
            raise ConfigurationError(
                f"Grid stride must be a positive integer, got {self.grid_stride}"
            )

    @classmethod
    def reduced(cls, **overrides) -> "QLearningParams":
        """Parameters for the reduced-state variant.

        Exploration decays faster and the agents price on a coarser grid.
        """
        settings = get_settings()
        overrides.setdefault("decay", settings.reduced_qlearning_decay)
        overrides.setdefault("grid_stride", settings.reduced_grid_stride)
        return cls(**overrides)


def coarsen_grid(grid: Sequence[float], stride: int = 2) -> List[float]:
    """Keep every ``stride``-th price, always including the highest one.

    Used to build the smaller state space of the reduced-state variant.
    """
    prices = validate_price_grid(grid)
    if stride < 1:
        raise ConfigurationError(f"Grid stride must be at least 1, got {stride}")
    coarse = list(prices[::stride])
    if coarse[-1] != prices[-1]:
        coarse.append(prices[-1])
    return [float(p) for p in validate_price_grid(coarse)]


def warm_start_q_table(
    grid: Sequence[float], alpha: float, beta: float, n_agents: int
) -> np.ndarray:
    """Build the Q-table holding the one-shot profit of every (state, action).

    Returns:
        Array of shape (len(grid) ** n_agents, len(grid))
    """
    size = len(grid)
    profits = static_profit_matrix(grid, alpha, beta, n_agents)
    q_table = np.empty((size**n_agents, size))
    for state, prices in enumerate(np.ndindex(*((size,) * n_agents))):
        rivals = prices[1:]
        q_table[state] = profits[(slice(None),) + rivals]
    return q_table


class QLearner:
    """Q-learning pricing agent."""

    def __init__(
        self,
        grid: Sequence[float],
        n_agents: int,
        alpha: float,
        beta: float,
        params: QLearningParams,
        rng: np.random.Generator,
    ):
        self.grid = np.asarray(grid, dtype=float)
        self.n_agents = n_agents
        self.params = params
        self._rng = rng
        self.scheduler = ExplorationScheduler(params.decay)
        self.q_table = warm_start_q_table(self.grid, alpha, beta, n_agents)
        self.state: Optional[int] = None

    def state_index(self, own_index: int, rival_indices: Sequence[int]) -> int:
        """Flatten (own, rivals...) into a single state index."""
        return int(
            np.ravel_multi_index(
                (own_index, *rival_indices), (self.grid.size,) * self.n_agents
            )
        )

    def select(self, t: int) -> int:
        if self.state is None:
            return int(self._rng.integers(self.grid.size))
        return select_arm(
            self.q_table[self.state], self.scheduler.probability(t), self._rng
        )

    def update(
        self, t: int, own_index: int, rival_indices: Sequence[int], reward: float
    ) -> None:
        """Back up Q(s, a) for the action just played and move to the new state."""
        next_state = self.state_index(own_index, rival_indices)
        if self.state is not None:
            alpha, gamma = self.params.alpha, self.params.gamma
            target = reward + gamma * self.q_table[next_state].max()
            self.q_table[self.state, own_index] = (
                (1 - alpha) * self.q_table[self.state, own_index] + alpha * target
            )
        self.state = next_state

    def snapshot(self) -> Dict[str, np.ndarray]:
        return {"q_table": self.q_table.copy()}
