"""Pricing algorithms and the factory used by the experiment runner."""

from enum import Enum
from typing import Any, Sequence, Union

import numpy as np

from ..validation import ConfigurationError
from .base import Learner, ObservationLog
from .exploration import ExplorationScheduler, argmax_random_tiebreak, select_arm
from .linear import LinearBanditLearner, LinearBanditParams, LinearModel
from .neural import NeuralBanditLearner, NeuralBanditParams, NeuralNet
from .qlearning import QLearner, QLearningParams, coarsen_grid, warm_start_q_table
from .ucb import UCBLearner, UCBParams, UCBStats

LearnerParams = Union[
    UCBParams, LinearBanditParams, NeuralBanditParams, QLearningParams
]


class LearnerKind(str, Enum):
    """Available pricing algorithms."""

    UCB = "ucb"
    LINEAR = "linear"
    NEURAL = "neural"
    QLEARNING = "qlearning"
    QLEARNING_REDUCED = "qlearning_reduced"


_PARAM_TYPES = {
    LearnerKind.UCB: UCBParams,
    LearnerKind.LINEAR: LinearBanditParams,
    LearnerKind.NEURAL: NeuralBanditParams,
    LearnerKind.QLEARNING: QLearningParams,
    LearnerKind.QLEARNING_REDUCED: QLearningParams,
}


def default_params(kind: LearnerKind, **overrides: Any) -> Any:
    """Return hyper-parameters for a learner kind, defaults unless overridden."""
    if kind == LearnerKind.QLEARNING_REDUCED:
        return QLearningParams.reduced(**overrides)
    return _PARAM_TYPES[kind](**overrides)


def check_params(kind: LearnerKind, params: Any) -> None:
    """Raise ConfigurationError if params do not belong to the learner kind."""
    expected = _PARAM_TYPES[kind]
    if not isinstance(params, expected):
        raise ConfigurationError(
            f"Learner '{kind.value}' requires {expected.__name__}, "
            f"got {type(params).__name__}"
        )


def create_learner(
    kind: LearnerKind,
    grid: Sequence[float],
    n_agents: int,
    alpha: float,
    beta: float,
    params: Any,
    rng: np.random.Generator,
) -> Learner:
    """Factory function to create a learner for one agent in one replicate.

    Args:
        kind: Pricing algorithm
        grid: Price grid shared by all agents
        n_agents: Number of agents in the market
        alpha: Demand quality index (used for the Q-table warm start)
        beta: Demand price sensitivity (used for the Q-table warm start)
        params: Hyper-parameters matching the kind
        rng: The agent's own generator

    Returns:
        Learner instance

    Raises:
        ConfigurationError: If params do not match the kind
    """
    check_params(kind, params)
    if kind == LearnerKind.UCB:
        return UCBLearner(len(grid), params, rng)
    if kind == LearnerKind.LINEAR:
        return LinearBanditLearner(grid, n_agents, params, rng)
    if kind == LearnerKind.NEURAL:
        return NeuralBanditLearner(grid, n_agents, params, rng)
    return QLearner(grid, n_agents, alpha, beta, params, rng)


__all__ = [
    "ExplorationScheduler",
    "Learner",
    "LearnerKind",
    "LearnerParams",
    "LinearBanditLearner",
    "LinearBanditParams",
    "LinearModel",
    "NeuralBanditLearner",
    "NeuralBanditParams",
    "NeuralNet",
    "ObservationLog",
    "QLearner",
    "QLearningParams",
    "UCBLearner",
    "UCBParams",
    "UCBStats",
    "argmax_random_tiebreak",
    "check_params",
    "coarsen_grid",
    "create_learner",
    "default_params",
    "select_arm",
    "warm_start_q_table",
]
