"""Repeated pricing games between self-learning algorithms.

This package simulates two- or three-firm logit Bertrand markets in which each
firm is driven by a learning algorithm (UCB1-Tuned, a linear or neural
contextual bandit, or tabular Q-learning), and runs Monte Carlo experiments to
study whether the learned prices settle above the competitive level.
"""

from .games.logit import profit_vector, reward, static_benchmarks, static_profit_matrix
from .learners import LearnerKind, create_learner
from .models.metrics import best_response_correlation, summarize
from .runners.runner import (
    ExperimentConfig,
    ExperimentResult,
    ExperimentRunner,
    ReplicateFailure,
    run_experiment,
)
from .validation import ConfigurationError, NumericalError, SimulationError, StateError

__all__ = [
    "ConfigurationError",
    "ExperimentConfig",
    "ExperimentResult",
    "ExperimentRunner",
    "LearnerKind",
    "NumericalError",
    "ReplicateFailure",
    "SimulationError",
    "StateError",
    "best_response_correlation",
    "create_learner",
    "profit_vector",
    "reward",
    "run_experiment",
    "static_benchmarks",
    "static_profit_matrix",
    "summarize",
]
