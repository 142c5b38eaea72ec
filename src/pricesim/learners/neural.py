"""Neural-network contextual bandit.

The network has one hidden layer of two logistic units and a linear output. It
maps a one-hot context (each rival's price, then the agent's own price) to the
agent's realised profit. After a full-batch fit on the random initialization
window, every later period applies exactly one gradient step on a minibatch
drawn from the post-window history. The payoff table over every (own price,
rival prices) pair is recomputed after each update and read at selection time.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..config import get_settings
from ..logging import get_logger
from ..validation import (
    ConfigurationError,
    NumericalError,
    StateError,
    ensure_finite,
    validate_positive,
)
from .base import ObservationLog
from .exploration import ExplorationScheduler, select_arm

logger = get_logger(__name__)

HIDDEN_UNITS = 2


@dataclass
class NeuralBanditParams:
    """Hyper-parameters for the neural contextual bandit.

    ``learning_rate`` is divided by the minibatch length when
    ``scale_by_batch`` is set, which turns the summed gradient into a mean.
    """

    decay: float = field(default_factory=lambda: get_settings().bandit_decay)
    init_periods: int = 100
    batch_size: int = 128
    learning_rate: float = 0.5
    scale_by_batch: bool = True
    init_learning_rate: float = 1.0
    max_epochs: int = 5000
    tolerance: float = 1e-10
    weight_scale: float = 0.5

    def __post_init__(self) -> None:
        """Validate schedule, sample sizes and step sizes."""
        for name in ("decay", "learning_rate", "init_learning_rate", "weight_scale"):
            validate_positive(name, getattr(self, name))
        for name in ("init_periods", "batch_size", "max_epochs"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value}"
                )
        if self.tolerance < 0:
            raise ConfigurationError(
                f"tolerance must be non-negative, got {self.tolerance}"
            )


def logistic(z: np.ndarray) -> np.ndarray:
    """Logistic function, written via tanh so large |z| cannot overflow."""
    return 0.5 * (1.0 + np.tanh(0.5 * z))


@dataclass(frozen=True)
class NeuralNet:
    """Weights of the two-unit network."""

    hidden_weights: np.ndarray  # (HIDDEN_UNITS, n_inputs)
    hidden_bias: np.ndarray  # (HIDDEN_UNITS,)
    output_weights: np.ndarray  # (HIDDEN_UNITS,)
    output_bias: float

    @classmethod
    def initialize(
        cls, n_inputs: int, scale: float, rng: np.random.Generator
    ) -> "NeuralNet":
        return cls(
            hidden_weights=rng.normal(0.0, scale, size=(HIDDEN_UNITS, n_inputs)),
            hidden_bias=rng.normal(0.0, scale, size=HIDDEN_UNITS),
            output_weights=rng.normal(0.0, scale, size=HIDDEN_UNITS),
            output_bias=0.0,
        )

    def forward(self, inputs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return (hidden activations, predictions) for a batch of inputs."""
        hidden = logistic(inputs @ self.hidden_weights.T + self.hidden_bias)
        return hidden, hidden @ self.output_weights + self.output_bias

    def predict(self, inputs: np.ndarray) -> np.ndarray:
        return self.forward(inputs)[1]

    def loss(self, inputs: np.ndarray, targets: np.ndarray) -> float:
        """Mean squared error, halved."""
        residual = self.predict(inputs) - targets
        return 0.5 * float(np.mean(residual**2))

    def gradient_step(
        self, inputs: np.ndarray, targets: np.ndarray, step_size: float
    ) -> "NeuralNet":
        """Apply one step on the summed squared-error gradient.

        Returns a new network; the receiver is left unchanged.
        """
        hidden, predictions = self.forward(inputs)
        residual = predictions - targets
        grad_output_weights = hidden.T @ residual
        grad_output_bias = residual.sum()
        hidden_delta = np.outer(residual, self.output_weights) * hidden * (1.0 - hidden)
        grad_hidden_weights = hidden_delta.T @ inputs
        grad_hidden_bias = hidden_delta.sum(axis=0)
        return replace(
            self,
            hidden_weights=self.hidden_weights - step_size * grad_hidden_weights,
            hidden_bias=self.hidden_bias - step_size * grad_hidden_bias,
            output_weights=self.output_weights - step_size * grad_output_weights,
            output_bias=float(self.output_bias - step_size * grad_output_bias),
        )

    def check_finite(self, period: Optional[int] = None) -> None:
        ensure_finite(
            "network weights",
            self.hidden_weights,
            self.hidden_bias,
            self.output_weights,
            np.array([self.output_bias]),
            period=period,
        )


def encode_context(
    own_indices: np.ndarray, rival_indices: np.ndarray, grid_size: int
) -> np.ndarray:
    """One-hot encode rows of (rival prices..., own price) over the grid.

    Args:
        own_indices: Own price index per row, shape (m,)
        rival_indices: Rival price indices per row, shape (m, n_rivals)
        grid_size: Number of grid prices

    Returns:
        Array of shape (m, (n_rivals + 1) * grid_size)
    """
    own_indices = np.asarray(own_indices)
    rival_indices = np.asarray(rival_indices).reshape(len(own_indices), -1)
    n_rivals = rival_indices.shape[1]
    encoded = np.zeros((len(own_indices), (n_rivals + 1) * grid_size))
    rows = np.arange(len(own_indices))
    for j in range(n_rivals):
        encoded[rows, j * grid_size + rival_indices[:, j]] = 1.0
    encoded[rows, n_rivals * grid_size + own_indices] = 1.0
    return encoded


class NeuralBanditLearner:
    """Pricing agent driven by a small neural profit model."""

    def __init__(
        self,
        grid: Sequence[float],
        n_agents: int,
        params: NeuralBanditParams,
        rng: np.random.Generator,
    ):
        self.grid = np.asarray(grid, dtype=float)
        self.n_rivals = n_agents - 1
        self.params = params
        self._rng = rng
        self.scheduler = ExplorationScheduler(params.decay)
        self.log = ObservationLog(n_rivals=self.n_rivals)
        self.network = NeuralNet.initialize(
            n_agents * self.grid.size, params.weight_scale, rng
        )
        self.fitted = False
        self.payoff_table: Optional[np.ndarray] = None
        self.last_sample_indices = np.empty(0, dtype=np.int64)

        # Every (own, rival...) combination in row-major order, own first
        combos = np.array(list(np.ndindex(*((self.grid.size,) * n_agents))))
        self._table_inputs = encode_context(combos[:, 0], combos[:, 1:], self.grid.size)

    def _rival_column(self, rival_indices: np.ndarray) -> int:
        shape = (self.grid.size,) * self.n_rivals
        return int(np.ravel_multi_index(tuple(rival_indices), shape))

    def expected_profits(self) -> np.ndarray:
        """Cached predicted profit of every grid price against rivals' last prices.

        Raises:
            StateError: If the initial fit has not happened yet
        """
        if self.payoff_table is None:
            raise StateError(
                f"Neural model is not fitted: {len(self.log)} of "
                f"{self.params.init_periods} initialization periods observed"
            )
        return self.payoff_table[:, self._rival_column(self.log.rivals[-1])]

    def select(self, t: int) -> int:
        if len(self.log) < self.params.init_periods:
            return int(self._rng.integers(self.grid.size))
        return select_arm(
            self.expected_profits(), self.scheduler.probability(t), self._rng
        )

    def update(
        self, t: int, own_index: int, rival_indices: Sequence[int], reward: float
    ) -> None:
        self.log.append(own_index, rival_indices, reward)
        observed = len(self.log)
        init = self.params.init_periods
        if observed < init:
            return
        if observed == init:
            self._fit_initial(t)
        else:
            rows = self.log.sample_indices(init, self.params.batch_size, self._rng)
            inputs, targets = self._training_rows(rows)
            step_size = self.params.learning_rate
            if self.params.scale_by_batch:
                step_size /= len(rows)
            network = self.network.gradient_step(inputs, targets, step_size)
            network.check_finite(period=t)
            self.network = network
            self.last_sample_indices = rows
        self._refresh_payoff_table(t)

    def _training_rows(self, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        inputs = encode_context(
            self.log.own[rows], self.log.rivals[rows], self.grid.size
        )
        return inputs, self.log.rewards[rows]

    def _fit_initial(self, t: int) -> None:
        rows = np.arange(self.params.init_periods)
        inputs, targets = self._training_rows(rows)
        step_size = self.params.init_learning_rate / len(rows)
        network = self.network
        previous = network.loss(inputs, targets)
        converged = False
        for epoch in range(self.params.max_epochs):
            network = network.gradient_step(inputs, targets, step_size)
            current = network.loss(inputs, targets)
            if not np.isfinite(current):
                raise NumericalError(
                    f"Initial network fit diverged at epoch {epoch}", period=t
                )
            if abs(previous - current) <= self.params.tolerance:
                converged = True
                break
            previous = current
        network.check_finite(period=t)
        if not converged:
            logger.debug(
                f"Initial network fit stopped after {self.params.max_epochs} epochs "
                f"with loss {current:.3e}"
            )
        self.network = network
        self.fitted = True
        self.last_sample_indices = rows

    def _refresh_payoff_table(self, t: int) -> None:
        predictions = self.network.predict(self._table_inputs)
        ensure_finite("payoff table", predictions, period=t)
        self.payoff_table = predictions.reshape(self.grid.size, -1)

    def snapshot(self) -> Dict[str, np.ndarray]:
        return {
            "hidden_weights": self.network.hidden_weights.copy(),
            "hidden_bias": self.network.hidden_bias.copy(),
            "output_weights": self.network.output_weights.copy(),
            "output_bias": np.array([self.network.output_bias]),
        }
