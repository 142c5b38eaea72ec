"""Linear-regression contextual bandit.

Each agent models its own demand as ``a + b * own_price + sum_j c_j * rival_price_j``
and fits it by ordinary least squares on observed (prices, profit / price)
rows. The model is fitted once on the random initialization window and then
refitted from scratch every ``refit_every`` periods on a fresh uniform
minibatch from the whole history. Between refits the model does not change.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..config import get_settings
from ..validation import (
    ConfigurationError,
    NumericalError,
    StateError,
    validate_positive,
)
from .base import ObservationLog
from .exploration import ExplorationScheduler, select_arm


@dataclass
class LinearBanditParams:
    """Hyper-parameters for the linear contextual bandit."""

    decay: float = field(default_factory=lambda: get_settings().bandit_decay)
    init_periods: int = 100
    refit_every: int = 500
    batch_size: int = 500

    def __post_init__(self) -> None:
        """Validate schedule and sample sizes."""
        validate_positive("Exploration decay", self.decay)
        for name in ("init_periods", "refit_every", "batch_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value}"
                )


@dataclass(frozen=True)
class LinearModel:
    """Fitted demand coefficients; refits replace the whole value."""

    intercept: float
    own_slope: float
    rival_slopes: Tuple[float, ...]

    @property
    def coefficients(self) -> np.ndarray:
        return np.array([self.intercept, self.own_slope, *self.rival_slopes])

    def predict_demand(
        self, own_prices: np.ndarray, rival_prices: np.ndarray
    ) -> np.ndarray:
        """Predict demand for each own price, holding rival prices fixed."""
        rival_term = float(np.dot(self.rival_slopes, rival_prices))
        return self.intercept + self.own_slope * np.asarray(own_prices) + rival_term


def fit_linear_demand(
    own_prices: np.ndarray,
    rival_prices: np.ndarray,
    demand: np.ndarray,
    period: Optional[int] = None,
) -> LinearModel:
    """Fit the demand model by ordinary least squares.

    Args:
        own_prices: Own price per observation, shape (m,)
        rival_prices: Rival prices per observation, shape (m, n_rivals)
        demand: Observed demand per observation, shape (m,)
        period: Period of the fit, reported on failure

    Returns:
        The fitted model

    Raises:
        NumericalError: If the design matrix is rank deficient or the fit is
            not finite
    """
    design = np.column_stack([np.ones(len(own_prices)), own_prices, rival_prices])
    if np.linalg.matrix_rank(design) < design.shape[1]:
        raise NumericalError(
            f"Degenerate regression sample: {len(own_prices)} rows do not "
            f"identify {design.shape[1]} coefficients",
            period=period,
        )
    coefficients, *_ = np.linalg.lstsq(design, demand, rcond=None)
    if not np.all(np.isfinite(coefficients)):
        raise NumericalError(
            f"Non-finite regression coefficients {coefficients}", period=period
        )
    return LinearModel(
        intercept=float(coefficients[0]),
        own_slope=float(coefficients[1]),
        rival_slopes=tuple(float(c) for c in coefficients[2:]),
    )


class LinearBanditLearner:
    """Pricing agent that maximises profit under a fitted linear demand model."""

    def __init__(
        self,
        grid: Sequence[float],
        n_agents: int,
        params: LinearBanditParams,
        rng: np.random.Generator,
    ):
        self.grid = np.asarray(grid, dtype=float)
        self.params = params
        self._rng = rng
        self.scheduler = ExplorationScheduler(params.decay)
        self.log = ObservationLog(n_rivals=n_agents - 1)
        self.model: Optional[LinearModel] = None
        self.last_sample_indices = np.empty(0, dtype=np.int64)

        if params.init_periods < n_agents + 1:
            raise ConfigurationError(
                f"init_periods must be at least {n_agents + 1} to identify the "
                f"demand model, got {params.init_periods}"
            )

    def expected_profits(self) -> np.ndarray:
        """Predicted profit of every grid price against rivals' last prices.

        Raises:
            StateError: If the initialization window has not completed
        """
        if self.model is None:
            raise StateError(
                f"Linear model is not fitted: {len(self.log)} of "
                f"{self.params.init_periods} initialization periods observed"
            )
        rival_prices = self.grid[self.log.rivals[-1]]
        return self.grid * self.model.predict_demand(self.grid, rival_prices)

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
        if observed == init:
            self._refit(np.arange(init), t)
        elif observed > init and (observed - init) % self.params.refit_every == 0:
            self._refit(
                self.log.sample_indices(0, self.params.batch_size, self._rng), t
            )

    def _refit(self, rows: np.ndarray, t: int) -> None:
        own_prices = self.grid[self.log.own[rows]]
        rival_prices = self.grid[self.log.rivals[rows]]
        demand = self.log.rewards[rows] / own_prices
        self.model = fit_linear_demand(own_prices, rival_prices, demand, period=t)
        self.last_sample_indices = rows

    def snapshot(self) -> Dict[str, np.ndarray]:
        if self.model is None:
            return {}
        return {"coefficients": self.model.coefficients}
