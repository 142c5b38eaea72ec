"""Logit demand environment for repeated Bertrand pricing.

Each firm's one-shot profit follows a multinomial-logit market-share model with
an outside option of utility zero:

    profit_i = p_i * exp(alpha - beta * p_i) / (1 + sum_j exp(alpha - beta * p_j))

where the sum runs over every firm, including firm i. Marginal cost is zero.
All functions here are pure; they hold no state between calls.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..validation import ConfigurationError, validate_price_grid


@dataclass(frozen=True)
class StaticBenchmarks:
    """Static-game reference points on a price grid.

    The Nash price is the lowest symmetric pure-strategy equilibrium on the
    grid (None if no symmetric equilibrium exists); the collusive price is the
    symmetric grid price that maximises per-firm profit.
    """

    nash_prices: List[float]
    nash_price: Optional[float]
    nash_profit: Optional[float]
    collusive_price: float
    collusive_profit: float


def validate_demand_parameters(alpha: float, beta: float) -> None:
    """Validate logit demand parameters.

    Raises:
        ConfigurationError: If alpha is not finite or beta is not positive
    """
    if not math.isfinite(alpha):
        raise ConfigurationError(f"Demand parameter alpha must be finite, got {alpha}")
    if not math.isfinite(beta) or beta <= 0:
        raise ConfigurationError(f"Demand parameter beta must be positive, got {beta}")


def reward(
    own_price: float, other_prices: Sequence[float], alpha: float, beta: float
) -> float:
    """Calculate one firm's per-period profit.

    Args:
        own_price: Price charged by the firm
        other_prices: Prices charged by every other firm
        alpha: Product quality index (common to all firms)
        beta: Price sensitivity of demand

    Returns:
        The firm's profit for this period
    """
    own_weight = math.exp(alpha - beta * own_price)
    denominator = 1.0 + own_weight
    for price in other_prices:
        denominator += math.exp(alpha - beta * price)
    return own_price * own_weight / denominator


def profit_vector(prices: Sequence[float], alpha: float, beta: float) -> np.ndarray:
    """Calculate every firm's profit for a joint price vector.

    Args:
        prices: One price per firm
        alpha: Product quality index
        beta: Price sensitivity of demand

    Returns:
        Array of profits, aligned with prices
    """
    prices = np.asarray(prices, dtype=float)
    weights = np.exp(alpha - beta * prices)
    return prices * weights / (1.0 + weights.sum())


def static_profit_matrix(
    grid: Sequence[float], alpha: float, beta: float, n_agents: int
) -> np.ndarray:
    """Tabulate one-shot profits over every joint grid price.

    Args:
        grid: Price grid shared by all firms
        alpha: Product quality index
        beta: Price sensitivity of demand
        n_agents: Number of firms in the market

    Returns:
        Array of shape (len(grid),) * n_agents; entry [own, rival_1, ...] is the
        profit of a firm charging grid[own] while rivals charge the other indices
    """
    prices = np.asarray(grid, dtype=float)
    matrix = np.empty((prices.size,) * n_agents)
    for index in np.ndindex(*matrix.shape):
        matrix[index] = reward(
            float(prices[index[0]]),
            [float(prices[j]) for j in index[1:]],
            alpha,
            beta,
        )
    return matrix


def symmetric_nash_prices(
    grid: Sequence[float], alpha: float, beta: float, n_agents: int
) -> List[float]:
    """Find grid prices that are symmetric pure-strategy Nash equilibria."""
    prices = validate_price_grid(grid)
    matrix = static_profit_matrix(prices, alpha, beta, n_agents)
    equilibria = []
    for i in range(prices.size):
        rivals = (i,) * (n_agents - 1)
        deviations = matrix[(slice(None),) + rivals]
        if deviations[i] >= deviations.max():
            equilibria.append(float(prices[i]))
    return equilibria


def collusive_price(
    grid: Sequence[float], alpha: float, beta: float, n_agents: int
) -> float:
    """Find the symmetric grid price that maximises per-firm profit."""
    prices = validate_price_grid(grid)
    symmetric = [reward(p, [p] * (n_agents - 1), alpha, beta) for p in prices]
    return float(prices[int(np.argmax(symmetric))])


def static_benchmarks(
    grid: Sequence[float], alpha: float, beta: float, n_agents: int
) -> StaticBenchmarks:
    """Compute the static Nash and collusive reference points for a grid."""
    validate_demand_parameters(alpha, beta)
    nash = symmetric_nash_prices(grid, alpha, beta, n_agents)
    nash_price = nash[0] if nash else None
    nash_profit = (
        reward(nash_price, [nash_price] * (n_agents - 1), alpha, beta)
        if nash_price is not None
        else None
    )
    monopoly = collusive_price(grid, alpha, beta, n_agents)
    return StaticBenchmarks(
        nash_prices=nash,
        nash_price=nash_price,
        nash_profit=nash_profit,
        collusive_price=monopoly,
        collusive_profit=reward(monopoly, [monopoly] * (n_agents - 1), alpha, beta),
    )
