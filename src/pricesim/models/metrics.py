"""Summary metrics for pricing experiments.

This module provides the analyses consumed downstream of the runner: mean
prices over the final periods, the profit gain relative to the static Nash and
collusive benchmarks, and the correlation between agents' learned
best-response functions.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

import numpy as np

from ..games.logit import StaticBenchmarks, static_benchmarks

if TYPE_CHECKING:
    from ..runners.runner import ExperimentResult


@dataclass
class ExperimentSummary:
    """Per-agent averages over the final window of every completed replicate."""

    window: int
    tail_prices: List[Optional[float]]
    tail_profits: List[Optional[float]]
    profit_gains: List[Optional[float]]
    benchmarks: StaticBenchmarks
    n_completed: int
    n_failed: int


def tail_mean_price(table: np.ndarray, window: int) -> np.ndarray:
    """Mean of the last ``window`` periods of a period x replicate table.

    Args:
        table: Array of shape (n_periods, n_replicates)
        window: Number of final periods to average

    Returns:
        One mean per replicate

    Raises:
        ValueError: If window is not in [1, n_periods]
    """
    n_periods = table.shape[0]
    if not 1 <= window <= n_periods:
        raise ValueError(f"Window {window} must be between 1 and {n_periods}")
    return table[-window:].mean(axis=0)


def profit_gain(profit: float, nash_profit: float, collusive_profit: float) -> float:
    """Normalised profit gain (profit - nash) / (collusive - nash).

    Zero means the static Nash outcome, one means full collusion.

    Raises:
        ValueError: If the Nash and collusive profits coincide
    """
    spread = collusive_profit - nash_profit
    if math.isclose(spread, 0.0, abs_tol=1e-15):
        raise ValueError("Nash and collusive profits coincide; profit gain undefined")
    return (profit - nash_profit) / spread


def best_response_table(
    q_table: np.ndarray, grid_size: int, n_agents: int
) -> np.ndarray:
    """Greedy action index in every state of a Q-table.

    Ties resolve to the lowest index so the result is deterministic.

    Returns:
        Array of shape (grid_size,) * n_agents indexed by (own, rivals...)
    """
    return q_table.argmax(axis=1).reshape((grid_size,) * n_agents)


def best_response_correlation(
    q_tables: Sequence[np.ndarray], grid: Sequence[float]
) -> np.ndarray:
    """Pearson correlation between agents' learned best-response prices.

    Each agent's best-response function maps its state (own last price, rival
    last prices) to the greedy price. Entry (i, j) correlates agent i's and
    agent j's functions over the same state indices. Entries involving a
    constant function are NaN because the correlation is undefined there.

    Args:
        q_tables: One Q-table per agent, shape (len(grid) ** n_agents, len(grid))
        grid: Price grid

    Returns:
        Array of shape (n_agents, n_agents)
    """
    prices = np.asarray(grid, dtype=float)
    n_agents = len(q_tables)
    responses = np.array(
        [
            prices[best_response_table(q, prices.size, n_agents).ravel()]
            for q in q_tables
        ]
    )
    centered = responses - responses.mean(axis=1, keepdims=True)
    norms = np.sqrt((centered**2).sum(axis=1))
    correlation = np.full((n_agents, n_agents), np.nan)
    for i in range(n_agents):
        for j in range(n_agents):
            if norms[i] > 0 and norms[j] > 0:
                correlation[i, j] = centered[i] @ centered[j] / (norms[i] * norms[j])
    return correlation


def summarize(result: "ExperimentResult", window: int) -> ExperimentSummary:
    """Summarise an experiment over its final ``window`` periods.

    Args:
        result: Merged experiment result
        window: Number of final periods to average

    Returns:
        Per-agent tail means and profit gains
    """
    config = result.config
    benchmarks = static_benchmarks(
        config.price_grid, config.alpha, config.beta, config.n_agents
    )
    tail_prices: List[Optional[float]] = []
    tail_profits: List[Optional[float]] = []
    gains: List[Optional[float]] = []
    for agent in range(config.n_agents):
        if result.n_completed == 0:
            tail_prices.append(None)
            tail_profits.append(None)
            gains.append(None)
            continue
        price_means = tail_mean_price(result.price_table(agent), window)
        profit_means = tail_mean_price(result.profit_table(agent), window)
        tail_prices.append(float(price_means.mean()))
        mean_profit = float(profit_means.mean())
        tail_profits.append(mean_profit)
        if benchmarks.nash_profit is None or math.isclose(
            benchmarks.collusive_profit, benchmarks.nash_profit
        ):
            gains.append(None)
        else:
            gains.append(
                profit_gain(
                    mean_profit, benchmarks.nash_profit, benchmarks.collusive_profit
                )
            )
    return ExperimentSummary(
        window=window,
        tail_prices=tail_prices,
        tail_profits=tail_profits,
        profit_gains=gains,
        benchmarks=benchmarks,
        n_completed=result.n_completed,
        n_failed=len(result.failures),
    )
