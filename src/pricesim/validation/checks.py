"""Validation helpers shared by configuration and learner code."""

import math
from typing import Optional, Sequence

import numpy as np

from .errors import ConfigurationError, NumericalError


def validate_price_grid(grid: Sequence[float]) -> np.ndarray:
    """Validate a price grid and return it as a float array.

    Args:
        grid: Candidate prices

    Returns:
        The grid as a 1-D float array

    Raises:
        ConfigurationError: If the grid has fewer than two prices, contains
            non-finite or non-positive values, or is not strictly increasing
    """
    prices = np.asarray(grid, dtype=float)
    if prices.ndim != 1 or prices.size < 2:
        raise ConfigurationError(
            f"Price grid must contain at least two prices, got {list(prices.ravel())}"
        )
    if not np.all(np.isfinite(prices)):
        raise ConfigurationError("Price grid must contain only finite prices")
    if np.any(prices <= 0):
        raise ConfigurationError("Price grid must contain only positive prices")
    if np.any(np.diff(prices) <= 0):
        raise ConfigurationError(
            f"Price grid must be strictly increasing, got {list(prices)}"
        )
    return prices


def validate_positive(name: str, value: float) -> None:
    """Raise ConfigurationError unless value is a finite positive number."""
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


def validate_unit_interval(name: str, value: float, include_zero: bool = True) -> None:
    """Raise ConfigurationError unless value lies in [0, 1] (or (0, 1])."""
    lower_ok = value >= 0 if include_zero else value > 0
    if not (lower_ok and value <= 1):
        bracket = "[0, 1]" if include_zero else "(0, 1]"
        raise ConfigurationError(f"{name} must be in {bracket}, got {value}")


def ensure_finite(
    name: str, *arrays: np.ndarray, period: Optional[int] = None
) -> None:
    """Raise NumericalError if any of the arrays holds NaN or infinity."""
    for array in arrays:
        if not np.all(np.isfinite(array)):
            raise NumericalError(f"Non-finite values in {name}", period=period)
