"""Validation and error types for the pricing simulation."""

from .checks import (
    ensure_finite,
    validate_positive,
    validate_price_grid,
    validate_unit_interval,
)
from .errors import ConfigurationError, NumericalError, SimulationError, StateError

__all__ = [
    "ConfigurationError",
    "NumericalError",
    "SimulationError",
    "StateError",
    "ensure_finite",
    "validate_positive",
    "validate_price_grid",
    "validate_unit_interval",
]
