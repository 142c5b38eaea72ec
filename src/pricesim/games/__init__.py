"""Market environments for the pricing simulation."""

from .logit import (
    StaticBenchmarks,
    collusive_price,
    profit_vector,
    reward,
    static_benchmarks,
    static_profit_matrix,
    symmetric_nash_prices,
    validate_demand_parameters,
)

__all__ = [
    "StaticBenchmarks",
    "collusive_price",
    "profit_vector",
    "reward",
    "static_benchmarks",
    "static_profit_matrix",
    "symmetric_nash_prices",
    "validate_demand_parameters",
]
