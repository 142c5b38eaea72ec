"""Analysis of experiment results."""

from .metrics import (
    ExperimentSummary,
    best_response_correlation,
    best_response_table,
    profit_gain,
    summarize,
    tail_mean_price,
)

__all__ = [
    "ExperimentSummary",
    "best_response_correlation",
    "best_response_table",
    "profit_gain",
    "summarize",
    "tail_mean_price",
]
