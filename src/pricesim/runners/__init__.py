"""Experiment orchestration for the pricing simulation."""

from .runner import (
    ExperimentConfig,
    ExperimentResult,
    ExperimentRunner,
    ReplicateFailure,
    ReplicateResult,
    replicate_generators,
    run_experiment,
    run_replicate,
)

__all__ = [
    "ExperimentConfig",
    "ExperimentResult",
    "ExperimentRunner",
    "ReplicateFailure",
    "ReplicateResult",
    "replicate_generators",
    "run_experiment",
    "run_replicate",
]
