"""Error taxonomy for the pricing simulation.

Configuration problems are raised before any period is simulated. Numerical
and state problems are raised from inside a replicate and abort only that
replicate; the runner records them with the replicate index and period.
"""

from typing import Optional


class SimulationError(Exception):
    """Base class for all simulation errors."""

    pass


class ConfigurationError(SimulationError, ValueError):
    """Raised when an experiment or learner configuration is invalid."""

    pass


class NumericalError(SimulationError, ArithmeticError):
    """Raised when a model fit or estimate produces unusable numbers.

    Carries the period (and, once the runner has seen it, the replicate) in
    which the failure happened.
    """

    def __init__(
        self,
        message: str,
        period: Optional[int] = None,
        replicate: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.period = period
        self.replicate = replicate

    def __reduce__(self):
        return (type(self), (self.message, self.period, self.replicate))

    def __str__(self) -> str:
        context = []
        if self.replicate is not None:
            context.append(f"replicate {self.replicate}")
        if self.period is not None:
            context.append(f"period {self.period}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class StateError(SimulationError, RuntimeError):
    """Raised when a learner is queried before its warm-up has completed."""

    pass
