"""Tests for the error taxonomy and validation helpers."""

import pickle

import numpy as np
import pytest

from src.pricesim.validation import (
    ConfigurationError,
    NumericalError,
    SimulationError,
    StateError,
    ensure_finite,
    validate_positive,
    validate_price_grid,
)


class TestErrorTypes:
    """Test error hierarchy and context."""

    def test_hierarchy(self) -> None:
        """Test that every error is a SimulationError with a builtin base."""
        assert issubclass(ConfigurationError, SimulationError)
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(NumericalError, ArithmeticError)
        assert issubclass(StateError, RuntimeError)

    def test_numerical_error_context(self) -> None:
        """Test that period and replicate appear in the message."""
        error = NumericalError("Degenerate sample", period=12, replicate=4)

        assert "replicate 4" in str(error)
        assert "period 12" in str(error)
        assert error.message == "Degenerate sample"

    def test_numerical_error_pickles(self) -> None:
        """Test that context survives a round trip through a worker process."""
        error = pickle.loads(pickle.dumps(NumericalError("bad fit", period=5)))

        assert error.period == 5
        assert error.message == "bad fit"


class TestPriceGridValidation:
    """Test price grid validation."""

    def test_valid_grid(self) -> None:
        """Test that a strictly increasing grid is returned as an array."""
        grid = validate_price_grid([0.3, 0.4, 0.5])

        assert isinstance(grid, np.ndarray)
        assert list(grid) == [0.3, 0.4, 0.5]

    @pytest.mark.parametrize(
        "grid",
        [
            [0.5, 0.4, 0.3],
            [0.3, 0.3, 0.5],
            [0.4],
            [],
            [0.0, 0.4],
            [-0.1, 0.4],
            [0.3, float("nan")],
            [0.3, float("inf")],
        ],
    )
    def test_invalid_grids(self, grid) -> None:
        """Test that non-monotonic, short or non-positive grids are rejected."""
        with pytest.raises(ConfigurationError):
            validate_price_grid(grid)


class TestHelpers:
    """Test the scalar and array checks."""

    def test_validate_positive(self) -> None:
        """Test that zero, negatives and NaN are rejected."""
        validate_positive("decay", 1e-6)
        for value in (0.0, -1.0, float("nan")):
            with pytest.raises(ConfigurationError):
                validate_positive("decay", value)

    def test_ensure_finite(self) -> None:
        """Test that NaN and infinity raise NumericalError with the period."""
        ensure_finite("weights", np.ones(3), np.zeros(2))

        with pytest.raises(NumericalError) as info:
            ensure_finite("weights", np.array([1.0, np.nan]), period=7)
        assert info.value.period == 7

        with pytest.raises(NumericalError):
            ensure_finite("weights", np.array([np.inf]))
