"""Tests for experiment summary metrics."""

import numpy as np
import pytest

from src.pricesim.games.logit import static_benchmarks
from src.pricesim.models.metrics import (
    best_response_correlation,
    best_response_table,
    profit_gain,
    summarize,
    tail_mean_price,
)
from src.pricesim.runners.runner import ExperimentConfig, ExperimentResult

GRID = [0.3, 0.4, 0.5]


def make_result(prices: np.ndarray, profits: np.ndarray) -> ExperimentResult:
    config = ExperimentConfig(
        "ucb", GRID, 5.0, 5.0, prices.shape[1], max(prices.shape[2], 1), seed=0
    )
    return ExperimentResult(
        config=config,
        replicate_ids=list(range(prices.shape[2])),
        prices=prices,
        profits=profits,
        snapshots=[[{}, {}] for _ in range(prices.shape[2])],
    )


class TestTailMean:
    """Test tail averages of period x replicate tables."""

    def test_tail_mean(self) -> None:
        """Test the per-replicate mean over the final periods."""
        table = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0], [5.0, 50.0]])

        np.testing.assert_allclose(tail_mean_price(table, 2), [4.0, 40.0])
        np.testing.assert_allclose(tail_mean_price(table, 4), [2.75, 27.5])

    @pytest.mark.parametrize("window", [0, 5])
    def test_window_out_of_range(self, window) -> None:
        """Test that the window must fit in the table."""
        with pytest.raises(ValueError, match="Window"):
            tail_mean_price(np.ones((4, 2)), window)


class TestProfitGain:
    """Test the normalised profit gain."""

    def test_endpoints(self) -> None:
        """Test that Nash maps to 0 and collusion to 1."""
        assert profit_gain(0.2, 0.2, 0.3) == pytest.approx(0.0)
        assert profit_gain(0.3, 0.2, 0.3) == pytest.approx(1.0)
        assert profit_gain(0.25, 0.2, 0.3) == pytest.approx(0.5)

    def test_undefined_when_benchmarks_coincide(self) -> None:
        """Test that equal benchmarks raise."""
        with pytest.raises(ValueError, match="undefined"):
            profit_gain(0.2, 0.3, 0.3)


class TestBestResponses:
    """Test best-response tables and their correlation."""

    def test_best_response_table(self) -> None:
        """Test the greedy action per state, lowest index on ties."""
        q_table = np.array(
            [[0.0, 1.0], [2.0, 1.0], [1.0, 1.0], [0.0, 3.0]], dtype=float
        )

        table = best_response_table(q_table, 2, 2)

        np.testing.assert_array_equal(table, [[1, 0], [0, 1]])

    def test_identical_agents_fully_correlated(self) -> None:
        """Test that identical non-constant responses correlate perfectly."""
        rng = np.random.default_rng(3)
        q_table = rng.random((9, 3))

        correlation = best_response_correlation([q_table, q_table.copy()], GRID)

        np.testing.assert_allclose(correlation, np.ones((2, 2)))

    def test_mirrored_agents_negatively_correlated(self) -> None:
        """Test that opposite responses correlate at minus one."""
        q_low = np.tile([1.0, 0.0, 0.0], (9, 1))
        q_low[:4] = [0.0, 0.0, 1.0]
        q_high = np.tile([0.0, 0.0, 1.0], (9, 1))
        q_high[:4] = [1.0, 0.0, 0.0]

        correlation = best_response_correlation([q_low, q_high], GRID)

        assert correlation[0, 1] == pytest.approx(-1.0)

    def test_constant_response_is_nan(self) -> None:
        """Test that a constant best-response function yields NaN."""
        constant = np.tile([0.0, 1.0, 0.0], (9, 1))
        varying = np.random.default_rng(0).random((9, 3))

        correlation = best_response_correlation([constant, varying], GRID)

        assert np.isnan(correlation[0, 1])
        assert np.isnan(correlation[0, 0])
        assert correlation[1, 1] == pytest.approx(1.0)


class TestSummarize:
    """Test experiment summaries."""

    def test_summary_values(self) -> None:
        """Test tail means and gains against hand-built tables."""
        benchmarks = static_benchmarks(GRID, 5.0, 5.0, 2)
        prices = np.full((2, 10, 2), 0.5)
        profits = np.full((2, 10, 2), benchmarks.collusive_profit)
        prices[:, :5] = 0.3

        summary = summarize(make_result(prices, profits), window=5)

        assert summary.tail_prices == [pytest.approx(0.5), pytest.approx(0.5)]
        assert summary.profit_gains[0] == pytest.approx(1.0)
        assert summary.benchmarks.nash_price == pytest.approx(0.4)
        assert summary.n_completed == 2
        assert summary.n_failed == 0

    def test_no_completed_replicates(self) -> None:
        """Test that an empty result summarises to missing values."""
        empty = np.empty((2, 10, 0))

        summary = summarize(make_result(empty, empty.copy()), window=5)

        assert summary.tail_prices == [None, None]
        assert summary.profit_gains == [None, None]
        assert summary.n_completed == 0
