"""Tests for the neural-network contextual bandit."""

import numpy as np
import pytest

from src.pricesim.games.logit import reward
from src.pricesim.learners.neural import (
    NeuralBanditLearner,
    NeuralBanditParams,
    NeuralNet,
    encode_context,
    logistic,
)
from src.pricesim.validation import ConfigurationError, NumericalError, StateError

GRID = [0.3, 0.4, 0.5]


def make_learner(seed: int = 0, **overrides) -> NeuralBanditLearner:
    params = NeuralBanditParams(
        **{"init_periods": 20, "batch_size": 16, "max_epochs": 500, **overrides}
    )
    return NeuralBanditLearner(GRID, 2, params, np.random.default_rng(seed))


def play(learner: NeuralBanditLearner, periods: int, seed: int = 99):
    """Drive a learner against a uniformly random rival; yield after each period."""
    rival_rng = np.random.default_rng(seed)
    for t in range(periods):
        own = learner.select(t)
        rival = int(rival_rng.integers(len(GRID)))
        learner.update(t, own, [rival], reward(GRID[own], [GRID[rival]], 5.0, 5.0))
        yield t


class TestEncoding:
    """Test the one-hot context."""

    def test_rival_block_then_own_block(self) -> None:
        """Test the layout (rival price, own price) over the grid."""
        encoded = encode_context(np.array([2, 0]), np.array([[0], [1]]), 3)

        np.testing.assert_array_equal(
            encoded, [[1, 0, 0, 0, 0, 1], [0, 1, 0, 1, 0, 0]]
        )

    def test_three_agent_width(self) -> None:
        """Test that each agent contributes one block."""
        encoded = encode_context(np.array([1]), np.array([[0, 2]]), 3)

        assert encoded.shape == (1, 9)
        assert encoded.sum() == 3


class TestNetwork:
    """Test the forward pass and the manual gradient step."""

    def test_logistic_is_stable(self) -> None:
        """Test the logistic function at moderate and extreme inputs."""
        np.testing.assert_allclose(logistic(np.array([0.0])), [0.5])
        values = logistic(np.array([-1000.0, 1000.0]))
        assert values[0] == pytest.approx(0.0)
        assert values[1] == pytest.approx(1.0)

    def test_gradient_matches_finite_differences(self) -> None:
        """Test the analytic gradient of the summed half squared error."""
        rng = np.random.default_rng(4)
        net = NeuralNet.initialize(6, 0.5, rng)
        inputs = encode_context(
            rng.integers(3, size=8), rng.integers(3, size=(8, 1)), 3
        )
        targets = rng.uniform(0.1, 0.3, size=8)

        def total_loss(
            hidden_weights: np.ndarray, output_bias: float = 0.0
        ) -> float:
            candidate = NeuralNet(
                hidden_weights, net.hidden_bias, net.output_weights, output_bias
            )
            return 0.5 * float(np.sum((candidate.predict(inputs) - targets) ** 2))

        stepped = net.gradient_step(inputs, targets, 1.0)
        analytic = net.hidden_weights - stepped.hidden_weights
        eps = 1e-6
        for unit, column in [(0, 0), (1, 4), (0, 5)]:
            bumped_up = net.hidden_weights.copy()
            bumped_up[unit, column] += eps
            bumped_down = net.hidden_weights.copy()
            bumped_down[unit, column] -= eps
            numeric = (total_loss(bumped_up) - total_loss(bumped_down)) / (2 * eps)
            assert analytic[unit, column] == pytest.approx(numeric, rel=1e-5, abs=1e-9)

        numeric_bias = (
            total_loss(net.hidden_weights, eps) - total_loss(net.hidden_weights, -eps)
        ) / (2 * eps)
        assert net.output_bias - stepped.output_bias == pytest.approx(numeric_bias)

    def test_gradient_step_leaves_original_unchanged(self) -> None:
        """Test that a step returns new weights instead of mutating."""
        rng = np.random.default_rng(5)
        net = NeuralNet.initialize(6, 0.5, rng)
        before = net.hidden_weights.copy()
        inputs = encode_context(np.array([0, 1]), np.array([[1], [2]]), 3)

        stepped = net.gradient_step(inputs, np.array([0.2, 0.1]), 0.1)

        np.testing.assert_array_equal(net.hidden_weights, before)
        assert stepped is not net

    def test_small_steps_reduce_loss(self) -> None:
        """Test that repeated steps decrease the training loss."""
        rng = np.random.default_rng(6)
        net = NeuralNet.initialize(6, 0.5, rng)
        inputs = encode_context(
            rng.integers(3, size=30), rng.integers(3, size=(30, 1)), 3
        )
        targets = rng.uniform(0.1, 0.3, size=30)
        initial = net.loss(inputs, targets)

        for _ in range(200):
            net = net.gradient_step(inputs, targets, 0.5 / 30)

        assert net.loss(inputs, targets) < initial


class TestLearner:
    """Test the learner's fit schedule, sampling and caching."""

    def test_estimates_unavailable_before_fit(self) -> None:
        """Test that the payoff table does not exist during initialization."""
        learner = make_learner()
        for t in play(learner, 19):
            pass

        assert learner.payoff_table is None
        with pytest.raises(StateError):
            learner.expected_profits()

    def test_initial_fit_on_window(self) -> None:
        """Test that the initial fit happens when the window completes."""
        learner = make_learner()
        for t in play(learner, 20):
            pass

        assert learner.fitted
        assert list(learner.last_sample_indices) == list(range(20))
        assert learner.payoff_table.shape == (3, 3)

    def test_minibatches_exclude_window_and_future(self) -> None:
        """Test that per-period samples come from [window end, t] only."""
        learner = make_learner()

        for t in play(learner, 80):
            if t >= 20:
                rows = learner.last_sample_indices
                assert rows.min() >= 20
                assert rows.max() <= t
                assert len(rows) == min(16, t - 19)

    def test_payoff_table_recomputed_every_update(self) -> None:
        """Test that each update replaces both the weights and the cached table."""
        learner = make_learner()
        tables = []
        networks = []
        for t in play(learner, 30):
            if t >= 20:
                tables.append(learner.payoff_table)
                networks.append(learner.network)

        assert len({id(table) for table in tables}) == len(tables)
        assert len({id(net) for net in networks}) == len(networks)
        np.testing.assert_allclose(
            tables[-1].ravel(), learner.network.predict(learner._table_inputs)
        )

    def test_step_size_scaled_by_batch(self) -> None:
        """Test that turning off batch scaling changes the update."""
        scaled = make_learner(seed=1)
        unscaled = make_learner(seed=1, scale_by_batch=False)
        for _ in zip(play(scaled, 25), play(unscaled, 25)):
            pass

        assert not np.allclose(
            scaled.network.hidden_weights, unscaled.network.hidden_weights
        )

    def test_non_finite_reward_aborts(self) -> None:
        """Test that a NaN observation surfaces as a numerical error."""
        learner = make_learner()
        for t in play(learner, 19):
            pass

        with pytest.raises(NumericalError) as info:
            learner.update(19, 0, [0], float("nan"))
        assert info.value.period == 19

    def test_selection_reads_rival_column(self) -> None:
        """Test that estimates are the table column of the rival's last price."""
        learner = make_learner()
        for t in play(learner, 25):
            pass

        rival_last = int(learner.log.rivals[-1][0])
        np.testing.assert_array_equal(
            learner.expected_profits(), learner.payoff_table[:, rival_last]
        )

    def test_snapshot_keys(self) -> None:
        """Test that the terminal weights are exported."""
        snapshot = make_learner().snapshot()

        assert snapshot["hidden_weights"].shape == (2, 6)
        assert snapshot["output_weights"].shape == (2,)


class TestParams:
    """Test hyper-parameter validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"decay": 0.0},
            {"learning_rate": -0.1},
            {"batch_size": 0},
            {"init_periods": 0},
            {"tolerance": -1.0},
        ],
    )
    def test_invalid_params(self, kwargs) -> None:
        """Test that invalid hyper-parameters are configuration errors."""
        with pytest.raises(ConfigurationError):
            NeuralBanditParams(**kwargs)
