"""Monte Carlo experiment runner.

Runs independent replicates of the repeated pricing game. Each replicate builds
fresh learners, seeds them from its own child of the experiment seed, plays the
periods strictly in order and records every agent's price and profit. Replicates
share nothing, so they may run sequentially or in worker processes; results are
merged by replicate index and do not depend on the execution order.
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from tqdm import tqdm

from ..config import get_settings
from ..games.logit import profit_vector, validate_demand_parameters
from ..learners import (
    LearnerKind,
    check_params,
    coarsen_grid,
    create_learner,
    default_params,
)
from ..logging import get_logger, log_execution_time, log_replicate_failure
from ..validation import (
    ConfigurationError,
    NumericalError,
    StateError,
    validate_price_grid,
)

logger = get_logger(__name__)

SUPPORTED_AGENT_COUNTS = (2, 3)


@dataclass
class ExperimentConfig:
    """Configuration for one Monte Carlo experiment.

    All validation happens here, before any period is simulated.
    """

    learner: Union[LearnerKind, str]
    grid: Sequence[float]
    alpha: float
    beta: float
    n_periods: int
    n_replicates: int
    n_agents: int = 2
    params: Optional[Any] = None
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate the configuration and fill in defaults from settings."""
        settings = get_settings()
        try:
            self.learner = LearnerKind(self.learner)
        except ValueError:
            valid = ", ".join(kind.value for kind in LearnerKind)
            raise ConfigurationError(
                f"Unknown learner '{self.learner}', expected one of: {valid}"
            )

        self.grid = tuple(float(p) for p in validate_price_grid(self.grid))
        validate_demand_parameters(self.alpha, self.beta)

        if not isinstance(self.n_periods, int) or self.n_periods <= 0:
            raise ConfigurationError(
                f"Number of periods must be a positive integer, got {self.n_periods}"
            )
        if self.n_periods > settings.max_periods:
            raise ConfigurationError(
                f"Number of periods {self.n_periods} exceeds the configured "
                f"maximum {settings.max_periods}"
            )
        if not isinstance(self.n_replicates, int) or self.n_replicates <= 0:
            raise ConfigurationError(
                "Number of replicates must be a positive integer, "
                f"got {self.n_replicates}"
            )
        if self.n_replicates > settings.max_replicates:
            raise ConfigurationError(
                f"Number of replicates {self.n_replicates} exceeds the configured "
                f"maximum {settings.max_replicates}"
            )
        if self.n_agents not in SUPPORTED_AGENT_COUNTS:
            raise ConfigurationError(
                f"Number of agents must be 2 or 3, got {self.n_agents}"
            )

        if self.params is None:
            self.params = default_params(self.learner)
        check_params(self.learner, self.params)

        if self.seed is None:
            self.seed = settings.default_seed
        if self.seed < 0:
            raise ConfigurationError(f"Seed must be non-negative, got {self.seed}")

    @property
    def price_grid(self) -> Tuple[float, ...]:
        """Prices the agents actually charge.

        Equal to ``grid`` unless the learner parameters ask for a coarser grid,
        as the reduced-state Q-learning variant does.
        """
        stride = getattr(self.params, "grid_stride", 1)
        if stride == 1:
            return self.grid
        return tuple(coarsen_grid(self.grid, stride))


@dataclass
class ReplicateFailure:
    """A replicate aborted by a numerical or state error."""

    replicate: int
    period: int
    kind: str
    message: str


@dataclass
class ReplicateResult:
    """Trajectories and terminal learner state of one completed replicate."""

    replicate: int
    prices: np.ndarray  # (n_agents, n_periods)
    profits: np.ndarray  # (n_agents, n_periods)
    snapshots: List[Dict[str, np.ndarray]]


@dataclass
class ExperimentResult:
    """Merged output of every replicate of an experiment.

    ``prices`` and ``profits`` have shape (n_agents, n_periods, n_completed);
    column k belongs to replicate ``replicate_ids[k]``. Aborted replicates
    appear only in ``failures``.
    """

    config: ExperimentConfig
    replicate_ids: List[int]
    prices: np.ndarray
    profits: np.ndarray
    snapshots: List[List[Dict[str, np.ndarray]]]
    failures: List[ReplicateFailure] = field(default_factory=list)

    @property
    def n_completed(self) -> int:
        return len(self.replicate_ids)

    def price_table(self, agent: int) -> np.ndarray:
        """Period x replicate price table for one agent."""
        return self.prices[agent]

    def profit_table(self, agent: int) -> np.ndarray:
        """Period x replicate profit table for one agent."""
        return self.profits[agent]

    def q_tables(self, replicate_position: int) -> List[np.ndarray]:
        """Terminal Q-tables of every agent in one completed replicate."""
        if self.config.learner not in (
            LearnerKind.QLEARNING,
            LearnerKind.QLEARNING_REDUCED,
        ):
            raise ValueError(
                f"Learner '{self.config.learner.value}' does not keep a Q-table"
            )
        return [agent["q_table"] for agent in self.snapshots[replicate_position]]

    def best_response_correlations(self) -> np.ndarray:
        """Cross-agent correlation of learned best responses, per replicate.

        Returns:
            Array of shape (n_completed, n_agents, n_agents)
        """
        from ..models.metrics import best_response_correlation

        return np.array(
            [
                best_response_correlation(self.q_tables(k), self.config.price_grid)
                for k in range(self.n_completed)
            ]
        ).reshape(self.n_completed, self.config.n_agents, self.config.n_agents)


def replicate_generators(
    seed: int, replicate: int, n_agents: int
) -> List[np.random.Generator]:
    """Independent generators for each agent of one replicate.

    The stream depends only on (seed, replicate), never on which other
    replicates ran or in what order.
    """
    sequence = np.random.SeedSequence(seed, spawn_key=(replicate,))
    return [np.random.default_rng(child) for child in sequence.spawn(n_agents)]


def run_replicate(
    config: ExperimentConfig, replicate: int
) -> Union[ReplicateResult, ReplicateFailure]:
    """Play one replicate of the repeated game.

    Within a period every agent selects from state frozen at the end of the
    previous period; only then are profits computed and learners updated.

    Args:
        config: Validated experiment configuration
        replicate: Replicate index, used to derive the random streams

    Returns:
        The replicate's trajectories, or a failure record if a numerical or
        state error aborted it
    """
    grid = np.asarray(config.price_grid)
    n_agents = config.n_agents
    learners = [
        create_learner(
            config.learner,
            config.price_grid,
            n_agents,
            config.alpha,
            config.beta,
            config.params,
            rng,
        )
        for rng in replicate_generators(config.seed, replicate, n_agents)
    ]
    prices = np.empty((n_agents, config.n_periods))
    profits = np.empty((n_agents, config.n_periods))

    t = 0
    try:
        for t in range(config.n_periods):
            choices = [learner.select(t) for learner in learners]
            joint_prices = grid[choices]
            rewards = profit_vector(joint_prices, config.alpha, config.beta)
            for i, learner in enumerate(learners):
                rivals = choices[:i] + choices[i + 1 :]
                learner.update(t, choices[i], rivals, float(rewards[i]))
            prices[:, t] = joint_prices
            profits[:, t] = rewards
    except NumericalError as e:
        e.replicate = replicate
        period = e.period if e.period is not None else t
        logger.debug(f"Replicate aborted: {e}")
        return ReplicateFailure(replicate, period, "numerical", e.message)
    except StateError as e:
        return ReplicateFailure(replicate, t, "state", str(e))

    return ReplicateResult(
        replicate=replicate,
        prices=prices,
        profits=profits,
        snapshots=[learner.snapshot() for learner in learners],
    )


def _replicate_worker(
    args: Tuple[ExperimentConfig, int]
) -> Union[ReplicateResult, ReplicateFailure]:
    """Top-level worker function for multiprocessing (must be picklable)."""
    config, replicate = args
    return run_replicate(config, replicate)


class ExperimentRunner:
    """Runs the replicates of an experiment and merges their results."""

    def __init__(
        self, max_workers: Optional[int] = None, show_progress: Optional[bool] = None
    ):
        """Initialize experiment runner.

        Args:
            max_workers: Worker processes; 1 runs replicates in this process.
                Defaults to the configured value.
            show_progress: Show a progress bar over replicates. Defaults to the
                configured value.
        """
        settings = get_settings()
        self.max_workers = (
            max_workers if max_workers is not None else settings.max_workers
        )
        if self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be at least 1, got {self.max_workers}"
            )
        self.show_progress = (
            show_progress if show_progress is not None else settings.show_progress
        )

    def run(self, config: ExperimentConfig) -> ExperimentResult:
        """Run every replicate of the experiment.

        Args:
            config: Validated experiment configuration

        Returns:
            Merged result; failed replicates are listed in ``failures``

        Raises:
            RuntimeError: If a replicate fails for a reason other than a
                numerical or state error
        """
        operation = (
            f"{config.learner.value} experiment "
            f"({config.n_replicates} replicates x {config.n_periods} periods)"
        )
        with log_execution_time(logger, operation):
            if self.max_workers > 1 and config.n_replicates > 1:
                outcomes = self._run_parallel(config)
            else:
                outcomes = self._run_sequential(config)
        return self._merge(config, outcomes)

    def _run_sequential(
        self, config: ExperimentConfig
    ) -> List[Union[ReplicateResult, ReplicateFailure]]:
        outcomes = []
        for replicate in tqdm(
            range(config.n_replicates),
            desc="Replicates",
            disable=not self.show_progress,
        ):
            try:
                outcomes.append(run_replicate(config, replicate))
            except Exception as e:
                raise RuntimeError(f"Failed to run replicate {replicate}: {e}") from e
        return outcomes

    def _run_parallel(
        self, config: ExperimentConfig
    ) -> List[Union[ReplicateResult, ReplicateFailure]]:
        outcomes = []
        workers = min(self.max_workers, config.n_replicates)
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(_replicate_worker, (config, replicate)): replicate
                for replicate in range(config.n_replicates)
            }
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Replicates",
                disable=not self.show_progress,
            ):
                replicate = futures[future]
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    raise RuntimeError(
                        f"Failed to run replicate {replicate}: {e}"
                    ) from e
        return outcomes

    def _merge(
        self,
        config: ExperimentConfig,
        outcomes: List[Union[ReplicateResult, ReplicateFailure]],
    ) -> ExperimentResult:
        completed = sorted(
            (o for o in outcomes if isinstance(o, ReplicateResult)),
            key=lambda o: o.replicate,
        )
        failures = sorted(
            (o for o in outcomes if isinstance(o, ReplicateFailure)),
            key=lambda o: o.replicate,
        )
        for failure in failures:
            log_replicate_failure(logger, failure)

        shape = (config.n_agents, config.n_periods, len(completed))
        prices = np.empty(shape)
        profits = np.empty(shape)
        for k, outcome in enumerate(completed):
            prices[:, :, k] = outcome.prices
            profits[:, :, k] = outcome.profits

        if failures:
            logger.warning(
                f"{len(failures)} of {config.n_replicates} replicates aborted"
            )
        return ExperimentResult(
            config=config,
            replicate_ids=[o.replicate for o in completed],
            prices=prices,
            profits=profits,
            snapshots=[o.snapshots for o in completed],
            failures=failures,
        )


def run_experiment(
    config: ExperimentConfig, max_workers: Optional[int] = None
) -> ExperimentResult:
    """Convenience function to run an experiment with a default runner.

    Args:
        config: Validated experiment configuration
        max_workers: Worker processes (defaults to the configured value)

    Returns:
        Merged experiment result
    """
    return ExperimentRunner(max_workers=max_workers).run(config)
