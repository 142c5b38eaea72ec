"""Command-line interface for pricing experiments.

Runs one Monte Carlo experiment from command-line arguments and prints a
plain-text summary of the final periods.
"""

import argparse
import sys
from typing import Any, List, Optional

import numpy as np

from .config import get_settings
from .games._parsing import parse_prices
from .learners import LearnerKind, default_params
from .models.metrics import summarize
from .runners.runner import ExperimentConfig, ExperimentRunner
from .validation import ConfigurationError, SimulationError

_Q_KINDS = (LearnerKind.QLEARNING, LearnerKind.QLEARNING_REDUCED)
_BANDIT_KINDS = (LearnerKind.LINEAR, LearnerKind.NEURAL)

# Hyper-parameter flag -> {learner kind: params field}
PARAM_FLAGS = {
    "variance_cap": {LearnerKind.UCB: "variance_cap"},
    "decay": {kind: "decay" for kind in _BANDIT_KINDS + _Q_KINDS},
    "init_periods": {kind: "init_periods" for kind in _BANDIT_KINDS},
    "batch_size": {kind: "batch_size" for kind in _BANDIT_KINDS},
    "refit_every": {LearnerKind.LINEAR: "refit_every"},
    "learning_rate": {
        LearnerKind.NEURAL: "learning_rate",
        **{kind: "alpha" for kind in _Q_KINDS},
    },
    "discount": {kind: "gamma" for kind in _Q_KINDS},
    "grid_stride": {kind: "grid_stride" for kind in _Q_KINDS},
}


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the ``pricesim`` command."""
    parser = argparse.ArgumentParser(
        description="Run repeated pricing games between self-learning algorithms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pricesim --learner ucb --grid 0.3,0.4,0.5 --alpha 5 --beta 5 --periods 10000
  pricesim --learner qlearning --grid 0.3,0.4,0.5 --periods 20000 --replicates 8
        """,
    )

    parser.add_argument(
        "--learner",
        choices=[kind.value for kind in LearnerKind],
        required=True,
        help="Pricing algorithm used by every agent",
    )
    parser.add_argument(
        "--grid",
        type=str,
        required=True,
        help="Comma-separated price grid (e.g., '0.3,0.4,0.5')",
    )
    parser.add_argument(
        "--alpha", type=float, default=5.0, help="Logit demand quality index"
    )
    parser.add_argument(
        "--beta", type=float, default=5.0, help="Logit demand price sensitivity"
    )
    parser.add_argument(
        "--periods", type=int, required=True, help="Periods per replicate"
    )
    parser.add_argument(
        "--replicates", type=int, default=1, help="Monte Carlo replicates"
    )
    parser.add_argument(
        "--agents", type=int, default=2, choices=[2, 3], help="Number of firms"
    )
    parser.add_argument("--seed", type=int, default=None, help="Experiment seed")
    parser.add_argument(
        "--workers", type=int, default=None, help="Worker processes for replicates"
    )
    parser.add_argument(
        "--window",
        type=int,
        default=None,
        help="Final periods to summarise (default: last 10%% of periods)",
    )

    tuning = parser.add_argument_group(
        "learner hyper-parameters",
        "Unset flags keep the learner defaults; a flag the chosen learner does "
        "not use is an error.",
    )
    tuning.add_argument("--variance-cap", type=float, help="UCB1-Tuned variance cap")
    tuning.add_argument("--decay", type=float, help="Exploration decay k in exp(-k t)")
    tuning.add_argument(
        "--init-periods", type=int, help="Random initialization periods (bandits)"
    )
    tuning.add_argument("--batch-size", type=int, help="Minibatch size (bandits)")
    tuning.add_argument("--refit-every", type=int, help="Periods between linear refits")
    tuning.add_argument(
        "--learning-rate", type=float, help="Neural step size, or Q-learning rate"
    )
    tuning.add_argument("--discount", type=float, help="Q-learning discount factor")
    tuning.add_argument(
        "--grid-stride", type=int, help="Q-learning keeps every n-th grid price"
    )
    return parser


def _format(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.4f}"


def build_learner_params(kind: LearnerKind, args: argparse.Namespace) -> Any:
    """Map hyper-parameter flags onto the learner's parameter dataclass.

    Returns:
        Parameters with the given overrides, or None when no flag is set

    Raises:
        ConfigurationError: If a flag does not apply to the learner
    """
    overrides = {}
    for name, fields in PARAM_FLAGS.items():
        value = getattr(args, name)
        if value is None:
            continue
        if kind not in fields:
            flag = "--" + name.replace("_", "-")
            raise ConfigurationError(
                f"{flag} does not apply to learner '{kind.value}'"
            )
        overrides[fields[kind]] = value
    if not overrides:
        return None
    return default_params(kind, **overrides)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        kind = LearnerKind(args.learner)
        config = ExperimentConfig(
            learner=kind,
            grid=parse_prices(args.grid),
            alpha=args.alpha,
            beta=args.beta,
            n_periods=args.periods,
            n_replicates=args.replicates,
            n_agents=args.agents,
            params=build_learner_params(kind, args),
            seed=args.seed,
        )
        window = args.window or max(1, config.n_periods // 10)
        result = ExperimentRunner(max_workers=args.workers).run(config)
        summary = summarize(result, window)
    except (SimulationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    settings = get_settings()
    print(f"{settings.app_name} {settings.version}")
    print(
        f"learner={config.learner.value} agents={config.n_agents} "
        f"periods={config.n_periods} replicates={config.n_replicates} "
        f"seed={config.seed}"
    )
    print(
        f"nash_price={_format(summary.benchmarks.nash_price)} "
        f"collusive_price={_format(summary.benchmarks.collusive_price)}"
    )
    for agent in range(config.n_agents):
        print(
            f"agent_{agent}: price={_format(summary.tail_prices[agent])} "
            f"profit={_format(summary.tail_profits[agent])} "
            f"gain={_format(summary.profit_gains[agent])}"
        )
    print(f"completed={summary.n_completed} failed={summary.n_failed}")
    for failure in result.failures:
        print(
            f"failure: replicate={failure.replicate} period={failure.period} "
            f"kind={failure.kind} message={failure.message}"
        )

    if config.learner in (LearnerKind.QLEARNING, LearnerKind.QLEARNING_REDUCED):
        if result.n_completed:
            correlations = result.best_response_correlations()
            off_diagonal = correlations[:, 0, 1]
            defined = off_diagonal[~np.isnan(off_diagonal)]
            mean = float(defined.mean()) if defined.size else None
            print(f"best_response_corr={_format(mean)}")


if __name__ == "__main__":
    main()
