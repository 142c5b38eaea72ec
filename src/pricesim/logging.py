"""Simple logging configuration for the pricing simulation."""

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator

from .config import get_settings

if TYPE_CHECKING:
    from .runners.runner import ReplicateFailure


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(get_settings().log_level.upper())
    return logger


@contextmanager
def log_execution_time(
    logger: logging.Logger, operation: str
) -> Generator[None, None, None]:
    """Context manager to log execution time of operations."""
    start_time = time.time()
    logger.info(f"Starting {operation}")
    try:
        yield
    except Exception as e:
        logger.error(f"Error in {operation}: {e}")
        raise
    finally:
        duration = time.time() - start_time
        logger.info(f"Completed {operation} in {duration:.3f}s")


def log_replicate_failure(
    logger: logging.Logger, failure: "ReplicateFailure"
) -> None:
    """Report an aborted replicate without stopping the experiment."""
    logger.error(
        f"Replicate {failure.replicate} aborted at period {failure.period} "
        f"({failure.kind}): {failure.message}"
    )
