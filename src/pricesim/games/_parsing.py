"""CLI string-parsing helpers for pricing simulation inputs."""

from typing import List


def parse_prices(prices_str: str) -> List[float]:
    """Parse comma-separated prices string into list of floats.

    Args:
        prices_str: Comma-separated string of prices (e.g., "0.3,0.4,0.5")

    Returns:
        List of parsed price values

    Raises:
        ValueError: If parsing fails or the list is empty
    """
    if not prices_str.strip():
        raise ValueError("Prices list cannot be empty")

    try:
        prices = [float(x.strip()) for x in prices_str.split(",") if x.strip()]
        if not prices:
            raise ValueError("Prices list cannot be empty")
        return prices
    except ValueError as e:
        raise ValueError(f"Invalid prices format '{prices_str}': {e}")
