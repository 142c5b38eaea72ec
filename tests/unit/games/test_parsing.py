"""Tests for CLI price parsing helpers."""

import pytest

from src.pricesim.games._parsing import parse_prices


class TestParsePrices:
    """Test parse_prices."""

    def test_parses_comma_separated(self) -> None:
        """Test that spaces and a trailing comma are tolerated."""
        assert parse_prices("0.3, 0.4,0.5,") == [0.3, 0.4, 0.5]

    def test_empty_rejected(self) -> None:
        """Test that blank input raises ValueError."""
        with pytest.raises(ValueError):
            parse_prices("  ")

    def test_garbage_rejected(self) -> None:
        """Test that non-numeric input raises ValueError."""
        with pytest.raises(ValueError, match="Invalid prices format"):
            parse_prices("0.3,abc")
