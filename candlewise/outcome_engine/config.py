"""
Outcome Engine Configuration

Forward horizons and lookahead bounds for outcome statistics.
"""

from dataclasses import dataclass, field
from typing import List

from candlewise.errors import ConfigurationError


@dataclass
class OutcomeConfig:
    """
    Forward outcome parameters.

    lookahead_days caps the forward range query; it must comfortably exceed
    the longest horizon for the timeframe in use.
    """

    # Forward horizons in bars
    horizons: List[int] = field(default_factory=lambda: [5, 20, 60])

    # Upper bound of the forward candle query
    lookahead_days: float = 30.0

    # Re-raise store failures instead of logging and skipping the window
    fail_on_store_error: bool = False

    # Count unresolved (partial) results when aggregating
    include_partial_in_aggregate: bool = False

    def validate(self):
        if not self.horizons:
            raise ConfigurationError("At least one horizon is required")
        bad = [h for h in self.horizons if h <= 0]
        if bad:
            raise ConfigurationError(f"Horizons must be positive, got {bad}")
        if self.lookahead_days <= 0:
            raise ConfigurationError(
                f"lookahead_days must be positive, got {self.lookahead_days}"
            )

    def to_dict(self) -> dict:
        return {
            'horizons': list(self.horizons),
            'lookahead_days': self.lookahead_days,
            'fail_on_store_error': self.fail_on_store_error,
            'include_partial_in_aggregate': self.include_partial_in_aggregate,
        }
