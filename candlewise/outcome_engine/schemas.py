"""
Outcome Schemas

Forward statistics per (window, horizon) and their per-horizon aggregate.
"""

from dataclasses import dataclass


@dataclass
class OutcomeResult:
    """
    Forward statistics for one (window, horizon) pair.

    When fewer than `horizon` forward candles exist the result is partial:
    only fwd_candles is set and every statistic is 0.
    """

    window_id: str
    horizon: int
    fwd_ret_mean: float = 0.0
    fwd_ret_p10: float = 0.0
    fwd_ret_p50: float = 0.0
    fwd_ret_p90: float = 0.0
    max_drawdown: float = 0.0
    fwd_candles: int = 0

    @property
    def is_resolved(self) -> bool:
        return self.fwd_candles >= self.horizon

    def to_dict(self) -> dict:
        return {
            'window_id': self.window_id,
            'horizon': self.horizon,
            'fwd_ret_mean': float(self.fwd_ret_mean),
            'fwd_ret_p10': float(self.fwd_ret_p10),
            'fwd_ret_p50': float(self.fwd_ret_p50),
            'fwd_ret_p90': float(self.fwd_ret_p90),
            'max_drawdown': float(self.max_drawdown),
            'fwd_candles': self.fwd_candles,
            'is_resolved': self.is_resolved,
        }


@dataclass
class AggregatedOutcome:
    """Outcome summary across many windows for one horizon"""

    horizon: int
    sample_count: int
    mean_return: float
    p10: float
    p50: float
    p90: float
    mdd_p95: float

    def to_dict(self) -> dict:
        return {
            'horizon': self.horizon,
            'sample_count': self.sample_count,
            'mean_return': float(self.mean_return),
            'p10': float(self.p10),
            'p50': float(self.p50),
            'p90': float(self.p90),
            'mdd_p95': float(self.mdd_p95),
        }

    def __str__(self) -> str:
        return (
            f"Horizon: {self.horizon} bars | Samples: {self.sample_count} | "
            f"Mean: {self.mean_return:.4f} | P10: {self.p10:.4f} | "
            f"P50: {self.p50:.4f} | P90: {self.p90:.4f} | MDD95: {self.mdd_p95:.4f}"
        )
