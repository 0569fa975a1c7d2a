"""
Outcome Engine

Forward-return and drawdown statistics for windows.

Flow:
    Window + forward candles (candle store) → OutcomeResult per horizon
    OutcomeResults across windows → AggregatedOutcome per horizon
"""

from candlewise.outcome_engine.config import OutcomeConfig
from candlewise.outcome_engine.engine import OutcomeEngine, aggregate_results, outcomes_to_frame
from candlewise.outcome_engine.schemas import AggregatedOutcome, OutcomeResult
from candlewise.outcome_engine.statistics import percentile, forward_max_drawdown

__all__ = [
    'OutcomeConfig',
    'OutcomeEngine',
    'aggregate_results',
    'outcomes_to_frame',
    'AggregatedOutcome',
    'OutcomeResult',
    'percentile',
    'forward_max_drawdown',
]
