"""
Outcome Engine

Forward-looking statistics for windows, computed from candles observed
after each window's end.

For each (window, horizon):
    1. Fetch candles in (t_end, t_end + lookahead] from the candle store
    2. Fewer than `horizon` candles → partial result (count only)
    3. Otherwise take the first `horizon` candles and report mean,
       p10/p50/p90 forward return and forward max drawdown

A partial result means "not yet resolvable", never an error.
"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional
import logging

import pandas as pd

from candlewise.outcome_engine.config import OutcomeConfig
from candlewise.outcome_engine.schemas import AggregatedOutcome, OutcomeResult
from candlewise.outcome_engine.statistics import (
    forward_max_drawdown,
    forward_returns,
    mean,
    percentile,
)
from candlewise.window_engine.schemas import Candle, Window

LOG = logging.getLogger(__name__)


class OutcomeEngine:
    """
    Compute forward outcome statistics.

    The candle store is any object exposing
    get_by_time_range(symbol, timeframe, start, end) -> List[Candle]
    ordered oldest first.
    """

    def __init__(self, candle_store, config: Optional[OutcomeConfig] = None):
        self.candle_store = candle_store
        self.config = config or OutcomeConfig()
        self.config.validate()

    def calculate(
        self,
        windows: Iterable[Window],
        horizons: Optional[List[int]] = None
    ) -> List[OutcomeResult]:
        """
        Outcome statistics for every (window, horizon) pair.

        Windows without candles or with a zero base price produce no results.
        """
        horizons = list(horizons) if horizons is not None else list(self.config.horizons)
        results: List[OutcomeResult] = []
        window_count = 0

        for window in windows:
            window_count += 1
            last = window.last_candle
            if last is None:
                continue

            base_price = last.close
            if base_price == 0:
                LOG.warning(f"Zero base price, skipping window {window.window_id}")
                continue

            forward = self.fetch_forward_candles(window)
            if forward is None:
                continue

            for horizon in horizons:
                results.append(self.calculate_single(window.window_id, horizon, base_price, forward))

        LOG.info(f"Computed {len(results)} outcomes for {window_count} windows "
                 f"(horizons={horizons})")
        return results

    def fetch_forward_candles(self, window: Window) -> Optional[List[Candle]]:
        """
        Candles closing strictly after the window end, within the lookahead.

        Returns None when the store fails and failures are not fatal.
        """
        start = window.t_end
        end = start + timedelta(days=self.config.lookahead_days)
        try:
            candles = self.candle_store.get_by_time_range(
                window.symbol, window.timeframe, start, end
            )
        except Exception as e:
            if self.config.fail_on_store_error:
                raise
            LOG.error(f"Forward candle query failed for {window.window_id}: {e}")
            return None

        return [c for c in candles if c.close_time > window.t_end]

    @staticmethod
    def calculate_single(
        window_id: str,
        horizon: int,
        base_price: float,
        forward: List[Candle]
    ) -> OutcomeResult:
        """Statistics for one horizon over an already fetched forward slice"""
        if len(forward) < horizon or base_price == 0:
            return OutcomeResult(window_id=window_id, horizon=horizon, fwd_candles=len(forward))

        window_slice = forward[:horizon]
        returns = forward_returns(base_price, window_slice)

        return OutcomeResult(
            window_id=window_id,
            horizon=horizon,
            fwd_ret_mean=mean(returns),
            fwd_ret_p10=percentile(returns, 10),
            fwd_ret_p50=percentile(returns, 50),
            fwd_ret_p90=percentile(returns, 90),
            max_drawdown=forward_max_drawdown(base_price, window_slice),
            fwd_candles=len(window_slice),
        )

    def calculate_for_window_ids(
        self,
        window_ids: Iterable[str],
        window_store,
        horizons: Optional[List[int]] = None
    ) -> List[OutcomeResult]:
        """
        Load windows by id from a window store, then calculate().

        Unknown ids are skipped with a warning.
        """
        windows = []
        for window_id in window_ids:
            window = window_store.get_window(window_id)
            if window is None:
                LOG.warning(f"Window not found: {window_id}")
                continue
            windows.append(window)

        return self.calculate(windows, horizons)

    def aggregate(self, results: Iterable[OutcomeResult]) -> Dict[int, AggregatedOutcome]:
        return aggregate_results(results, include_partial=self.config.include_partial_in_aggregate)


def aggregate_results(
    results: Iterable[OutcomeResult],
    include_partial: bool = False
) -> Dict[int, AggregatedOutcome]:
    """
    Summarise outcomes per horizon.

    mean/p10/p50/p90 are plain averages of the per-window values; the
    drawdown summary is the 95th percentile of per-window max drawdowns.
    Partial results are left out unless include_partial is set.
    """
    by_horizon: Dict[int, List[OutcomeResult]] = defaultdict(list)
    for r in results:
        if not include_partial and not r.is_resolved:
            continue
        by_horizon[r.horizon].append(r)

    aggregated = {}
    for horizon, horizon_results in by_horizon.items():
        aggregated[horizon] = AggregatedOutcome(
            horizon=horizon,
            sample_count=len(horizon_results),
            mean_return=mean([r.fwd_ret_mean for r in horizon_results]),
            p10=mean([r.fwd_ret_p10 for r in horizon_results]),
            p50=mean([r.fwd_ret_p50 for r in horizon_results]),
            p90=mean([r.fwd_ret_p90 for r in horizon_results]),
            mdd_p95=percentile([r.max_drawdown for r in horizon_results], 95),
        )

    return aggregated


def outcomes_to_frame(results: Iterable[OutcomeResult]) -> pd.DataFrame:
    """One row per (window, horizon) outcome"""
    rows = [r.to_dict() for r in results]
    columns = [
        'window_id', 'horizon', 'fwd_ret_mean', 'fwd_ret_p10', 'fwd_ret_p50',
        'fwd_ret_p90', 'max_drawdown', 'fwd_candles', 'is_resolved',
    ]
    return pd.DataFrame(rows, columns=columns)
