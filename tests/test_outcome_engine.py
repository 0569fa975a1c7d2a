"""
Test suite for the outcome engine: percentiles, forward drawdown,
per-window outcomes and per-horizon aggregation.

Run: pytest tests/test_outcome_engine.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from candlewise.errors import ConfigurationError, StorageError
from candlewise.outcome_engine.config import OutcomeConfig
from candlewise.outcome_engine.engine import (
    OutcomeEngine,
    aggregate_results,
    outcomes_to_frame,
)
from candlewise.outcome_engine.schemas import OutcomeResult
from candlewise.outcome_engine.statistics import forward_max_drawdown, percentile
from candlewise.storage.candle_store import InMemoryCandleStore
from candlewise.window_engine.schemas import Candle, Window


BASE_TIME = datetime(2025, 3, 1, tzinfo=timezone.utc)


def make_candle(i, close, high=None, low=None):
    open_time = BASE_TIME + timedelta(minutes=i)
    return Candle(
        symbol="BTCUSDT",
        timeframe="1m",
        open_time=open_time,
        close_time=open_time + timedelta(minutes=1),
        open=close,
        high=close if high is None else high,
        low=close if low is None else low,
        close=close,
        volume=1.0,
    )


def window_from(candles):
    return Window.create("BTCUSDT", "1m", candles[-1].close_time, len(candles), 1, candles)


@pytest.fixture
def history():
    """3 window candles closing at 100, then 5 forward candles"""
    window_candles = [make_candle(i, 100.0) for i in range(3)]
    forward_closes = [101.0, 99.0, 102.0, 104.0, 98.0]
    forward = [make_candle(3 + i, c) for i, c in enumerate(forward_closes)]
    return window_candles, forward


@pytest.fixture
def store(history):
    s = InMemoryCandleStore()
    window_candles, forward = history
    s.insert_candles(window_candles + forward)
    return s


# ============================================================================
# STATISTICS
# ============================================================================

class TestPercentile:

    def test_median_odd(self):
        assert percentile([1, 2, 3, 4, 5], 50) == 3

    def test_median_interpolated(self):
        assert percentile([1, 2], 50) == 1.5

    def test_unsorted_input(self):
        assert percentile([5, 1, 4, 2, 3], 50) == 3

    def test_single_value(self):
        assert percentile([7.5], 10) == 7.5
        assert percentile([7.5], 90) == 7.5

    def test_empty(self):
        assert percentile([], 50) == 0.0

    def test_interpolation(self):
        # rank = 0.1 * 4 = 0.4
        assert percentile([10, 20, 30, 40, 50], 10) == pytest.approx(14.0)
        assert percentile([10, 20, 30, 40, 50], 90) == pytest.approx(46.0)

    def test_extremes(self):
        assert percentile([3, 1, 2], 0) == 1
        assert percentile([3, 1, 2], 100) == 3


class TestForwardDrawdown:

    def test_peak_seeded_at_base(self):
        candles = [make_candle(0, 95.0, high=96.0, low=90.0)]
        assert forward_max_drawdown(100.0, candles) == pytest.approx(0.10)

    def test_peak_follows_highs(self):
        candles = [
            make_candle(0, 110.0, high=120.0, low=105.0),
            make_candle(1, 100.0, high=101.0, low=90.0),
        ]
        assert forward_max_drawdown(100.0, candles) == pytest.approx(0.25)

    def test_no_drawdown(self):
        candles = [make_candle(i, 100.0 + i) for i in range(5)]
        assert forward_max_drawdown(100.0, candles) == 0.0

    def test_degenerate(self):
        assert forward_max_drawdown(100.0, []) == 0.0
        assert forward_max_drawdown(0.0, [make_candle(0, 1.0)]) == 0.0


# ============================================================================
# ENGINE
# ============================================================================

class TestOutcomeEngine:

    def test_invalid_config(self, store):
        with pytest.raises(ConfigurationError):
            OutcomeEngine(store, OutcomeConfig(horizons=[0]))
        with pytest.raises(ConfigurationError):
            OutcomeEngine(store, OutcomeConfig(lookahead_days=0))

    def test_full_horizon(self, store, history):
        window_candles, _ = history
        engine = OutcomeEngine(store)
        results = engine.calculate([window_from(window_candles)], horizons=[3])

        assert len(results) == 1
        r = results[0]
        # forward returns: 0.01, -0.01, 0.02
        assert r.is_resolved
        assert r.fwd_candles == 3
        assert r.fwd_ret_mean == pytest.approx(0.02 / 3)
        assert r.fwd_ret_p50 == pytest.approx(0.01)
        assert r.fwd_ret_p10 == pytest.approx(-0.01 + 0.2 * 0.02)
        assert r.fwd_ret_p90 == pytest.approx(0.01 + 0.8 * 0.01)
        assert r.max_drawdown == pytest.approx((101.0 - 99.0) / 101.0)

    def test_partial_result_when_not_enough_candles(self, store, history):
        window_candles, forward = history
        engine = OutcomeEngine(store)
        results = engine.calculate([window_from(window_candles)], horizons=[20])

        r = results[0]
        assert not r.is_resolved
        assert r.fwd_candles == len(forward)
        assert r.fwd_ret_mean == 0.0
        assert r.fwd_ret_p10 == 0.0
        assert r.fwd_ret_p50 == 0.0
        assert r.fwd_ret_p90 == 0.0
        assert r.max_drawdown == 0.0

    def test_one_result_per_horizon(self, store, history):
        window_candles, _ = history
        engine = OutcomeEngine(store, OutcomeConfig(horizons=[1, 5, 60]))
        results = engine.calculate([window_from(window_candles)])
        assert [r.horizon for r in results] == [1, 5, 60]
        assert [r.is_resolved for r in results] == [True, True, False]

    def test_window_candles_are_not_forward(self, history):
        window_candles, _ = history
        s = InMemoryCandleStore()
        s.insert_candles(window_candles)
        engine = OutcomeEngine(s)
        results = engine.calculate([window_from(window_candles)], horizons=[1])
        assert results[0].fwd_candles == 0

    def test_lookahead_bounds_query(self, history):
        window_candles, _ = history
        far = make_candle(3 + 60 * 24 * 40, 120.0)
        s = InMemoryCandleStore()
        s.insert_candles(window_candles + [far])
        engine = OutcomeEngine(s, OutcomeConfig(lookahead_days=30))
        results = engine.calculate([window_from(window_candles)], horizons=[1])
        assert results[0].fwd_candles == 0

    def test_zero_base_price_skipped(self, store):
        candles = [make_candle(i, 0.0) for i in range(3)]
        engine = OutcomeEngine(store)
        assert engine.calculate([window_from(candles)], horizons=[1]) == []

    def test_store_failure_skips_window(self, history):
        window_candles, _ = history
        failing = MagicMock()
        failing.get_by_time_range.side_effect = StorageError("down")
        engine = OutcomeEngine(failing)
        assert engine.calculate([window_from(window_candles)]) == []

    def test_store_failure_raises_when_configured(self, history):
        window_candles, _ = history
        failing = MagicMock()
        failing.get_by_time_range.side_effect = StorageError("down")
        engine = OutcomeEngine(failing, OutcomeConfig(fail_on_store_error=True))
        with pytest.raises(StorageError):
            engine.calculate([window_from(window_candles)])

    def test_calculate_for_window_ids(self, store, history):
        window_candles, _ = history
        window = window_from(window_candles)
        store.upsert_windows([window])

        engine = OutcomeEngine(store)
        results = engine.calculate_for_window_ids([window.window_id, "missing"], store, [3])
        assert len(results) == 1
        assert results[0].window_id == window.window_id


# ============================================================================
# AGGREGATION
# ============================================================================

class TestAggregation:

    @pytest.fixture
    def results(self):
        return [
            OutcomeResult("a", 5, 0.01, -0.02, 0.01, 0.03, 0.05, 5),
            OutcomeResult("b", 5, 0.03, 0.00, 0.02, 0.05, 0.10, 5),
            OutcomeResult("c", 5, fwd_candles=2),
            OutcomeResult("a", 20, 0.05, 0.01, 0.04, 0.08, 0.20, 20),
        ]

    def test_averages_and_mdd_percentile(self, results):
        agg = aggregate_results(results)

        five = agg[5]
        assert five.sample_count == 2
        assert five.mean_return == pytest.approx(0.02)
        assert five.p10 == pytest.approx(-0.01)
        assert five.p50 == pytest.approx(0.015)
        assert five.p90 == pytest.approx(0.04)
        assert five.mdd_p95 == pytest.approx(0.05 + 0.95 * 0.05)

        assert agg[20].sample_count == 1
        assert agg[20].mdd_p95 == pytest.approx(0.20)

    def test_include_partial(self, results):
        agg = aggregate_results(results, include_partial=True)
        assert agg[5].sample_count == 3
        assert agg[5].mean_return == pytest.approx(0.04 / 3)

    def test_empty(self):
        assert aggregate_results([]) == {}

    def test_str(self, results):
        text = str(aggregate_results(results)[5])
        assert "Horizon: 5" in text
        assert "Samples: 2" in text

    def test_outcomes_frame(self, results):
        df = outcomes_to_frame(results)
        assert len(df) == 4
        assert list(df['is_resolved']) == [True, True, False, True]
