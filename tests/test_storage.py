"""
Test suite for storage collaborators: candle/window stores, write batch
messages, write channels and the batch writer.

Run: pytest tests/test_storage.py -v
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import redis

from candlewise.errors import StorageError
from candlewise.feature_engine.extractor import FeatureExtractor
from candlewise.outcome_engine.schemas import OutcomeResult
from candlewise.storage.candle_store import InMemoryCandleStore, SQLiteStore
from candlewise.storage.config import StorageConfig
from candlewise.storage.messages import (
    SUBJECT_CANDLES_WRITE,
    SUBJECT_WINDOWS_WRITE,
    CandleBatchMessage,
    WindowBatchMessage,
    decode_message,
)
from candlewise.storage.write_channel import InMemoryWriteChannel, RedisWriteChannel
from candlewise.storage.writer import BatchWriter
from candlewise.window_engine.builder import WindowBuilder
from candlewise.window_engine.config import WindowBuilderConfig
from candlewise.window_engine.schemas import Candle, Window


BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_candle(i, symbol="EURUSD", timeframe="1h", close=None):
    close = 1.10 + i * 0.001 if close is None else close
    open_time = BASE_TIME + timedelta(hours=i)
    return Candle(
        symbol=symbol,
        timeframe=timeframe,
        open_time=open_time,
        close_time=open_time + timedelta(hours=1),
        open=close - 0.0005,
        high=close + 0.001,
        low=close - 0.001,
        close=close,
        volume=1000.0 + i,
        trades=10 + i,
    )


@pytest.fixture
def candles():
    return [make_candle(i) for i in range(30)]


@pytest.fixture
def windows_and_features(candles):
    builder = WindowBuilder(WindowBuilderConfig(symbol="EURUSD", timeframe="1h",
                                                window_length=10, step=5))
    windows = builder.process_candles(candles)
    extractor = FeatureExtractor()
    features = [extractor.extract(w) for w in windows]
    return windows, [f.feature_row for f in features]


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "candlewise.db"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = InMemoryCandleStore()
    else:
        s = SQLiteStore(str(tmp_path / "store.db"))
    yield s
    s.close()


# ============================================================================
# STORES
# ============================================================================

class TestCandleStore:

    def test_range_query_inclusive(self, store, candles):
        store.insert_candles(candles)
        got = store.get_by_time_range("EURUSD", "1h", candles[5].open_time, candles[9].open_time)
        assert got == candles[5:10]

    def test_range_query_other_series(self, store, candles):
        store.insert_candles(candles)
        assert store.get_by_time_range("GBPUSD", "1h", BASE_TIME, BASE_TIME + timedelta(days=5)) == []
        assert store.get_by_time_range("EURUSD", "4h", BASE_TIME, BASE_TIME + timedelta(days=5)) == []

    def test_insert_is_idempotent(self, store, candles):
        store.insert_candles(candles)
        store.insert_candles(candles[:10])
        got = store.get_by_time_range("EURUSD", "1h", BASE_TIME, BASE_TIME + timedelta(days=5))
        assert len(got) == len(candles)

    def test_out_of_order_insert_is_returned_ordered(self, store, candles):
        store.insert_candles(list(reversed(candles)))
        got = store.get_by_time_range("EURUSD", "1h", BASE_TIME, BASE_TIME + timedelta(days=5))
        assert got == candles

    def test_get_latest(self, store, candles):
        store.insert_candles(candles)
        assert store.get_latest("EURUSD", "1h", 3) == candles[-3:]
        assert store.get_latest("EURUSD", "1h", 0) == []

    def test_windows_and_features(self, store, candles, windows_and_features):
        windows, rows = windows_and_features
        store.insert_candles(candles)
        store.upsert_windows(windows)
        store.upsert_windows(windows)
        store.upsert_feature_rows(rows)

        assert store.count_windows("EURUSD", "1h") == len(windows)
        assert store.count_windows("GBPUSD", "1h") == 0

        loaded = store.get_window(windows[0].window_id)
        assert loaded.window_id == windows[0].window_id
        assert loaded.t_end == windows[0].t_end
        assert list(loaded.candles) == list(windows[0].candles)

        row = store.get_feature_row(rows[0].window_id)
        assert row.vol_bucket == rows[0].vol_bucket
        assert row.trend_slope == pytest.approx(rows[0].trend_slope)

    def test_window_candles_reread_from_candle_table(self, store, candles, windows_and_features):
        windows, _ = windows_and_features
        store.insert_candles(candles)
        store.upsert_windows([replace(w, candles=()) for w in windows])

        for w in windows:
            loaded = store.get_window(w.window_id)
            assert loaded.is_complete
            assert list(loaded.candles) == list(w.candles)

    def test_count_windows_by_timeframe(self, store, windows_and_features):
        windows, _ = windows_and_features
        other = Window.create("EURUSD", "4h", windows[0].t_end, 10, 1, ())
        store.upsert_windows([windows[0], other])

        assert store.count_windows(timeframe="1h") == 1
        assert store.count_windows(timeframe="4h") == 1
        assert store.count_windows(symbol="EURUSD") == 2
        assert store.count_windows() == 2

    def test_missing_window(self, store):
        assert store.get_window("nope") is None
        assert store.get_feature_row("nope") is None

    def test_outcomes(self, store):
        results = [
            OutcomeResult("w1", 20, 0.01, -0.01, 0.01, 0.02, 0.05, 20),
            OutcomeResult("w1", 5, 0.02, 0.0, 0.02, 0.03, 0.01, 5),
        ]
        store.upsert_outcomes(results)
        store.upsert_outcomes(results)
        assert [r.horizon for r in store.get_outcomes("w1")] == [5, 20]


class TestSQLiteStore:

    def test_persists_across_connections(self, tmp_path, candles):
        path = str(tmp_path / "persist.db")
        s1 = SQLiteStore(path)
        s1.insert_candles(candles)
        s1.close()

        s2 = SQLiteStore(path)
        try:
            assert len(s2.get_latest("EURUSD", "1h", 100)) == len(candles)
        finally:
            s2.close()

    def test_candles_frame(self, sqlite_store, candles):
        sqlite_store.insert_candles(candles)
        df = sqlite_store.read_candles_frame("EURUSD", "1h")
        assert len(df) == len(candles)
        assert df['open_time'].iloc[0] == candles[0].open_time
        assert list(df['trades']) == [c.trades for c in candles]

    def test_unopenable_path(self, tmp_path):
        with pytest.raises(StorageError):
            SQLiteStore(str(tmp_path / "missing" / "dir" / "x.db"))

    def test_closed_store_raises_storage_error(self, tmp_path, candles):
        s = SQLiteStore(str(tmp_path / "closed.db"))
        s.close()
        with pytest.raises(StorageError):
            s.insert_candles(candles)
        with pytest.raises(StorageError):
            s.get_latest("EURUSD", "1h", 5)

    def test_failed_write_rolls_back(self, sqlite_store, candles):
        sqlite_store.insert_candles(candles[:5])
        bad = [(c.symbol, None) for c in candles[5:10]]
        with pytest.raises(StorageError):
            with sqlite_store._cursor(commit=True) as cur:
                cur.executemany("INSERT INTO candles(symbol, timeframe) VALUES (?,?)", bad)
        assert len(sqlite_store.get_latest("EURUSD", "1h", 100)) == 5


# ============================================================================
# MESSAGES
# ============================================================================

class TestMessages:

    def test_candle_batch(self, candles):
        msg = CandleBatchMessage(candles[:5])
        decoded = CandleBatchMessage.decode(msg.encode())
        assert decoded.candles == candles[:5]

    def test_window_batch_drops_candles(self, windows_and_features):
        windows, rows = windows_and_features
        decoded = WindowBatchMessage.decode(WindowBatchMessage(windows, rows).encode())

        assert [w.window_id for w in decoded.windows] == [w.window_id for w in windows]
        assert all(w.candles == () for w in decoded.windows)
        assert decoded.feature_rows == rows

    def test_decode_by_subject(self, candles):
        payload = CandleBatchMessage(candles[:1]).encode()
        assert isinstance(decode_message(SUBJECT_CANDLES_WRITE, payload), CandleBatchMessage)
        with pytest.raises(ValueError):
            decode_message("unknown.subject", payload)


# ============================================================================
# WRITE CHANNELS
# ============================================================================

class TestInMemoryWriteChannel:

    def test_publish_and_drain(self, candles, windows_and_features):
        windows, rows = windows_and_features
        channel = InMemoryWriteChannel()
        channel.publish_candles(candles)
        channel.publish_windows(windows, rows)
        channel.publish_windows([], [])

        assert channel.count() == 2
        assert channel.count(SUBJECT_WINDOWS_WRITE) == 1

        received = []
        assert channel.drain(SUBJECT_WINDOWS_WRITE, lambda s, m: received.append(m)) == 1
        assert channel.count(SUBJECT_WINDOWS_WRITE) == 0
        assert len(received[0].windows) == len(windows)

    def test_failed_handler_keeps_message(self, candles):
        channel = InMemoryWriteChannel()
        channel.publish_candles(candles[:5])
        channel.publish_candles(candles[5:10])

        def handler(subject, msg):
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            channel.drain(SUBJECT_CANDLES_WRITE, handler)
        assert channel.count(SUBJECT_CANDLES_WRITE) == 2

        seen = []
        channel.drain(SUBJECT_CANDLES_WRITE, lambda s, m: seen.append(m.candles[0]))
        assert seen == [candles[0], candles[5]]


class TestRedisWriteChannel:

    @pytest.fixture
    def client(self):
        return MagicMock()

    def test_publish_uses_xadd(self, client, candles):
        client.xadd.return_value = "1-0"
        channel = RedisWriteChannel(stream_prefix="test", client=client)

        assert channel.publish_candles(candles[:3]) == "1-0"
        key, fields = client.xadd.call_args[0]
        assert key == "test:candles.write"
        assert CandleBatchMessage.decode(fields['payload']).candles == candles[:3]

    def test_drain_deletes_after_handler(self, client, candles):
        payload = CandleBatchMessage(candles[:2]).encode()
        client.xrange.return_value = [("1-0", {'payload': payload}), ("2-0", {'payload': payload})]
        channel = RedisWriteChannel(client=client)

        handled = []
        assert channel.drain(SUBJECT_CANDLES_WRITE, lambda s, m: handled.append(m)) == 2
        assert len(handled) == 2
        assert client.xdel.call_count == 2
        client.xdel.assert_any_call("candlewise:candles.write", "1-0")

    def test_drain_handler_failure_leaves_entry(self, client, candles):
        payload = CandleBatchMessage(candles[:2]).encode()
        client.xrange.return_value = [("1-0", {'payload': payload})]
        channel = RedisWriteChannel(client=client)

        def handler(subject, msg):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            channel.drain(SUBJECT_CANDLES_WRITE, handler)
        client.xdel.assert_not_called()

    def test_count(self, client):
        client.xlen.side_effect = [3, 4]
        channel = RedisWriteChannel(client=client)
        assert channel.count() == 7

    def test_redis_errors_become_storage_errors(self, client, candles):
        client.xadd.side_effect = redis.ConnectionError("refused")
        channel = RedisWriteChannel(client=client)
        with pytest.raises(StorageError):
            channel.publish_candles(candles[:1])

    def test_from_url(self, monkeypatch):
        fake = MagicMock()
        from_url = MagicMock(return_value=fake)
        monkeypatch.setattr(redis, "from_url", from_url)

        channel = RedisWriteChannel(url="redis://example:6379/1")
        from_url.assert_called_once_with("redis://example:6379/1", decode_responses=True)
        channel.close()
        fake.close.assert_called_once()


# ============================================================================
# BATCH WRITER
# ============================================================================

class TestBatchWriter:

    def test_drain_into_sqlite(self, sqlite_store, candles, windows_and_features):
        windows, rows = windows_and_features
        channel = InMemoryWriteChannel()
        channel.publish_candles(candles)
        channel.publish_windows(windows, rows)

        writer = BatchWriter(sqlite_store)
        assert writer.drain_all(channel) == 2
        assert channel.count() == 0
        assert writer.candles_written == len(candles)
        assert sqlite_store.count_windows() == len(windows)

        # Window candles are rebuilt from the candle table
        loaded = sqlite_store.get_window(windows[-1].window_id)
        assert list(loaded.candles) == list(windows[-1].candles)

    def test_redelivery_is_idempotent(self, sqlite_store, windows_and_features):
        windows, rows = windows_and_features
        writer = BatchWriter(sqlite_store)
        msg = WindowBatchMessage(windows, rows)
        writer(SUBJECT_WINDOWS_WRITE, msg)
        writer(SUBJECT_WINDOWS_WRITE, msg)
        assert sqlite_store.count_windows() == len(windows)

    def test_unknown_message(self, sqlite_store):
        with pytest.raises(TypeError):
            BatchWriter(sqlite_store).handle(object())


# ============================================================================
# CONFIG
# ============================================================================

class TestStorageConfig:

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CANDLEWISE_SQLITE_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
        monkeypatch.delenv("CANDLEWISE_STREAM_PREFIX", raising=False)

        cfg = StorageConfig.from_env(str(tmp_path / "absent.env"))
        assert cfg.sqlite_path == str(tmp_path / "env.db")
        assert cfg.redis_url == "redis://cache:6379/2"
        assert cfg.stream_prefix == "candlewise"

    def test_dotenv_file(self, monkeypatch, tmp_path):
        for name in ("CANDLEWISE_SQLITE_PATH", "REDIS_URL", "CANDLEWISE_STREAM_PREFIX"):
            monkeypatch.delenv(name, raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("CANDLEWISE_STREAM_PREFIX=research\n")

        cfg = StorageConfig.from_env(str(env_file))
        assert cfg.stream_prefix == "research"
