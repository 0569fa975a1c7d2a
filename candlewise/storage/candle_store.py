"""
Candle and Window Stores

Range-queryable candle store contract:
    insert_candles(candles)
    get_by_time_range(symbol, timeframe, start, end) -> oldest-first, open_time in [start, end]
    get_latest(symbol, timeframe, limit) -> the newest `limit` candles, oldest-first

Window store contract:
    upsert_windows(windows), upsert_feature_rows(rows), upsert_outcomes(results)
    get_window(window_id), get_feature_row(window_id), count_windows(symbol, timeframe)

All writes are idempotent: candles are keyed on (symbol, timeframe, open_time)
and windows on their deterministic window_id.
"""

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import sqlite3
import threading

import pandas as pd

from candlewise.errors import StorageError
from candlewise.feature_engine.schemas import FeatureRow
from candlewise.outcome_engine.schemas import OutcomeResult
from candlewise.timeutils import ensure_utc, from_unix_millis, to_unix_millis
from candlewise.window_engine.schemas import CANDLE_COLUMNS, Candle, Window

LOG = logging.getLogger(__name__)


class InMemoryCandleStore:
    """Dict-backed store for tests and local runs"""

    def __init__(self):
        self._lock = threading.RLock()
        self._candles: Dict[Tuple[str, str], Dict[datetime, Candle]] = {}
        self._windows: Dict[str, Window] = {}
        self._features: Dict[str, FeatureRow] = {}
        self._outcomes: Dict[Tuple[str, int], OutcomeResult] = {}

    def insert_candles(self, candles: Iterable[Candle]) -> int:
        count = 0
        with self._lock:
            for c in candles:
                self._candles.setdefault((c.symbol, c.timeframe), {})[c.open_time] = c
                count += 1
        return count

    def _series(self, symbol: str, timeframe: str) -> List[Candle]:
        by_time = self._candles.get((symbol, timeframe), {})
        return [by_time[t] for t in sorted(by_time)]

    def get_by_time_range(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> List[Candle]:
        start, end = ensure_utc(start), ensure_utc(end)
        with self._lock:
            return [c for c in self._series(symbol, timeframe) if start <= c.open_time <= end]

    def get_latest(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        if limit <= 0:
            return []
        with self._lock:
            return self._series(symbol, timeframe)[-limit:]

    def upsert_windows(self, windows: Iterable[Window]) -> int:
        count = 0
        with self._lock:
            for w in windows:
                self._windows[w.window_id] = w
                count += 1
        return count

    def upsert_feature_rows(self, rows: Iterable[FeatureRow]) -> int:
        count = 0
        with self._lock:
            for row in rows:
                self._features[row.window_id] = row
                count += 1
        return count

    def upsert_outcomes(self, results: Iterable[OutcomeResult]) -> int:
        count = 0
        with self._lock:
            for r in results:
                self._outcomes[(r.window_id, r.horizon)] = r
                count += 1
        return count

    def get_window(self, window_id: str) -> Optional[Window]:
        """Stored window with its W candles closing at or before t_end"""
        with self._lock:
            window = self._windows.get(window_id)
            if window is None:
                return None
            closed = [c for c in self._series(window.symbol, window.timeframe)
                      if c.close_time <= window.t_end]
            return replace(window, candles=tuple(closed[-window.w:]))

    def get_feature_row(self, window_id: str) -> Optional[FeatureRow]:
        with self._lock:
            return self._features.get(window_id)

    def get_outcomes(self, window_id: str) -> List[OutcomeResult]:
        with self._lock:
            return sorted(
                (r for (wid, _), r in self._outcomes.items() if wid == window_id),
                key=lambda r: r.horizon
            )

    def count_windows(self, symbol: Optional[str] = None, timeframe: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                1 for w in self._windows.values()
                if (symbol is None or w.symbol == symbol)
                and (timeframe is None or w.timeframe == timeframe)
            )

    def close(self):
        pass


class SQLiteStore:
    """
    SQLite-backed candle and window store.

    Timestamps are stored as Unix milliseconds (UTC).
    One connection shared across threads, serialised by an RLock.
    """

    def __init__(self, path: str):
        self._path = path
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._create_schema()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open SQLite store at {path}: {e}") from e
        LOG.info(f"SQLite store opened: {path}")

    def _create_schema(self):
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS candles (
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                open_time INTEGER NOT NULL,
                close_time INTEGER NOT NULL,
                open REAL NOT NULL,
                high REAL NOT NULL,
                low REAL NOT NULL,
                close REAL NOT NULL,
                volume REAL NOT NULL,
                trades INTEGER,
                vwap REAL,
                PRIMARY KEY (symbol, timeframe, open_time)
            )"""
        )
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS windows (
                window_id TEXT PRIMARY KEY,
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                t_end INTEGER NOT NULL,
                w INTEGER NOT NULL,
                feature_version INTEGER NOT NULL,
                created_at INTEGER NOT NULL
            )"""
        )
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_windows_symbol_tf ON windows(symbol, timeframe, t_end)"
        )
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS window_features (
                window_id TEXT PRIMARY KEY,
                trend_slope REAL,
                realized_volatility REAL,
                max_drawdown REAL,
                atr REAL,
                vol_z_score REAL,
                vol_bucket INTEGER,
                trend_bucket INTEGER,
                feature_version INTEGER
            )"""
        )
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS window_outcomes (
                window_id TEXT NOT NULL,
                horizon INTEGER NOT NULL,
                fwd_ret_mean REAL,
                fwd_ret_p10 REAL,
                fwd_ret_p50 REAL,
                fwd_ret_p90 REAL,
                max_drawdown REAL,
                fwd_candles INTEGER,
                PRIMARY KEY (window_id, horizon)
            )"""
        )
        self._conn.commit()

    @contextmanager
    def _cursor(self, commit: bool = False):
        with self._lock:
            try:
                cur = self._conn.cursor()
                yield cur
                if commit:
                    self._conn.commit()
            except sqlite3.Error as e:
                if commit:
                    try:
                        self._conn.rollback()
                    except sqlite3.Error as rollback_error:
                        LOG.warning(f"SQLite rollback failed: {rollback_error}")
                raise StorageError(f"SQLite operation failed: {e}") from e

    # Candles

    @staticmethod
    def _candle_from_row(row) -> Candle:
        symbol, timeframe, open_ms, close_ms, o, h, l, c, v, trades, vwap = row
        return Candle(
            symbol=symbol,
            timeframe=timeframe,
            open_time=from_unix_millis(open_ms),
            close_time=from_unix_millis(close_ms),
            open=o,
            high=h,
            low=l,
            close=c,
            volume=v,
            trades=trades,
            vwap=vwap,
        )

    def insert_candles(self, candles: Iterable[Candle]) -> int:
        rows = [
            (c.symbol, c.timeframe, to_unix_millis(c.open_time), to_unix_millis(c.close_time),
             c.open, c.high, c.low, c.close, c.volume, c.trades, c.vwap)
            for c in candles
        ]
        if not rows:
            return 0
        with self._cursor(commit=True) as cur:
            cur.executemany(
                "INSERT OR REPLACE INTO candles(symbol, timeframe, open_time, close_time, "
                "open, high, low, close, volume, trades, vwap) VALUES (?,?,?,?,?,?,?,?,?,?,?)",
                rows
            )
        LOG.debug(f"Inserted {len(rows)} candles")
        return len(rows)

    def get_by_time_range(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> List[Candle]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT symbol, timeframe, open_time, close_time, open, high, low, close, volume, "
                "trades, vwap FROM candles WHERE symbol=? AND timeframe=? "
                "AND open_time >= ? AND open_time <= ? ORDER BY open_time ASC",
                (symbol, timeframe, to_unix_millis(start), to_unix_millis(end))
            )
            return [self._candle_from_row(r) for r in cur.fetchall()]

    def get_latest(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        if limit <= 0:
            return []
        with self._cursor() as cur:
            cur.execute(
                "SELECT symbol, timeframe, open_time, close_time, open, high, low, close, volume, "
                "trades, vwap FROM candles WHERE symbol=? AND timeframe=? "
                "ORDER BY open_time DESC LIMIT ?",
                (symbol, timeframe, int(limit))
            )
            rows = cur.fetchall()
        return [self._candle_from_row(r) for r in reversed(rows)]

    def read_candles_frame(self, symbol: str, timeframe: str) -> pd.DataFrame:
        """All stored candles of one series as a DataFrame, oldest first"""
        with self._lock:
            try:
                df = pd.read_sql_query(
                    "SELECT symbol, timeframe, open_time, close_time, open, high, low, close, "
                    "volume, trades, vwap FROM candles WHERE symbol=? AND timeframe=? "
                    "ORDER BY open_time ASC",
                    self._conn,
                    params=(symbol, timeframe)
                )
            except (sqlite3.Error, pd.errors.DatabaseError) as e:
                raise StorageError(f"Failed to read candles frame: {e}") from e

        df['open_time'] = pd.to_datetime(df['open_time'], unit='ms', utc=True)
        df['close_time'] = pd.to_datetime(df['close_time'], unit='ms', utc=True)
        return df[CANDLE_COLUMNS]

    # Windows

    def upsert_windows(self, windows: Iterable[Window]) -> int:
        rows = [
            (w.window_id, w.symbol, w.timeframe, to_unix_millis(w.t_end), w.w,
             w.feature_version, to_unix_millis(w.created_at))
            for w in windows
        ]
        if not rows:
            return 0
        with self._cursor(commit=True) as cur:
            cur.executemany(
                "INSERT OR REPLACE INTO windows(window_id, symbol, timeframe, t_end, w, "
                "feature_version, created_at) VALUES (?,?,?,?,?,?,?)",
                rows
            )
        return len(rows)

    def upsert_feature_rows(self, feature_rows: Iterable[FeatureRow]) -> int:
        rows = [
            (r.window_id, r.trend_slope, r.realized_volatility, r.max_drawdown, r.atr,
             r.vol_z_score, r.vol_bucket, r.trend_bucket, r.feature_version)
            for r in feature_rows
        ]
        if not rows:
            return 0
        with self._cursor(commit=True) as cur:
            cur.executemany(
                "INSERT OR REPLACE INTO window_features(window_id, trend_slope, "
                "realized_volatility, max_drawdown, atr, vol_z_score, vol_bucket, "
                "trend_bucket, feature_version) VALUES (?,?,?,?,?,?,?,?,?)",
                rows
            )
        return len(rows)

    def upsert_outcomes(self, results: Iterable[OutcomeResult]) -> int:
        rows = [
            (r.window_id, r.horizon, r.fwd_ret_mean, r.fwd_ret_p10, r.fwd_ret_p50,
             r.fwd_ret_p90, r.max_drawdown, r.fwd_candles)
            for r in results
        ]
        if not rows:
            return 0
        with self._cursor(commit=True) as cur:
            cur.executemany(
                "INSERT OR REPLACE INTO window_outcomes(window_id, horizon, fwd_ret_mean, "
                "fwd_ret_p10, fwd_ret_p50, fwd_ret_p90, max_drawdown, fwd_candles) "
                "VALUES (?,?,?,?,?,?,?,?)",
                rows
            )
        return len(rows)

    def get_window(self, window_id: str) -> Optional[Window]:
        """
        Load a window; its candles are re-read from the candle table
        (the W candles closing at or before t_end).
        """
        with self._cursor() as cur:
            cur.execute(
                "SELECT window_id, symbol, timeframe, t_end, w, feature_version, created_at "
                "FROM windows WHERE window_id=?",
                (window_id,)
            )
            row = cur.fetchone()
            if row is None:
                return None

            wid, symbol, timeframe, t_end_ms, w, feature_version, created_ms = row
            cur.execute(
                "SELECT symbol, timeframe, open_time, close_time, open, high, low, close, volume, "
                "trades, vwap FROM candles WHERE symbol=? AND timeframe=? AND close_time <= ? "
                "ORDER BY open_time DESC LIMIT ?",
                (symbol, timeframe, t_end_ms, w)
            )
            candle_rows = cur.fetchall()

        return Window(
            window_id=wid,
            symbol=symbol,
            timeframe=timeframe,
            t_end=from_unix_millis(t_end_ms),
            w=w,
            feature_version=feature_version,
            candles=tuple(self._candle_from_row(r) for r in reversed(candle_rows)),
            created_at=from_unix_millis(created_ms),
        )

    def get_feature_row(self, window_id: str) -> Optional[FeatureRow]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT window_id, trend_slope, realized_volatility, max_drawdown, atr, "
                "vol_z_score, vol_bucket, trend_bucket, feature_version "
                "FROM window_features WHERE window_id=?",
                (window_id,)
            )
            row = cur.fetchone()
        if row is None:
            return None
        return FeatureRow(
            window_id=row[0],
            trend_slope=row[1],
            realized_volatility=row[2],
            max_drawdown=row[3],
            atr=row[4],
            vol_z_score=row[5],
            vol_bucket=row[6],
            trend_bucket=row[7],
            feature_version=row[8],
        )

    def get_outcomes(self, window_id: str) -> List[OutcomeResult]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT window_id, horizon, fwd_ret_mean, fwd_ret_p10, fwd_ret_p50, "
                "fwd_ret_p90, max_drawdown, fwd_candles FROM window_outcomes "
                "WHERE window_id=? ORDER BY horizon ASC",
                (window_id,)
            )
            rows = cur.fetchall()
        return [OutcomeResult(*r) for r in rows]

    def count_windows(self, symbol: Optional[str] = None, timeframe: Optional[str] = None) -> int:
        clauses, params = [], []
        if symbol is not None:
            clauses.append("symbol=?")
            params.append(symbol)
        if timeframe is not None:
            clauses.append("timeframe=?")
            params.append(timeframe)
        sql = "SELECT COUNT(*) FROM windows"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        with self._cursor() as cur:
            cur.execute(sql, params)
            return int(cur.fetchone()[0])

    def close(self):
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                LOG.warning(f"Error closing SQLite store: {e}")
