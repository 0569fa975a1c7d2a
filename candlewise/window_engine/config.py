"""
Window Engine Configuration

Window length, step and warmup policy for one (symbol, timeframe) stream.
"""

from dataclasses import dataclass
import hashlib
import json

from candlewise.errors import ConfigurationError


@dataclass
class WindowBuilderConfig:
    """
    Sliding window parameters.

    window_length (W) is also the ring buffer capacity. warmup <= 0 means
    "same as W". warmup > W is allowed and simply delays the first window.
    """

    symbol: str = ""
    timeframe: str = ""

    window_length: int = 60
    step: int = 1
    warmup: int = 0

    # Part of window identity, bump to re-key all windows
    feature_version: int = 1

    @classmethod
    def default(cls, symbol: str, timeframe: str) -> 'WindowBuilderConfig':
        """60-candle windows emitted on every candle"""
        return cls(symbol=symbol, timeframe=timeframe)

    @property
    def effective_warmup(self) -> int:
        return self.warmup if self.warmup > 0 else self.window_length

    def validate(self):
        """Raise ConfigurationError for unusable parameters"""
        if self.window_length <= 0:
            raise ConfigurationError(
                f"window_length must be positive, got {self.window_length}"
            )
        if self.step <= 0:
            raise ConfigurationError(f"step must be positive, got {self.step}")

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'window_length': self.window_length,
            'step': self.step,
            'warmup': self.effective_warmup,
            'feature_version': self.feature_version,
        }

    def get_config_hash(self) -> str:
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]
