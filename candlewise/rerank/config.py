"""
Rerank Configuration

Time-decay weighting for similarity results.
"""

from dataclasses import dataclass
import hashlib
import json

from candlewise.errors import ConfigurationError


@dataclass
class TimeDecayConfig:
    """
    Time-decay parameters.

    Exponential mode: weight = exp(-decay_lambda * age_days).
    Segment mode: fixed weights for recent / medium / old results.
    """

    decay_lambda: float = 0.1

    use_segments: bool = False

    recent_days: float = 3.0
    medium_days: float = 30.0

    recent_weight: float = 1.0
    medium_weight: float = 0.7
    old_weight: float = 0.4

    @classmethod
    def default(cls) -> 'TimeDecayConfig':
        return cls()

    @classmethod
    def segments(cls) -> 'TimeDecayConfig':
        return cls(use_segments=True)

    def validate(self):
        if self.decay_lambda < 0:
            raise ConfigurationError(f"decay_lambda must be >= 0, got {self.decay_lambda}")
        if self.recent_days < 0:
            raise ConfigurationError(f"recent_days must be >= 0, got {self.recent_days}")
        if self.medium_days < self.recent_days:
            raise ConfigurationError(
                f"medium_days ({self.medium_days}) must be >= recent_days ({self.recent_days})"
            )

    def to_dict(self) -> dict:
        return {
            'decay_lambda': self.decay_lambda,
            'use_segments': self.use_segments,
            'recent_days': self.recent_days,
            'medium_days': self.medium_days,
            'recent_weight': self.recent_weight,
            'medium_weight': self.medium_weight,
            'old_weight': self.old_weight,
        }

    def get_config_hash(self) -> str:
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]
