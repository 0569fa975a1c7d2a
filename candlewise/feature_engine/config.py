"""
Feature Engine Configuration

Defines shape vector layout, normalization parameters and versioning.
All parameters are versioned through the config hash for reproducibility.
"""

from dataclasses import dataclass, field
from typing import Tuple
import hashlib
import json

from candlewise.errors import ConfigurationError

# Per-candle series that can feed the shape vector
SHAPE_FIELDS = ('returns', 'ranges', 'upper_wicks', 'lower_wicks', 'volumes')

DEFAULT_SHAPE_FIELDS: Tuple[str, ...] = ('returns', 'ranges', 'upper_wicks', 'lower_wicks')

VECTOR_DIM_96 = 96
VECTOR_DIM_128 = 128


@dataclass
class NormalizationConfig:
    """Normalization parameters"""

    # Z-scores are clipped at ±clip_std and rescaled into [-1, 1]
    clip_std: float = 3.0


@dataclass
class FeatureEngineConfig:
    """
    Master configuration for feature extraction.

    vector_dim is split evenly across shape_fields: with the default four
    fields a 96-dim vector carries 24 samples per field.
    """

    config_version: str = "1.0.0"

    vector_dim: int = VECTOR_DIM_96
    feature_version: int = 1
    shape_fields: Tuple[str, ...] = DEFAULT_SHAPE_FIELDS

    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)

    @property
    def samples_per_field(self) -> int:
        return self.vector_dim // len(self.shape_fields)

    def validate(self):
        """Raise ConfigurationError for unusable parameters"""
        if self.vector_dim <= 0:
            raise ConfigurationError(f"vector_dim must be positive, got {self.vector_dim}")
        if not self.shape_fields:
            raise ConfigurationError("shape_fields must not be empty")
        unknown = [f for f in self.shape_fields if f not in SHAPE_FIELDS]
        if unknown:
            raise ConfigurationError(f"Unknown shape fields: {unknown}")
        if self.vector_dim < len(self.shape_fields):
            raise ConfigurationError(
                f"vector_dim {self.vector_dim} is smaller than the number of "
                f"shape fields ({len(self.shape_fields)})"
            )
        if self.normalization.clip_std <= 0:
            raise ConfigurationError(
                f"clip_std must be positive, got {self.normalization.clip_std}"
            )

    def get_config_hash(self) -> str:
        """
        Generate deterministic hash of configuration.

        Used for feature versioning and cache invalidation.
        """
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    def to_dict(self) -> dict:
        return {
            "config_version": self.config_version,
            "vector_dim": self.vector_dim,
            "feature_version": self.feature_version,
            "shape_fields": list(self.shape_fields),
            "normalization": {
                "clip_std": self.normalization.clip_std,
            },
        }

    def to_json(self) -> str:
        d = self.to_dict()
        d["config_hash"] = self.get_config_hash()
        return json.dumps(d, indent=2)


@dataclass
class PipelineConfig:
    """Window → feature pipeline execution settings"""

    # Thread pool used for batch extraction over history
    max_workers: int = 4

    # Windows per published message
    publish_batch_size: int = 500

    # Also publish the raw candles seen by process_history()
    publish_candles: bool = False

    # Re-raise per-window extraction errors instead of logging and skipping
    fail_on_error: bool = False

    def validate(self):
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {self.max_workers}")
        if self.publish_batch_size <= 0:
            raise ConfigurationError(
                f"publish_batch_size must be positive, got {self.publish_batch_size}"
            )

    def to_dict(self) -> dict:
        return {
            "max_workers": self.max_workers,
            "publish_batch_size": self.publish_batch_size,
            "publish_candles": self.publish_candles,
            "fail_on_error": self.fail_on_error,
        }


DEFAULT_CONFIG = FeatureEngineConfig()
