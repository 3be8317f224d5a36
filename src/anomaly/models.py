"""
Data models, configuration and errors for the anomaly detection system.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from src.core.settings import env_float, env_int, env_str


class AnomalyDetectionError(Exception):
    """Base class for anomaly detection failures"""


class NotReadyError(AnomalyDetectionError, RuntimeError):
    """Prediction requested before any model has been trained"""


class InsufficientDataError(AnomalyDetectionError, ValueError):
    """Training requested with too few buffered samples"""


class InvalidFeatureVectorError(AnomalyDetectionError, ValueError):
    """Feature vector does not match the expected feature layout"""


@dataclass
class DetectorConfig:
    """Configuration for the anomaly detector"""

    num_trees: int = 100
    subsample_size: int = 256
    anomaly_threshold: float = 0.6

    # Combination weights for the final anomaly score
    isolation_weight: float = 0.7
    statistical_weight: float = 0.3

    min_training_samples: int = 10
    max_training_samples: int = 10000
    retrain_batch_size: int = 100  # update batches larger than this trigger a retrain

    # Cold start
    cold_start_normal_samples: int = 1000
    cold_start_anomalous_samples: int = 50

    seed: Optional[int] = None

    @classmethod
    def from_env(cls) -> "DetectorConfig":
        """Build configuration from ANOMALY_* environment variables"""
        defaults = cls()
        return cls(
            num_trees=env_int("ANOMALY_NUM_TREES", defaults.num_trees),
            subsample_size=env_int("ANOMALY_SUBSAMPLE_SIZE", defaults.subsample_size),
            anomaly_threshold=env_float("ANOMALY_THRESHOLD", defaults.anomaly_threshold),
            isolation_weight=env_float("ANOMALY_ISOLATION_WEIGHT", defaults.isolation_weight),
            statistical_weight=env_float(
                "ANOMALY_STATISTICAL_WEIGHT", defaults.statistical_weight
            ),
            min_training_samples=env_int(
                "ANOMALY_MIN_TRAINING_SAMPLES", defaults.min_training_samples
            ),
            max_training_samples=env_int(
                "ANOMALY_MAX_TRAINING_SAMPLES", defaults.max_training_samples
            ),
            retrain_batch_size=env_int("ANOMALY_RETRAIN_BATCH_SIZE", defaults.retrain_batch_size),
            seed=env_int("ANOMALY_SEED", None),
        )


@dataclass
class RedisConfig:
    """Connection settings for the Redis model store"""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    ttl_seconds: int = 7 * 24 * 3600
    model_name: str = "default"

    @classmethod
    def from_env(cls) -> "RedisConfig":
        defaults = cls()
        return cls(
            host=env_str("REDIS_HOST", defaults.host),
            port=env_int("REDIS_PORT", defaults.port),
            db=env_int("REDIS_DB", defaults.db),
            password=env_str("REDIS_PASSWORD"),
            ttl_seconds=env_int("MODEL_CACHE_TTL_SECONDS", defaults.ttl_seconds),
            model_name=env_str("MODEL_NAME", defaults.model_name),
        )


@dataclass(frozen=True)
class AnomalyFactor:
    """A feature whose value deviates significantly from the baseline"""

    feature: str
    value: float
    expected_mean: float
    z_score: float
    deviation_type: str  # above_normal | below_normal


@dataclass(frozen=True)
class BaselineDeviation:
    """Overall deviation of a vector from the statistical baseline"""

    overall: float
    per_feature: list[float] = field(default_factory=list)
    max_deviation: float = 0.0


@dataclass(frozen=True)
class AnomalyResult:
    """Result of scoring one feature vector"""

    score: float
    is_anomaly: bool
    isolation_score: float
    statistical_score: float
    threshold: float
    factors: list[AnomalyFactor] = field(default_factory=list)
    deviation: BaselineDeviation = field(default_factory=lambda: BaselineDeviation(0.0))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization"""
        return asdict(self)
