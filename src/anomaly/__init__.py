"""
Anomaly Detection

Unsupervised anomaly scoring for threat intelligence feature vectors.

Architecture:
- Isolation Forest: randomized partition trees, scores by normalized path length
- Statistical Baseline: per-feature z-score and IQR fences, explains deviations
- Detector: fuses both scores, owns the training buffer and model lifecycle

Usage:
    # Cold start or train on recorded features
    python -m src.anomaly.train
"""

from .baseline import StatisticalBaseline
from .cache import ModelStore, NullModelStore, RedisModelStore
from .detector import AnomalyDetector
from .features import FEATURE_NAMES, to_matrix, to_vector
from .isolation_forest import IsolationForest, IsolationTree, average_path_length
from .models import (
    AnomalyDetectionError,
    AnomalyFactor,
    AnomalyResult,
    BaselineDeviation,
    DetectorConfig,
    InsufficientDataError,
    InvalidFeatureVectorError,
    NotReadyError,
    RedisConfig,
)
from .snapshot import TrainedModel
from .trainer import ModelTrainer

__all__ = [
    "AnomalyDetector",
    "AnomalyDetectionError",
    "AnomalyFactor",
    "AnomalyResult",
    "BaselineDeviation",
    "DetectorConfig",
    "FEATURE_NAMES",
    "InsufficientDataError",
    "InvalidFeatureVectorError",
    "IsolationForest",
    "IsolationTree",
    "ModelStore",
    "ModelTrainer",
    "NotReadyError",
    "NullModelStore",
    "RedisConfig",
    "RedisModelStore",
    "StatisticalBaseline",
    "TrainedModel",
    "average_path_length",
    "to_matrix",
    "to_vector",
]
