"""
Anomaly detector combining an isolation forest with a statistical baseline.

Lifecycle:
1. Untrained: prediction calls raise NotReadyError
2. initialize(): load a persisted model, or cold start on synthetic data
3. Ready: detect() / detect_batch() score feature vectors
4. Retraining: train_model() builds a new forest and baseline off to the side,
   then publishes them with a single reference swap
"""

import threading
from collections import deque
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Optional

import numpy as np
import structlog

from .baseline import StatisticalBaseline
from .cache import ModelStore, NullModelStore
from .features import NUM_FEATURES, to_matrix, to_vector
from .isolation_forest import IsolationForest
from .models import (
    AnomalyResult,
    DetectorConfig,
    InsufficientDataError,
    InvalidFeatureVectorError,
    NotReadyError,
)
from .snapshot import TrainedModel
from .synthetic import generate_cold_start_samples

logger = structlog.get_logger(__name__)


class AnomalyDetector:
    """Isolation forest + z-score/IQR anomaly detector for feature vectors"""

    def __init__(self, config: Optional[DetectorConfig] = None, store: Optional[ModelStore] = None):
        self.config = config or DetectorConfig()
        self.store = store or NullModelStore()
        self.rng = np.random.default_rng(self.config.seed)

        self._buffer_lock = threading.Lock()
        self._train_lock = threading.Lock()
        self._training_data: deque[Mapping[str, Any]] = deque(
            maxlen=self.config.max_training_samples
        )
        self._model: Optional[TrainedModel] = None
        self.samples_since_training = 0

        logger.info(
            "Anomaly detector created",
            num_trees=self.config.num_trees,
            subsample_size=self.config.subsample_size,
            threshold=self.config.anomaly_threshold,
            store=type(self.store).__name__,
        )

    @property
    def anomaly_threshold(self) -> float:
        return self.config.anomaly_threshold

    @property
    def model(self) -> Optional[TrainedModel]:
        return self._model

    @property
    def training_sample_count(self) -> int:
        with self._buffer_lock:
            return len(self._training_data)

    def is_ready(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        """Load a persisted model, or train on synthetic data when none exists"""
        logger.info("Initializing anomaly detector")

        model = self._load()
        if model is not None:
            self._model = model
            logger.info(
                "Loaded persisted anomaly model",
                trained_at=model.trained_at.isoformat(),
                training_samples=model.training_samples,
            )
            return

        if self.training_sample_count < self.config.min_training_samples:
            samples = generate_cold_start_samples(
                self.rng,
                normal_count=self.config.cold_start_normal_samples,
                anomalous_count=self.config.cold_start_anomalous_samples,
            )
            logger.info("Generating cold start training data", samples=len(samples))
            self._append(samples)

        self.train_model()
        logger.info("Anomaly detector initialized")

    def detect(self, features: Mapping[str, Any] | Sequence[float]) -> AnomalyResult:
        """Score a single feature record

        Raises:
            NotReadyError: If no model has been trained yet
            InvalidFeatureVectorError: If the record does not fit the feature layout
        """
        model = self._require_model()
        vector = self._vectorize(features, model)

        isolation_score = model.forest.predict(vector[np.newaxis, :])[0]
        return self._build_result(model, vector, isolation_score)

    def detect_batch(
        self, features_list: Sequence[Mapping[str, Any] | Sequence[float]]
    ) -> list[AnomalyResult]:
        """Score many records with a single forest pass

        Results are identical to calling detect() on each record.
        """
        model = self._require_model()

        vectors = []
        for index, features in enumerate(features_list):
            try:
                vectors.append(self._vectorize(features, model))
            except InvalidFeatureVectorError as e:
                raise InvalidFeatureVectorError(f"Record {index}: {e}") from e

        if not vectors:
            return []

        isolation_scores = model.forest.predict(np.vstack(vectors))
        return [
            self._build_result(model, vector, score)
            for vector, score in zip(vectors, isolation_scores)
        ]

    def train_model(self) -> TrainedModel:
        """Fit a new forest and baseline on the buffered samples

        Raises:
            InsufficientDataError: If fewer than min_training_samples are buffered.
                The current model, if any, stays in place.
        """
        with self._train_lock:
            with self._buffer_lock:
                samples = list(self._training_data)
                consumed = self.samples_since_training

            if len(samples) < self.config.min_training_samples:
                raise InsufficientDataError(
                    f"Insufficient training data: {len(samples)} < "
                    f"{self.config.min_training_samples}"
                )

            logger.info("Training anomaly detector", samples=len(samples))

            matrix = to_matrix(samples)
            forest = IsolationForest(
                num_trees=self.config.num_trees,
                subsample_size=self.config.subsample_size,
                rng=self.rng,
            ).fit(matrix)
            baseline = StatisticalBaseline.fit(matrix)

            model = TrainedModel(
                forest=forest,
                baseline=baseline,
                trained_at=datetime.now(UTC),
                training_samples=len(samples),
            )

            with self._buffer_lock:
                self._model = model
                self.samples_since_training = max(0, self.samples_since_training - consumed)

        logger.info(
            "Anomaly detector training completed",
            samples=len(samples),
            trained_at=model.trained_at.isoformat(),
        )
        self._save(model)
        return model

    def update_model(self, new_samples: Sequence[Mapping[str, Any]]) -> bool:
        """Buffer new samples and retrain when the batch is large enough

        Returns:
            True if the model was retrained
        """
        added = self._append(new_samples)

        if added <= self.config.retrain_batch_size:
            logger.debug(
                "Buffered new training samples",
                added=added,
                buffered=self.training_sample_count,
            )
            return False

        try:
            self.train_model()
            logger.info("Anomaly detector retrained with new data", added=added)
            return True
        except Exception as e:
            logger.error("Failed to retrain anomaly detector", error=str(e), exc_info=True)
            return False

    def get_model_info(self) -> dict[str, Any]:
        model = self._model
        return {
            "ready": model is not None,
            "last_training": model.trained_at.isoformat() if model else None,
            "training_samples": self.training_sample_count,
            "samples_since_training": self.samples_since_training,
            "threshold": self.config.anomaly_threshold,
            "isolation_forest": {
                "num_trees": self.config.num_trees,
                "subsample_size": self.config.subsample_size,
                "max_depth": model.forest.max_depth if model else None,
                "trained": model is not None and model.forest.trained,
            },
        }

    def _append(self, samples: Sequence[Mapping[str, Any]]) -> int:
        """Buffer the samples that encode as feature vectors, returns how many"""
        valid = []
        for sample in samples:
            try:
                if not isinstance(sample, Mapping):
                    raise InvalidFeatureVectorError(
                        f"Training sample must be a mapping, got {type(sample).__name__}"
                    )
                to_vector(sample)
            except InvalidFeatureVectorError as e:
                logger.debug("Invalid training sample", error=str(e))
                continue
            valid.append(sample)

        rejected = len(samples) - len(valid)
        if rejected:
            logger.warning(
                "Dropped invalid training samples", rejected=rejected, accepted=len(valid)
            )

        with self._buffer_lock:
            self._training_data.extend(valid)
            self.samples_since_training += len(valid)
        return len(valid)

    def _require_model(self) -> TrainedModel:
        model = self._model
        if model is None:
            raise NotReadyError("Anomaly detector not ready")
        return model

    @staticmethod
    def _vectorize(features: Any, model: TrainedModel) -> np.ndarray:
        vector = to_vector(features)
        expected = model.baseline.num_features or NUM_FEATURES
        if len(vector) != expected:
            raise InvalidFeatureVectorError(
                f"Feature vector has {len(vector)} values, model expects {expected}"
            )
        return vector

    def _build_result(
        self, model: TrainedModel, vector: np.ndarray, isolation_score: float
    ) -> AnomalyResult:
        statistical_score = model.baseline.score(vector)
        score = (
            isolation_score * self.config.isolation_weight
            + statistical_score * self.config.statistical_weight
        )

        return AnomalyResult(
            score=score,
            is_anomaly=score > self.config.anomaly_threshold,
            isolation_score=isolation_score,
            statistical_score=statistical_score,
            threshold=self.config.anomaly_threshold,
            factors=model.baseline.factors(vector),
            deviation=model.baseline.deviation(vector),
        )

    def _load(self) -> Optional[TrainedModel]:
        try:
            model = self.store.load_model()
        except Exception as e:
            logger.warning("Model store load failed, falling back to training", error=str(e))
            return None

        if model is not None and model.baseline.num_features != NUM_FEATURES:
            logger.warning(
                "Ignoring persisted model with unexpected feature count",
                features=model.baseline.num_features,
                expected=NUM_FEATURES,
            )
            return None
        return model

    def _save(self, model: TrainedModel) -> None:
        try:
            self.store.save_model(model)
        except Exception as e:
            logger.warning("Model store save failed", error=str(e))
