"""
Tests for AnomalyDetector.
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

from src.anomaly.detector import AnomalyDetector
from src.anomaly.features import FEATURE_NAMES
from src.anomaly.models import (
    DetectorConfig,
    InsufficientDataError,
    InvalidFeatureVectorError,
    NotReadyError,
)
from src.anomaly.synthetic import NORMAL_RANGES, generate_samples


def _samples(count, seed=0):
    return generate_samples(NORMAL_RANGES, count, np.random.default_rng(seed))


class TestLifecycle:
    """Tests for training and readiness."""

    def test_untrained_detector_not_ready(self, small_config, typical_features):
        detector = AnomalyDetector(small_config)

        assert not detector.is_ready()
        with pytest.raises(NotReadyError):
            detector.detect(typical_features)
        with pytest.raises(NotReadyError):
            detector.detect_batch([typical_features])

    def test_train_with_nine_samples_fails(self, small_config):
        detector = AnomalyDetector(small_config)
        detector.update_model(_samples(9))

        with pytest.raises(InsufficientDataError):
            detector.train_model()
        assert not detector.is_ready()

    def test_train_with_ten_samples_succeeds(self, small_config):
        detector = AnomalyDetector(small_config)
        detector.update_model(_samples(10))

        model = detector.train_model()

        assert detector.is_ready()
        assert model.training_samples == 10
        assert detector.get_model_info()["last_training"] is not None

    def test_failed_training_keeps_previous_model(self, small_config):
        detector = AnomalyDetector(small_config)
        detector.update_model(_samples(10))
        previous = detector.train_model()

        detector.config.min_training_samples = 50
        with pytest.raises(InsufficientDataError):
            detector.train_model()

        assert detector.model is previous
        assert detector.is_ready()

    def test_cold_start_initialize(self, small_config):
        """With no persisted model and no samples, synthetic data makes it ready."""
        detector = AnomalyDetector(small_config)

        detector.initialize()

        assert detector.is_ready()
        assert detector.training_sample_count == 1050
        assert detector.model.training_samples == 1050

    def test_initialize_trains_on_real_samples(self, small_config):
        detector = AnomalyDetector(small_config)
        detector.update_model(_samples(40))

        detector.initialize()

        assert detector.is_ready()
        assert detector.training_sample_count == 40

    def test_initialize_uses_persisted_model(self, small_config):
        trained = AnomalyDetector(small_config)
        trained.update_model(_samples(20))
        persisted = trained.train_model()

        store = MagicMock()
        store.load_model.return_value = persisted
        detector = AnomalyDetector(small_config, store=store)

        detector.initialize()

        assert detector.model is persisted
        assert detector.training_sample_count == 0
        store.save_model.assert_not_called()

    def test_initialize_survives_store_failure(self, small_config):
        store = MagicMock()
        store.load_model.side_effect = ConnectionError("store down")
        detector = AnomalyDetector(small_config, store=store)

        detector.initialize()

        assert detector.is_ready()

    def test_training_saves_model(self, small_config):
        store = MagicMock()
        detector = AnomalyDetector(small_config, store=store)
        detector.update_model(_samples(10))

        model = detector.train_model()

        store.save_model.assert_called_once_with(model)

    def test_save_failure_does_not_fail_training(self, small_config):
        store = MagicMock()
        store.save_model.side_effect = ConnectionError("store down")
        detector = AnomalyDetector(small_config, store=store)
        detector.update_model(_samples(10))

        detector.train_model()

        assert detector.is_ready()


class TestUpdateModel:
    """Tests for buffering and retraining on new samples."""

    def test_small_update_only_buffers(self, small_config):
        detector = AnomalyDetector(small_config)

        retrained = detector.update_model(_samples(100))

        assert retrained is False
        assert not detector.is_ready()
        assert detector.training_sample_count == 100
        assert detector.samples_since_training == 100

    def test_large_update_retrains(self, small_config):
        detector = AnomalyDetector(small_config)

        retrained = detector.update_model(_samples(101))

        assert retrained is True
        assert detector.is_ready()
        assert detector.samples_since_training == 0

    def test_retrain_swaps_model(self, small_config):
        detector = AnomalyDetector(small_config)
        detector.update_model(_samples(150, seed=1))
        first = detector.model

        detector.update_model(_samples(150, seed=2))

        assert detector.model is not first
        assert detector.model.training_samples == 300

    def test_buffer_evicts_oldest(self):
        detector = AnomalyDetector(
            DetectorConfig(num_trees=5, subsample_size=16, max_training_samples=50, seed=0)
        )
        samples = _samples(60)

        detector.update_model(samples)

        assert detector.training_sample_count == 50
        assert list(detector._training_data)[0] == samples[10]

    def test_failed_retrain_is_reported_not_raised(self, small_config):
        detector = AnomalyDetector(small_config)
        bad = [{"confidence_score": "not a number"}] * 101

        assert detector.update_model(bad) is False
        assert not detector.is_ready()
        assert detector.training_sample_count == 0

        assert detector.update_model(_samples(101)) is True
        assert detector.is_ready()

    def test_invalid_sample_does_not_block_retraining(self, small_config):
        detector = AnomalyDetector(small_config)

        detector.update_model([{"confidence_score": "n/a"}])
        retrained = detector.update_model(_samples(101))

        assert retrained is True
        assert detector.model.training_samples == 101

    def test_invalid_samples_dropped_from_mixed_update(self, small_config):
        detector = AnomalyDetector(small_config)
        samples = _samples(20) + [{"severity_numeric": float("nan")}, [1.0, 2.0]]

        assert detector.update_model(samples) is False
        assert detector.training_sample_count == 20
        assert detector.samples_since_training == 20


class TestDetection:
    """Tests for detect and detect_batch on a trained model."""

    def test_result_fields(self, trained_detector, typical_features):
        result = trained_detector.detect(typical_features)

        assert 0 < result.isolation_score <= 1
        assert 0 <= result.statistical_score <= 1
        assert result.score == pytest.approx(
            0.7 * result.isolation_score + 0.3 * result.statistical_score
        )
        assert result.is_anomaly == (result.score > result.threshold)
        assert result.threshold == 0.6
        assert len(result.deviation.per_feature) == len(FEATURE_NAMES)

    def test_typical_record_is_normal(self, trained_detector, typical_features):
        result = trained_detector.detect(typical_features)

        assert not result.is_anomaly
        assert result.factors == []

    def test_suspicious_record_is_anomalous(self, trained_detector, suspicious_features):
        """Low confidence, high severity, stale indicator against a normal-only baseline."""
        result = trained_detector.detect(suspicious_features)

        assert result.is_anomaly
        assert result.factors
        top = result.factors[0]
        assert top.z_score == max(result.deviation.per_feature)
        assert top.feature == FEATURE_NAMES[
            result.deviation.per_feature.index(result.deviation.max_deviation)
        ]
        assert [f.z_score for f in result.factors] == sorted(
            (f.z_score for f in result.factors), reverse=True
        )

    def test_detect_and_batch_agree(
        self, trained_detector, typical_features, suspicious_features
    ):
        records = [typical_features, suspicious_features, {"confidence_score": 70}]

        batch = trained_detector.detect_batch(records)

        assert batch == [trained_detector.detect(record) for record in records]

    def test_single_item_batch_agrees(self, trained_detector, suspicious_features):
        assert trained_detector.detect_batch([suspicious_features])[0] == trained_detector.detect(
            suspicious_features
        )

    def test_empty_batch(self, trained_detector):
        assert trained_detector.detect_batch([]) == []

    def test_invalid_vector_rejected(self, trained_detector, typical_features):
        with pytest.raises(InvalidFeatureVectorError):
            trained_detector.detect([1.0, 2.0, 3.0])

        # The detector keeps serving
        assert trained_detector.detect(typical_features) is not None

    def test_invalid_record_in_batch_names_index(self, trained_detector, typical_features):
        with pytest.raises(InvalidFeatureVectorError, match="Record 1"):
            trained_detector.detect_batch([typical_features, [0.0] * 3])

    def test_model_info(self, trained_detector):
        info = trained_detector.get_model_info()

        assert info["ready"] is True
        assert info["training_samples"] == 1000
        assert info["threshold"] == 0.6
        assert info["isolation_forest"] == {
            "num_trees": 100,
            "subsample_size": 256,
            "max_depth": 8,
            "trained": True,
        }


class TestConcurrency:
    """Tests for detection while the model is retrained."""

    def test_detect_during_retraining(self, small_config, typical_features, suspicious_features):
        detector = AnomalyDetector(small_config)
        detector.update_model(_samples(150))
        initial = detector.model

        stop = threading.Event()
        results = []
        errors = []

        def score():
            while True:
                try:
                    results.append(detector.detect(typical_features))
                    results.extend(detector.detect_batch([typical_features, suspicious_features]))
                except Exception as e:
                    errors.append(e)
                if stop.is_set():
                    break

        reader = threading.Thread(target=score)
        reader.start()
        try:
            for seed in range(1, 6):
                assert detector.update_model(_samples(101, seed=seed)) is True
        finally:
            stop.set()
            reader.join(timeout=10)

        assert errors == []
        assert results
        assert all(0 < result.isolation_score <= 1 for result in results)
        assert detector.model is not initial
        assert detector.model.training_samples == 150 + 5 * 101
