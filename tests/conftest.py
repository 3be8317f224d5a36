"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime

import numpy as np
import pytest

from src.anomaly.detector import AnomalyDetector
from src.anomaly.models import DetectorConfig
from src.anomaly.synthetic import NORMAL_RANGES, generate_samples


# Anomaly fixtures
@pytest.fixture(scope="session")
def normal_samples():
    """1,000 samples drawn from the normal cold start ranges."""
    return generate_samples(NORMAL_RANGES, 1000, np.random.default_rng(7))


@pytest.fixture(scope="session")
def trained_detector(normal_samples):
    """Detector trained only on normal samples. Read-only: do not retrain."""
    detector = AnomalyDetector(DetectorConfig(seed=42))
    detector.update_model(normal_samples)
    assert detector.is_ready()
    return detector


@pytest.fixture
def small_config():
    """Small, seeded forest for fast lifecycle tests."""
    return DetectorConfig(num_trees=10, subsample_size=32, seed=1)


@pytest.fixture
def typical_features():
    """A feature record in the middle of the normal ranges."""
    return {
        "confidence_score": 80,
        "severity_numeric": 0.5,
        "temporal_score": 0.6,
        "source_reputation": 0.8,
        "indicator_frequency": 6,
        "geographic_risk": 0.5,
        "network_entropy": 0.5,
        "behavioral_score": 0.5,
        "correlation_count": 3,
        "threat_actor_score": 0.45,
    }


@pytest.fixture
def suspicious_features():
    """Low confidence, high severity, stale, everything else at anomalous extremes."""
    return {
        "confidence_score": 15,
        "severity_numeric": 0.9,
        "temporal_score": 0.05,
        "source_reputation": 0.05,
        "indicator_frequency": 60,
        "geographic_risk": 1.0,
        "network_entropy": 1.0,
        "behavioral_score": 1.0,
        "correlation_count": 25,
        "threat_actor_score": 1.0,
    }


# Analysis fixtures
@pytest.fixture
def now():
    return datetime(2025, 10, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
def threat_record():
    """Pipeline envelope around a threat intelligence record."""
    return {
        "source": "threat-feed",
        "data": {
            "id": "ti-0001",
            "severity_level": "high",
            "confidence_score": 75,
            "last_seen": None,
        },
    }
