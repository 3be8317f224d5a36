"""
Synthetic training data for cold start.

When no persisted model and no real history exist, the detector trains on
samples drawn from these range tables so it is never left unusable. The
tables are plain data: tune them here without touching the algorithm.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass(frozen=True)
class FeatureRange:
    """Uniform sampling range for one feature"""

    low: float
    high: float
    integer: bool = False  # draw integers in [low, high]

    def sample(self, rng: np.random.Generator) -> float:
        if self.integer:
            return int(rng.integers(int(self.low), int(self.high) + 1))
        return float(rng.uniform(self.low, self.high))


# Plausible threat intelligence
NORMAL_RANGES: dict[str, FeatureRange] = {
    "confidence_score": FeatureRange(60, 100),
    "severity_numeric": FeatureRange(0.2, 0.8),
    "temporal_score": FeatureRange(0.2, 1.0),
    "source_reputation": FeatureRange(0.6, 1.0),
    "indicator_frequency": FeatureRange(1, 11),
    "geographic_risk": FeatureRange(0.2, 0.8),
    "network_entropy": FeatureRange(0.1, 0.9),
    "behavioral_score": FeatureRange(0.2, 0.8),
    "correlation_count": FeatureRange(1, 5, integer=True),
    "threat_actor_score": FeatureRange(0.1, 0.8),
}


# Caricature of malicious indicators
ANOMALOUS_RANGES: dict[str, FeatureRange] = {
    "confidence_score": FeatureRange(10, 30),  # very low confidence
    "severity_numeric": FeatureRange(0.7, 1.0),  # very high severity
    "temporal_score": FeatureRange(0.0, 0.2),  # very old
    "source_reputation": FeatureRange(0.0, 0.3),
    "indicator_frequency": FeatureRange(20, 70),
    "geographic_risk": FeatureRange(0.7, 1.0),
    "network_entropy": FeatureRange(0.8, 1.0),
    "behavioral_score": FeatureRange(0.7, 1.0),
    "correlation_count": FeatureRange(10, 29, integer=True),
    "threat_actor_score": FeatureRange(0.7, 1.0),
}


def generate_samples(
    ranges: dict[str, FeatureRange], count: int, rng: np.random.Generator
) -> list[dict[str, Any]]:
    """Draw count samples, one value per feature range"""
    return [{name: bounds.sample(rng) for name, bounds in ranges.items()} for _ in range(count)]


def generate_cold_start_samples(
    rng: np.random.Generator, normal_count: int = 1000, anomalous_count: int = 50
) -> list[dict[str, Any]]:
    """Normal samples followed by a small share of anomalous ones"""
    return generate_samples(NORMAL_RANGES, normal_count, rng) + generate_samples(
        ANOMALOUS_RANGES, anomalous_count, rng
    )
