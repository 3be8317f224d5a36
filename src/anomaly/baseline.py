"""
Per-feature statistical baseline (z-score and IQR fences).

Complements the isolation forest with a signal that is easy to explain:
which features sit far from their training distribution.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .features import FEATURE_NAMES
from .models import AnomalyFactor, BaselineDeviation, InvalidFeatureVectorError

Z_SCORE_NORMALIZER = 3.0
FACTOR_Z_THRESHOLD = 2.0
IQR_FENCE = 1.5
Z_SCORE_WEIGHT = 0.7
IQR_WEIGHT = 0.3
NEUTRAL_SCORE = 0.5


@dataclass(frozen=True)
class StatisticalBaseline:
    """Mean, standard deviation and quartiles for each feature"""

    means: tuple[float, ...] = ()
    stds: tuple[float, ...] = ()
    quantiles: tuple[dict[str, float], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not (len(self.means) == len(self.stds) == len(self.quantiles)):
            raise ValueError("Baseline arrays must have equal length")

    @classmethod
    def fit(cls, matrix: np.ndarray) -> "StatisticalBaseline":
        """Compute a fresh baseline from a training matrix

        Quartiles are read from the sorted column at floor(n * q).
        """
        data = np.asarray(matrix, dtype=float)
        if data.ndim != 2 or data.shape[0] == 0:
            raise ValueError(f"Training matrix must be 2D and non-empty, got shape {data.shape}")

        n = data.shape[0]
        means = data.mean(axis=0)
        stds = data.std(axis=0)  # population std
        ordered = np.sort(data, axis=0)

        q1_index = int(np.floor(n * 0.25))
        median_index = int(np.floor(n * 0.5))
        q3_index = int(np.floor(n * 0.75))

        quantiles = tuple(
            {
                "q1": float(ordered[q1_index, i]),
                "median": float(ordered[median_index, i]),
                "q3": float(ordered[q3_index, i]),
            }
            for i in range(data.shape[1])
        )

        return cls(
            means=tuple(float(m) for m in means),
            stds=tuple(float(s) for s in stds),
            quantiles=quantiles,
        )

    @property
    def num_features(self) -> int:
        return len(self.means)

    @property
    def is_empty(self) -> bool:
        return self.num_features == 0

    def _check(self, vector: np.ndarray) -> None:
        if len(vector) != self.num_features:
            raise InvalidFeatureVectorError(
                f"Feature vector has {len(vector)} values, baseline expects {self.num_features}"
            )

    def z_scores(self, vector: np.ndarray) -> list[float]:
        """Absolute z-score per feature, 0 where the feature had no variance"""
        self._check(vector)
        return [
            abs((float(value) - mean) / std) if std > 0 else 0.0
            for value, mean, std in zip(vector, self.means, self.stds)
        ]

    def score(self, vector: np.ndarray) -> float:
        """Statistical anomaly score in [0, 1]

        Each feature contributes 0.7 * min(1, |z| / 3) plus 0.3 when the value
        falls outside the Q1 - 1.5 IQR / Q3 + 1.5 IQR fences.
        """
        if self.is_empty:
            return NEUTRAL_SCORE

        z_scores = self.z_scores(vector)
        total = 0.0
        for value, z, quantile in zip(vector, z_scores, self.quantiles):
            z_anomaly = min(1.0, z / Z_SCORE_NORMALIZER)

            iqr = quantile["q3"] - quantile["q1"]
            lower = quantile["q1"] - IQR_FENCE * iqr
            upper = quantile["q3"] + IQR_FENCE * iqr
            iqr_anomaly = 1.0 if (value < lower or value > upper) else 0.0

            total += z_anomaly * Z_SCORE_WEIGHT + iqr_anomaly * IQR_WEIGHT

        return total / len(vector)

    def factors(self, vector: np.ndarray) -> list[AnomalyFactor]:
        """Features with |z| above 2, most deviant first"""
        if self.is_empty:
            return []

        z_scores = self.z_scores(vector)
        found = []
        for i, (value, z) in enumerate(zip(vector, z_scores)):
            if self.stds[i] > 0 and z > FACTOR_Z_THRESHOLD:
                found.append(
                    AnomalyFactor(
                        feature=FEATURE_NAMES[i] if i < len(FEATURE_NAMES) else f"feature_{i}",
                        value=float(value),
                        expected_mean=self.means[i],
                        z_score=z,
                        deviation_type="above_normal" if value > self.means[i] else "below_normal",
                    )
                )

        return sorted(found, key=lambda factor: factor.z_score, reverse=True)

    def deviation(self, vector: np.ndarray) -> BaselineDeviation:
        """Mean and max absolute z-score across features"""
        if self.is_empty:
            return BaselineDeviation(overall=0.0)

        z_scores = self.z_scores(vector)
        return BaselineDeviation(
            overall=sum(z_scores) / len(z_scores),
            per_feature=z_scores,
            max_deviation=max(z_scores),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "means": list(self.means),
            "stds": list(self.stds),
            "quantiles": [dict(q) for q in self.quantiles],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatisticalBaseline":
        return cls(
            means=tuple(float(m) for m in data["means"]),
            stds=tuple(float(s) for s in data["stds"]),
            quantiles=tuple(
                {key: float(value) for key, value in q.items()} for q in data["quantiles"]
            ),
        )
