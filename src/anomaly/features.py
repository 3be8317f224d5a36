"""
Fixed feature layout shared by every consumer of feature vectors.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd

from .models import InvalidFeatureVectorError

FEATURE_NAMES: tuple[str, ...] = (
    "confidence_score",
    "severity_numeric",
    "temporal_score",
    "source_reputation",
    "indicator_frequency",
    "geographic_risk",
    "network_entropy",
    "behavioral_score",
    "correlation_count",
    "threat_actor_score",
)

NUM_FEATURES = len(FEATURE_NAMES)


def to_vector(features: Mapping[str, Any] | Sequence[float]) -> np.ndarray:
    """Encode one record as a float vector in FEATURE_NAMES order

    Mappings are read by name, with missing or null features encoded as 0.
    Sequences are taken as already ordered and must have NUM_FEATURES entries.

    Raises:
        InvalidFeatureVectorError: If the record cannot be encoded
    """
    if isinstance(features, Mapping):
        values = [features.get(name) for name in FEATURE_NAMES]
        values = [0.0 if value is None else value for value in values]
    elif isinstance(features, (Sequence, np.ndarray)) and not isinstance(features, str):
        values = list(features)
        if len(values) != NUM_FEATURES:
            raise InvalidFeatureVectorError(
                f"Expected {NUM_FEATURES} features, got {len(values)}"
            )
    else:
        raise InvalidFeatureVectorError(f"Unsupported feature container: {type(features)!r}")

    try:
        vector = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidFeatureVectorError(f"Non-numeric feature value: {e}") from e

    if not np.all(np.isfinite(vector)):
        raise InvalidFeatureVectorError("Feature vector contains NaN or infinite values")

    return vector


def to_matrix(samples: Sequence[Mapping[str, Any]]) -> np.ndarray:
    """Encode a list of feature mappings as an (n, NUM_FEATURES) matrix"""
    if len(samples) == 0:
        return np.empty((0, NUM_FEATURES), dtype=float)

    frame = pd.DataFrame(list(samples)).reindex(columns=list(FEATURE_NAMES))
    try:
        matrix = frame.fillna(0.0).to_numpy(dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidFeatureVectorError(f"Non-numeric feature value in samples: {e}") from e

    return matrix
