"""
Tests for feature vector encoding.
"""

import numpy as np
import pytest

from src.anomaly.features import FEATURE_NAMES, NUM_FEATURES, to_matrix, to_vector
from src.anomaly.models import InvalidFeatureVectorError


class TestFeatureLayout:
    """Tests for the fixed feature order."""

    def test_ten_features_in_order(self):
        assert NUM_FEATURES == 10
        assert FEATURE_NAMES[0] == "confidence_score"
        assert FEATURE_NAMES[-1] == "threat_actor_score"
        assert len(set(FEATURE_NAMES)) == NUM_FEATURES


class TestToVector:
    """Tests for to_vector."""

    def test_mapping_in_feature_order(self, typical_features):
        vector = to_vector(typical_features)

        assert vector.tolist() == [float(typical_features[name]) for name in FEATURE_NAMES]

    def test_missing_and_null_features_are_zero(self):
        vector = to_vector({"confidence_score": 50, "severity_numeric": None})

        assert vector[0] == 50.0
        assert np.count_nonzero(vector) == 1

    def test_extra_keys_ignored(self, typical_features):
        vector = to_vector({**typical_features, "unrelated": "text"})

        assert len(vector) == NUM_FEATURES

    def test_sequence_of_right_length(self):
        assert to_vector(list(range(10))).tolist() == [float(i) for i in range(10)]

    def test_sequence_of_wrong_length(self):
        with pytest.raises(InvalidFeatureVectorError):
            to_vector([1.0, 2.0, 3.0])

    def test_non_numeric_value(self):
        with pytest.raises(InvalidFeatureVectorError):
            to_vector({"confidence_score": "very high"})

    def test_non_finite_value(self):
        with pytest.raises(InvalidFeatureVectorError):
            to_vector({"confidence_score": float("nan")})

    def test_unsupported_container(self):
        with pytest.raises(InvalidFeatureVectorError):
            to_vector("confidence_score")


class TestToMatrix:
    """Tests for to_matrix."""

    def test_rows_match_to_vector(self, typical_features):
        samples = [typical_features, {"confidence_score": 10}]
        matrix = to_matrix(samples)

        assert matrix.shape == (2, NUM_FEATURES)
        assert matrix[0].tolist() == to_vector(typical_features).tolist()
        assert matrix[1].tolist() == to_vector({"confidence_score": 10}).tolist()

    def test_empty(self):
        assert to_matrix([]).shape == (0, NUM_FEATURES)
