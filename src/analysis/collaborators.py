"""
Contracts of the external collaborators the engine depends on.

Feature extraction, threat classification and behavioral analysis live
outside this package. The engine reaches them only through these protocols;
the neutral implementations below keep the engine usable when none is wired.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from src.anomaly.features import FEATURE_NAMES
from src.anomaly.models import InvalidFeatureVectorError


class FeatureExtractor(Protocol):
    def extract(self, record: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return a mapping of named numeric features for the record"""
        ...


class ThreatClassifier(Protocol):
    def classify(self, features: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return {type, confidence (0-100), probabilities, vectors}"""
        ...


class BehavioralAnalyzer(Protocol):
    def analyze(self, record: Mapping[str, Any], features: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return {pattern, temporal, network, user, deviation_score (0-1)}"""
        ...


class RecordFeatureExtractor:
    """Reads precomputed features from a record

    Looks in record["features"] first, then at the top level of the record.
    """

    def extract(self, record: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(record, Mapping):
            raise InvalidFeatureVectorError(
                f"Record must be a mapping, got {type(record).__name__}"
            )

        source = record.get("features")
        if not isinstance(source, Mapping):
            source = record
        return {name: source.get(name) for name in FEATURE_NAMES}


class UnknownThreatClassifier:
    """Classifier that never commits to a threat type"""

    def classify(self, features: Mapping[str, Any]) -> dict[str, Any]:
        return {"type": "unknown", "confidence": 0.0, "probabilities": {}, "vectors": []}


class NeutralBehavioralAnalyzer:
    """Analyzer reporting no behavioral deviation information"""

    def analyze(self, record: Mapping[str, Any], features: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "pattern": None,
            "temporal": {},
            "network": {},
            "user": {},
            "deviation_score": None,
        }
