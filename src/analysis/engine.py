"""
Composite threat analysis engine.

Fuses four signals for every threat record:
1. Anomaly detection (isolation forest + statistical baseline)
2. Threat classification (external classifier)
3. Behavioral analysis (external analyzer)
4. Risk assessment computed here from the record and the signals above

and turns them into a composite score, a confidence level and ranked
recommendations. Records submitted for bulk scoring are buffered and drained
through the detector's batch path on a fixed interval.
"""

import threading
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Optional

import structlog

from src.anomaly.detector import AnomalyDetector
from src.anomaly.features import to_vector
from src.anomaly.models import AnomalyResult, InvalidFeatureVectorError, NotReadyError

from .batch import BatchProcessor
from .collaborators import (
    BehavioralAnalyzer,
    FeatureExtractor,
    NeutralBehavioralAnalyzer,
    RecordFeatureExtractor,
    ThreatClassifier,
    UnknownThreatClassifier,
)
from .models import AnalysisConfig, BehavioralAnalysis, ThreatAnalysis, ThreatClassification
from .scoring import (
    calculate_composite_score,
    calculate_risk_assessment,
    generate_recommendations,
)

logger = structlog.get_logger(__name__)

ENGINE_VERSION = "1.0.0"


class AnalysisEngine:
    """Multi-signal threat analysis"""

    def __init__(
        self,
        detector: Optional[AnomalyDetector] = None,
        classifier: Optional[ThreatClassifier] = None,
        behavioral_analyzer: Optional[BehavioralAnalyzer] = None,
        feature_extractor: Optional[FeatureExtractor] = None,
        config: Optional[AnalysisConfig] = None,
    ):
        self.config = config or AnalysisConfig()
        self.detector = detector or AnomalyDetector()
        self.classifier = classifier or UnknownThreatClassifier()
        self.behavioral_analyzer = behavioral_analyzer or NeutralBehavioralAnalyzer()
        self.feature_extractor = feature_extractor or RecordFeatureExtractor()

        self.batch_processor = BatchProcessor(
            handler=self.process_batch,
            batch_size=self.config.batch_size,
            interval_seconds=self.config.batch_interval_seconds,
        )

        self._ready = False
        self.stats = {
            "messages_processed": 0,
            "anomalies_detected": 0,
            "degraded_analyses": 0,
            "batch_items": 0,
            "batch_items_rejected": 0,
        }
        self._stats_lock = threading.Lock()

        logger.info(
            "Analysis engine created",
            classifier=type(self.classifier).__name__,
            behavioral_analyzer=type(self.behavioral_analyzer).__name__,
            batch_size=self.config.batch_size,
        )

    def initialize(self, start_batching: bool = True) -> None:
        """Make the detector ready and start the batch timer"""
        logger.info("Initializing analysis engine")

        if not self.detector.is_ready():
            self.detector.initialize()

        if start_batching:
            self.batch_processor.start()

        self._ready = True
        logger.info("Analysis engine initialized")

    def is_ready(self) -> bool:
        return self._ready and self.detector.is_ready()

    def analyze_data(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Extract features from a record and analyze it

        Raises:
            NotReadyError: If the engine has not been initialized
        """
        if not self.is_ready():
            raise NotReadyError("Analysis engine not ready")

        start_time = time.time()
        features = self.feature_extractor.extract(record)
        analysis = self.perform_analysis(record, features)

        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "analysis": analysis,
            "processing_time_ms": round((time.time() - start_time) * 1000, 2),
            "engine_version": ENGINE_VERSION,
        }

    def perform_analysis(
        self, record: Mapping[str, Any], features: Mapping[str, Any]
    ) -> ThreatAnalysis:
        """Fuse anomaly, classification, behavioral and risk signals

        Collaborator failures are replaced by neutral defaults and listed in
        ThreatAnalysis.degraded. Detector errors propagate.
        """
        payload = self._payload(record)
        degraded = []

        # 1. Anomaly detection
        anomaly = self.detector.detect(features)

        # 2. Threat classification
        classification = self._classify(features, degraded)

        # 3. Behavioral analysis
        behavioral = self._analyze_behavior(record, features, degraded)

        # 4. Risk assessment
        risk = calculate_risk_assessment(
            payload, anomaly, classification, behavioral, self.config
        )

        # 5. Composite scoring
        behavioral_score = (
            behavioral.deviation_score
            if behavioral.deviation_score is not None
            else self.config.default_behavioral_score
        )
        composite_score, confidence_level = calculate_composite_score(
            risk_score=risk.risk_score,
            anomaly_score=anomaly.score,
            classification_confidence=classification.confidence,
            behavioral_score=behavioral_score,
            weights=self.config.composite_weights,
        )

        # 6. Recommendations
        recommendations = generate_recommendations(
            risk.risk_score, anomaly.is_anomaly, classification.threat_type
        )

        analysis = ThreatAnalysis(
            threat_id=self._threat_id(payload),
            risk_assessment=risk,
            anomaly_detection=anomaly,
            threat_classification=classification,
            behavioral_analysis=behavioral,
            composite_score=composite_score,
            confidence_level=confidence_level,
            recommendations=recommendations,
            degraded=degraded,
        )

        self._record_metrics(analysis)
        return analysis

    def submit(self, record: Mapping[str, Any]) -> int:
        """Queue a record for batch scoring, returns the buffer size"""
        return self.batch_processor.add(record)

    def process_batch(self, batch: list[Mapping[str, Any]]) -> list[AnomalyResult]:
        """Score a drained batch with a single forest pass

        Records that do not encode as feature vectors are logged and left
        out, the rest of the batch is still scored.

        Returns:
            Results for the accepted records, in batch order
        """
        features = []
        for index, record in enumerate(batch):
            try:
                extracted = self.feature_extractor.extract(record)
                to_vector(extracted)
            except InvalidFeatureVectorError as e:
                logger.warning("Batch record rejected", index=index, error=str(e))
                continue
            features.append(extracted)

        results = self.detector.detect_batch(features)
        rejected = len(batch) - len(features)
        anomalies = sum(1 for result in results if result.is_anomaly)

        with self._stats_lock:
            self.stats["batch_items"] += len(features)
            self.stats["batch_items_rejected"] += rejected
            self.stats["anomalies_detected"] += anomalies

        logger.info("Batch scored", items=len(features), rejected=rejected, anomalies=anomalies)
        return results

    def get_stats(self) -> dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)

    def get_status(self) -> dict[str, Any]:
        return {
            "ready": self.is_ready(),
            "models": {
                "anomaly_detector": self.detector.is_ready(),
                "threat_classifier": type(self.classifier).__name__,
                "behavioral_analyzer": type(self.behavioral_analyzer).__name__,
            },
            "batch_buffer_size": self.batch_processor.pending,
            "batch_stats": self.batch_processor.get_stats(),
            "stats": self.get_stats(),
            "model_info": self.detector.get_model_info(),
        }

    def shutdown(self, flush: bool = True) -> None:
        """Stop the batch timer, optionally draining what is buffered"""
        self.batch_processor.stop()
        if flush:
            self.batch_processor.flush()
        self._ready = False
        logger.info("Analysis engine stopped", stats=self.get_stats())

    def _classify(
        self, features: Mapping[str, Any], degraded: list[str]
    ) -> ThreatClassification:
        try:
            result = self.classifier.classify(features)
            return ThreatClassification(
                threat_type=result.get("type") or "unknown",
                confidence=float(result.get("confidence") or 0.0),
                probability_distribution=dict(result.get("probabilities") or {}),
                attack_vectors=list(result.get("vectors") or []),
            )
        except Exception as e:
            logger.warning("Threat classifier failed, using defaults", error=str(e))
            degraded.append("threat_classifier")
            return ThreatClassification()

    def _analyze_behavior(
        self, record: Mapping[str, Any], features: Mapping[str, Any], degraded: list[str]
    ) -> BehavioralAnalysis:
        try:
            result = self.behavioral_analyzer.analyze(record, features)
            deviation = result.get("deviation_score")
            return BehavioralAnalysis(
                behavior_pattern=result.get("pattern"),
                temporal_analysis=dict(result.get("temporal") or {}),
                network_behavior=dict(result.get("network") or {}),
                user_behavior=dict(result.get("user") or {}),
                deviation_score=float(deviation) if deviation is not None else None,
            )
        except Exception as e:
            logger.warning("Behavioral analyzer failed, using defaults", error=str(e))
            degraded.append("behavioral_analyzer")
            return BehavioralAnalysis()

    def _record_metrics(self, analysis: ThreatAnalysis) -> None:
        with self._stats_lock:
            self.stats["messages_processed"] += 1
            if analysis.anomaly_detection.is_anomaly:
                self.stats["anomalies_detected"] += 1
            if analysis.degraded:
                self.stats["degraded_analyses"] += 1

        logger.debug(
            "Threat analyzed",
            threat_id=analysis.threat_id,
            risk_score=analysis.risk_assessment.risk_score,
            composite_score=analysis.composite_score,
            confidence_level=analysis.confidence_level,
            is_anomaly=analysis.anomaly_detection.is_anomaly,
            degraded=analysis.degraded,
        )

    @staticmethod
    def _payload(record: Mapping[str, Any]) -> Mapping[str, Any]:
        """Threat fields live under "data" in pipeline envelopes"""
        inner = record.get("data")
        return inner if isinstance(inner, Mapping) else record

    @staticmethod
    def _threat_id(payload: Mapping[str, Any]) -> str:
        threat_id = payload.get("id")
        if threat_id:
            return str(threat_id)
        return f"analysis_{int(time.time() * 1000)}"
