"""
Risk assessment, composite scoring and recommendation rules.

All functions are pure: given the same signals they return the same scores.
"""

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Optional

import structlog

from src.anomaly.models import AnomalyResult

from .models import (
    AnalysisConfig,
    BehavioralAnalysis,
    CompositeWeights,
    Recommendation,
    RiskAssessment,
    ThreatClassification,
)

logger = structlog.get_logger(__name__)

SEVERITY_SCORES = {
    "critical": 1.0,
    "high": 0.8,
    "medium": 0.6,
    "low": 0.4,
    "info": 0.2,
}
DEFAULT_SEVERITY_SCORE = 0.6

THREAT_TYPE_MULTIPLIERS = {
    "ransomware": 1.5,
    "apt": 1.3,
    "malware": 1.2,
    "botnet": 1.2,
    "phishing": 1.1,
}

PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

# (max hours since last seen, relevance)
TEMPORAL_RELEVANCE = [
    (1, 1.0),
    (24, 0.8),
    (168, 0.6),
]
STALE_RELEVANCE = 0.4
UNKNOWN_RELEVANCE = 0.5


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores"""
    return int(math.floor(value + 0.5))


def map_severity_to_score(severity: Optional[str]) -> float:
    if not isinstance(severity, str):
        return DEFAULT_SEVERITY_SCORE
    return SEVERITY_SCORES.get(severity.lower(), DEFAULT_SEVERITY_SCORE)


def map_score_to_risk_level(score: float) -> str:
    """Bucket a [0, 1] risk score"""
    if score >= 0.8:
        return "critical"
    if score >= 0.6:
        return "high"
    if score >= 0.4:
        return "medium"
    return "low"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Datetime, ISO 8601 string or epoch milliseconds"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.debug("Out of range last_seen timestamp", value=value)
            return None
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable last_seen timestamp", value=value)
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def calculate_temporal_relevance(last_seen: Any, now: Optional[datetime] = None) -> float:
    """Recent threats are more relevant"""
    seen_at = _parse_timestamp(last_seen)
    if seen_at is None:
        return UNKNOWN_RELEVANCE

    now = now or datetime.now(UTC)
    hours_since = (now - seen_at).total_seconds() / 3600

    for max_hours, relevance in TEMPORAL_RELEVANCE:
        if hours_since <= max_hours:
            return relevance
    return STALE_RELEVANCE


def calculate_mitigation_priority(risk_score: int, threat_type: Optional[str]) -> int:
    """Risk on a 0-10 scale, boosted for threat types that spread or persist"""
    multiplier = THREAT_TYPE_MULTIPLIERS.get(threat_type or "", 1.0)
    priority = round_half_up(risk_score / 10 * multiplier)
    return max(0, min(10, priority))


def calculate_risk_assessment(
    payload: Mapping[str, Any],
    anomaly: AnomalyResult,
    classification: ThreatClassification,
    behavioral: BehavioralAnalysis,
    config: AnalysisConfig,
    now: Optional[datetime] = None,
) -> RiskAssessment:
    """Weighted sum of severity, confidence, anomaly, behavioral, temporal and asset factors

    Args:
        payload: Threat record fields (severity_level, confidence_score, last_seen)
    """
    weights = config.risk_weights

    confidence = payload.get("confidence_score")
    if confidence is None:
        confidence = config.default_confidence_score

    factors = {
        "severity": map_severity_to_score(payload.get("severity_level")),
        "confidence": float(confidence) / 100,
        "anomaly": anomaly.score if anomaly.is_anomaly else config.default_anomaly_score,
        "behavioral": (
            behavioral.deviation_score
            if behavioral.deviation_score is not None
            else config.default_behavioral_score
        ),
        "temporal": calculate_temporal_relevance(payload.get("last_seen"), now=now),
        "asset_criticality": config.asset_criticality,
    }

    weighted_score = (
        factors["severity"] * weights.severity
        + factors["confidence"] * weights.confidence
        + factors["anomaly"] * weights.anomaly
        + factors["behavioral"] * weights.behavioral
        + factors["temporal"] * weights.temporal
        + factors["asset_criticality"] * weights.asset_criticality
    )

    risk_score = round_half_up(weighted_score * 100)

    return RiskAssessment(
        risk_score=risk_score,
        risk_level=map_score_to_risk_level(risk_score / 100),
        contributing_factors=factors,
        mitigation_priority=calculate_mitigation_priority(
            risk_score, classification.threat_type
        ),
    )


def population_variance(values: list[float]) -> float:
    mean = sum(values) / len(values)
    return sum((value - mean) ** 2 for value in values) / len(values)


def calculate_composite_score(
    risk_score: int,
    anomaly_score: float,
    classification_confidence: float,
    behavioral_score: float,
    weights: CompositeWeights,
) -> tuple[int, int]:
    """Fuse the four signals into a composite score and a confidence level

    The confidence level is high when the normalized signals agree
    (low population variance) and never drops below 10.

    Returns:
        (composite_score, confidence_level), both on a 0-100 scale
    """
    components = [
        risk_score / 100,
        anomaly_score,
        classification_confidence / 100,
        behavioral_score,
    ]

    composite = (
        components[0] * weights.risk
        + components[1] * weights.anomaly
        + components[2] * weights.classification
        + components[3] * weights.behavioral
    )

    confidence = max(0.1, 1 - population_variance(components))

    return round_half_up(composite * 100), round_half_up(confidence * 100)


def generate_recommendations(
    risk_score: int, is_anomaly: bool, threat_type: Optional[str]
) -> list[Recommendation]:
    """Rule-based remediation steps, most urgent first"""
    recommendations = []

    if risk_score >= 80:
        recommendations.append(
            Recommendation(
                priority="critical",
                action="immediate_investigation",
                description="Immediate investigation required due to high risk score",
                automated=False,
            )
        )
        recommendations.append(
            Recommendation(
                priority="critical",
                action="isolate_affected_assets",
                description="Consider isolating affected network segments or assets",
                automated=True,
            )
        )

    if is_anomaly:
        recommendations.append(
            Recommendation(
                priority="high",
                action="behavioral_analysis",
                description="Conduct detailed behavioral analysis of anomalous activity",
                automated=False,
            )
        )

    if threat_type == "malware":
        recommendations.append(
            Recommendation(
                priority="high",
                action="antivirus_scan",
                description="Initiate comprehensive antivirus scan on affected systems",
                automated=True,
            )
        )
    elif threat_type == "phishing":
        recommendations.append(
            Recommendation(
                priority="medium",
                action="user_awareness",
                description="Send security awareness notification to potentially affected users",
                automated=True,
            )
        )

    recommendations.append(
        Recommendation(
            priority="low",
            action="update_threat_intelligence",
            description="Update threat intelligence feeds with new indicators",
            automated=True,
        )
    )

    # sorted() is stable, rules keep their order within a priority
    return sorted(recommendations, key=lambda rec: PRIORITY_ORDER[rec.priority])
