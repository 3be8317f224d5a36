"""
Data models and configuration for composite threat analysis.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from src.anomaly.models import AnomalyResult
from src.core.settings import env_float, env_int


@dataclass
class RiskWeights:
    """Weights of the six risk factors (sum to 1)"""

    severity: float = 0.25
    confidence: float = 0.20
    anomaly: float = 0.20
    behavioral: float = 0.15
    temporal: float = 0.10
    asset_criticality: float = 0.10

    @classmethod
    def from_env(cls) -> "RiskWeights":
        defaults = cls()
        return cls(
            severity=env_float("RISK_WEIGHT_SEVERITY", defaults.severity),
            confidence=env_float("RISK_WEIGHT_CONFIDENCE", defaults.confidence),
            anomaly=env_float("RISK_WEIGHT_ANOMALY", defaults.anomaly),
            behavioral=env_float("RISK_WEIGHT_BEHAVIORAL", defaults.behavioral),
            temporal=env_float("RISK_WEIGHT_TEMPORAL", defaults.temporal),
            asset_criticality=env_float(
                "RISK_WEIGHT_ASSET_CRITICALITY", defaults.asset_criticality
            ),
        )


@dataclass
class CompositeWeights:
    """Weights of the four signals in the composite score"""

    risk: float = 0.4
    anomaly: float = 0.25
    classification: float = 0.25
    behavioral: float = 0.1

    @classmethod
    def from_env(cls) -> "CompositeWeights":
        defaults = cls()
        return cls(
            risk=env_float("COMPOSITE_WEIGHT_RISK", defaults.risk),
            anomaly=env_float("COMPOSITE_WEIGHT_ANOMALY", defaults.anomaly),
            classification=env_float(
                "COMPOSITE_WEIGHT_CLASSIFICATION", defaults.classification
            ),
            behavioral=env_float("COMPOSITE_WEIGHT_BEHAVIORAL", defaults.behavioral),
        )


@dataclass
class AnalysisConfig:
    """Configuration for the analysis engine"""

    risk_weights: RiskWeights = field(default_factory=RiskWeights)
    composite_weights: CompositeWeights = field(default_factory=CompositeWeights)

    # Neutral values used when a signal is missing
    default_anomaly_score: float = 0.3  # risk contribution when not flagged
    default_behavioral_score: float = 0.5
    default_confidence_score: float = 50.0
    asset_criticality: float = 0.7  # until an asset inventory is wired in

    # Batch processing
    batch_size: int = 100
    batch_interval_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Build configuration from environment variables"""
        defaults = cls()
        return cls(
            risk_weights=RiskWeights.from_env(),
            composite_weights=CompositeWeights.from_env(),
            asset_criticality=env_float("ASSET_CRITICALITY", defaults.asset_criticality),
            batch_size=env_int("BATCH_SIZE", defaults.batch_size),
            batch_interval_seconds=env_float(
                "BATCH_INTERVAL_SECONDS", defaults.batch_interval_seconds
            ),
        )


@dataclass(frozen=True)
class ThreatClassification:
    """Output of the external threat classifier"""

    threat_type: str = "unknown"
    confidence: float = 0.0  # 0-100
    probability_distribution: dict[str, float] = field(default_factory=dict)
    attack_vectors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BehavioralAnalysis:
    """Output of the external behavioral analyzer"""

    behavior_pattern: Optional[str] = None
    temporal_analysis: dict[str, Any] = field(default_factory=dict)
    network_behavior: dict[str, Any] = field(default_factory=dict)
    user_behavior: dict[str, Any] = field(default_factory=dict)
    deviation_score: Optional[float] = None  # 0-1


@dataclass(frozen=True)
class RiskAssessment:
    """Weighted risk of a threat record"""

    risk_score: int  # 0-100
    risk_level: str  # critical | high | medium | low
    contributing_factors: dict[str, float]
    mitigation_priority: int  # 0-10


@dataclass(frozen=True)
class Recommendation:
    """A remediation step"""

    priority: str  # critical | high | medium | low
    action: str
    description: str
    automated: bool


@dataclass(frozen=True)
class ThreatAnalysis:
    """Fused analysis of one threat record"""

    threat_id: str
    risk_assessment: RiskAssessment
    anomaly_detection: AnomalyResult
    threat_classification: ThreatClassification
    behavioral_analysis: BehavioralAnalysis
    composite_score: int
    confidence_level: int
    recommendations: list[Recommendation] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)  # collaborators replaced by defaults

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization"""
        return asdict(self)
