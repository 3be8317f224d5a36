"""
Threat Analysis

Fuses anomaly detection with external classification and behavioral signals
into a risk assessment, a composite score and ranked recommendations.

Usage:
    # Analyze a file of threat records
    python -m src.analysis.analyze records.jsonl
"""

from .batch import BatchProcessor
from .collaborators import (
    BehavioralAnalyzer,
    FeatureExtractor,
    NeutralBehavioralAnalyzer,
    RecordFeatureExtractor,
    ThreatClassifier,
    UnknownThreatClassifier,
)
from .engine import AnalysisEngine
from .models import (
    AnalysisConfig,
    BehavioralAnalysis,
    CompositeWeights,
    Recommendation,
    RiskAssessment,
    RiskWeights,
    ThreatAnalysis,
    ThreatClassification,
)

__all__ = [
    "AnalysisConfig",
    "AnalysisEngine",
    "BatchProcessor",
    "BehavioralAnalysis",
    "BehavioralAnalyzer",
    "CompositeWeights",
    "FeatureExtractor",
    "NeutralBehavioralAnalyzer",
    "Recommendation",
    "RecordFeatureExtractor",
    "RiskAssessment",
    "RiskWeights",
    "ThreatAnalysis",
    "ThreatClassification",
    "ThreatClassifier",
    "UnknownThreatClassifier",
]
