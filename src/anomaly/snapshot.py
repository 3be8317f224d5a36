"""
Immutable snapshot of a trained anomaly model.

The detector publishes a new snapshot on every training pass by swapping a
single reference, so readers always see a complete forest and baseline pair.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .baseline import StatisticalBaseline
from .isolation_forest import IsolationForest


@dataclass(frozen=True)
class TrainedModel:
    """Trained forest and baseline (serializable for caching)"""

    forest: IsolationForest
    baseline: StatisticalBaseline
    trained_at: datetime
    training_samples: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "forest": self.forest.to_dict(),
            "baseline": self.baseline.to_dict(),
            "trained_at": self.trained_at.isoformat(),
            "training_samples": self.training_samples,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrainedModel":
        """Create from dictionary"""
        return cls(
            forest=IsolationForest.from_dict(data["forest"]),
            baseline=StatisticalBaseline.from_dict(data["baseline"]),
            trained_at=datetime.fromisoformat(data["trained_at"]),
            training_samples=int(data["training_samples"]),
        )
