"""
Isolation Forest anomaly scoring.

An ensemble of randomized partition trees. Each tree recursively splits a
random subsample on a random feature at a random value between the
feature's min and max. Points that are isolated after few splits (short
average path length) are likely anomalies.

Workflow:
1. Training: build num_trees trees, each on a subsample drawn without replacement
2. Inference: average path length over all trees, normalized by c(subsample_size),
   mapped to a score in (0, 1] where values near 1 indicate anomalies
"""

import math
from dataclasses import dataclass
from typing import Any, Literal, Optional

import numpy as np
import structlog

from .models import NotReadyError

logger = structlog.get_logger(__name__)

EULER_GAMMA = 0.5772156649


def average_path_length(n: int) -> float:
    """Expected path length of an unsuccessful BST search among n items, c(n)"""
    if n <= 1:
        return 0.0
    return 2 * (math.log(n - 1) + EULER_GAMMA) - (2 * (n - 1) / n)


@dataclass(frozen=True)
class IsolationTree:
    """Isolation tree node, either a leaf or an internal split"""

    kind: Literal["leaf", "internal"]
    size: int = 0
    depth: int = 0
    feature: int = -1
    split_value: float = 0.0
    left: Optional["IsolationTree"] = None
    right: Optional["IsolationTree"] = None

    @classmethod
    def leaf(cls, size: int, depth: int) -> "IsolationTree":
        return cls(kind="leaf", size=size, depth=depth)

    @classmethod
    def internal(
        cls, feature: int, split_value: float, left: "IsolationTree", right: "IsolationTree"
    ) -> "IsolationTree":
        return cls(
            kind="internal", feature=feature, split_value=split_value, left=left, right=right
        )

    @property
    def is_leaf(self) -> bool:
        return self.kind == "leaf"

    def to_dict(self) -> dict[str, Any]:
        if self.is_leaf:
            return {"type": "leaf", "size": self.size, "depth": self.depth}
        return {
            "type": "internal",
            "feature": self.feature,
            "split_value": self.split_value,
            "left": self.left.to_dict(),
            "right": self.right.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IsolationTree":
        if data["type"] == "leaf":
            return cls.leaf(size=int(data["size"]), depth=int(data["depth"]))
        return cls.internal(
            feature=int(data["feature"]),
            split_value=float(data["split_value"]),
            left=cls.from_dict(data["left"]),
            right=cls.from_dict(data["right"]),
        )


class IsolationForest:
    """Ensemble of isolation trees"""

    def __init__(
        self,
        num_trees: int = 100,
        subsample_size: int = 256,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if num_trees < 1:
            raise ValueError(f"num_trees must be positive, got {num_trees}")
        if subsample_size < 2:
            raise ValueError(f"subsample_size must be at least 2, got {subsample_size}")

        self.num_trees = num_trees
        self.subsample_size = subsample_size
        self.max_depth = math.ceil(math.log2(subsample_size))
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.trees: tuple[IsolationTree, ...] = ()

    @property
    def trained(self) -> bool:
        return len(self.trees) > 0

    def fit(self, matrix: np.ndarray) -> "IsolationForest":
        """Build all trees from the training matrix

        Args:
            matrix: Array of shape (n_samples, n_features)

        Returns:
            self, with the new trees published in a single assignment
        """
        data = np.asarray(matrix, dtype=float)
        if data.ndim != 2 or data.shape[0] == 0:
            raise ValueError(f"Training matrix must be 2D and non-empty, got shape {data.shape}")

        n = data.shape[0]
        sample_size = min(self.subsample_size, n)

        trees = []
        for _ in range(self.num_trees):
            indices = self.rng.choice(n, size=sample_size, replace=False)
            trees.append(self._build_tree(data[indices], depth=0))

        self.trees = tuple(trees)

        logger.info(
            "Isolation forest trained",
            num_trees=self.num_trees,
            subsample_size=sample_size,
            max_depth=self.max_depth,
            n_samples=n,
        )
        return self

    def _build_tree(self, data: np.ndarray, depth: int) -> IsolationTree:
        n, n_features = data.shape

        if depth >= self.max_depth or n <= 1:
            return IsolationTree.leaf(size=n, depth=depth)

        feature = int(self.rng.integers(n_features))
        column = data[:, feature]
        min_val = column.min()
        max_val = column.max()

        if min_val == max_val:
            return IsolationTree.leaf(size=n, depth=depth)

        split_value = float(self.rng.uniform(min_val, max_val))
        left_mask = column < split_value

        # A split landing on min leaves one side empty
        if left_mask.all() or not left_mask.any():
            return IsolationTree.leaf(size=n, depth=depth)

        return IsolationTree.internal(
            feature=feature,
            split_value=split_value,
            left=self._build_tree(data[left_mask], depth + 1),
            right=self._build_tree(data[~left_mask], depth + 1),
        )

    @staticmethod
    def path_length(x: np.ndarray, tree: IsolationTree) -> float:
        """Edges walked from the root to x's leaf, plus c(leaf size)"""
        node = tree
        depth = 0
        while not node.is_leaf:
            node = node.left if x[node.feature] < node.split_value else node.right
            depth += 1
        return depth + average_path_length(node.size)

    def predict(self, matrix: np.ndarray) -> list[float]:
        """Score every row of the matrix

        Returns:
            One anomaly score in (0, 1] per row

        Raises:
            NotReadyError: If the forest has not been fitted
        """
        trees = self.trees
        if not trees:
            raise NotReadyError("Isolation forest must be trained before prediction")

        data = np.atleast_2d(np.asarray(matrix, dtype=float))
        normalizer = average_path_length(self.subsample_size)

        scores = []
        for row in data:
            total = 0.0
            for tree in trees:
                total += self.path_length(row, tree)
            avg_path_length = total / len(trees)
            scores.append(float(2.0 ** (-avg_path_length / normalizer)))

        return scores

    def get_params(self) -> dict[str, Any]:
        return {
            "num_trees": self.num_trees,
            "subsample_size": self.subsample_size,
            "max_depth": self.max_depth,
            "trained": self.trained,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "num_trees": self.num_trees,
            "subsample_size": self.subsample_size,
            "trees": [tree.to_dict() for tree in self.trees],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], seed: Optional[int] = None) -> "IsolationForest":
        """Create from dictionary"""
        forest = cls(
            num_trees=int(data["num_trees"]),
            subsample_size=int(data["subsample_size"]),
            seed=seed,
        )
        forest.trees = tuple(IsolationTree.from_dict(tree) for tree in data["trees"])
        return forest

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.get_params()})"
