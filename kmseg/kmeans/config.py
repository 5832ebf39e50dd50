"""
K-Means Configuration

Configuration for the color segmentation k-means engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


DEBUG_SEED = 2
"""Seed used in debug mode so every run starts from the same centers."""


class Backend(Enum):
    """Execution strategies for the assign/update phases."""
    SERIAL = "serial"
    PARALLEL = "parallel"
    CUDA = "cuda"  # Declared, not implemented


class InitMethod(Enum):
    """Center initialization policies."""
    RANDOM = "random"      # Independent uniform draws, duplicates allowed
    DISTINCT = "distinct"  # Draws without replacement


@dataclass
class KMeansConfig:
    """
    Configuration for k-means color segmentation.

    Attributes:
        n_clusters: Number of clusters (colors of the segmented image)
        max_iter: Maximum number of assign/update iterations
        backend: Execution strategy ('serial', 'parallel' or 'cuda')
        n_workers: Number of workers for the parallel backend
        init: Center initialization policy ('distinct' or 'random')
        random_state: Seed for the run's random generator (None = entropy)
    """
    n_clusters: int = 4
    """Number of clusters (k parameter)."""

    max_iter: int = 150
    """Maximum number of iterations before the run is stopped."""

    backend: Union[Backend, str] = Backend.SERIAL
    """Execution strategy."""

    n_workers: int = 1
    """Fixed worker count. Only used by the parallel backend."""

    init: Union[InitMethod, str] = InitMethod.DISTINCT
    """Center initialization policy."""

    random_state: Optional[int] = None
    """Seed for reproducible initial centers."""

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.n_clusters < 2:
            raise ValueError(f"n_clusters must be >= 2, got {self.n_clusters}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")

        try:
            self.backend = Backend(self.backend)
        except ValueError:
            valid = [b.value for b in Backend]
            raise ValueError(
                f"backend must be one of {valid}, got '{self.backend}'"
            ) from None

        try:
            self.init = InitMethod(self.init)
        except ValueError:
            valid = [m.value for m in InitMethod]
            raise ValueError(
                f"init must be one of {valid}, got '{self.init}'"
            ) from None
