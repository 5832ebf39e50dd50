"""
Execution Backends

The assign / accumulate / SSE / materialize phases behind one interface.

- SerialBackend: one pass over all pixels per phase
- ParallelBackend: contiguous pixel ranges across a fixed worker count
- CudaBackend: declared GPU variant, not implemented

The driver (kmeans.KMeans) only talks to this interface, so every backend
shares the same loop, reseed policy and rounding.
"""

from abc import ABC, abstractmethod
from typing import Tuple
import numpy as np

from .config import Backend, KMeansConfig
from .kernels import (
    assign_range,
    accumulate_range,
    sum_range,
    round_centers,
    materialize_range,
)
from .parallel import (
    partition_bounds,
    worker_threads,
    assign_partitioned,
    accumulate_partitioned,
    sum_partitioned,
    materialize_partitioned,
    merge_partials,
)


# ============================================================================
# Abstract Base Class (Interface)
# ============================================================================

class BaseKMeansBackend(ABC):
    """
    Abstract base class for k-means execution strategies.

    Array conventions:
        pixels: (N, C) uint8
        centers: (K, C) float64
        labels: (N,) int32, -1 before the first assignment
        dists: (N,) float64
    """

    name: str = "base"

    @property
    def n_workers(self) -> int:
        return 1

    @abstractmethod
    def assign(self, pixels: np.ndarray, centers: np.ndarray,
               labels: np.ndarray, dists: np.ndarray) -> bool:
        """
        Assign every pixel to its nearest center.

        Centers are read-only during this phase. Labels and dists are
        updated in place.

        Returns:
            changed: True if any label changed
        """
        pass

    @abstractmethod
    def accumulate(self, pixels: np.ndarray, labels: np.ndarray,
                   n_clusters: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Per-cluster channel sums and pixel counts.

        Returns:
            sums: shape (K, C), float64
            counts: shape (K,), int64
        """
        pass

    @abstractmethod
    def sum_sqr_errors(self, dists: np.ndarray) -> float:
        """Sum of squared errors from the distance array."""
        pass

    @abstractmethod
    def write_pixels(self, pixels: np.ndarray, rounded: np.ndarray,
                     labels: np.ndarray) -> None:
        """Overwrite each pixel with its cluster's rounded center."""
        pass

    def materialize(self, pixels: np.ndarray, centers: np.ndarray,
                    labels: np.ndarray) -> np.ndarray:
        """
        Write the segmentation result into the pixel data.

        Centers are rounded once, before any pixel is written.

        Returns:
            rounded: The uint8 centers written, shape (K, C)
        """
        rounded = round_centers(centers)
        self.write_pixels(pixels, rounded, labels)
        return rounded


# ============================================================================
# Serial Implementation
# ============================================================================

class SerialBackend(BaseKMeansBackend):
    """Single-threaded execution of every phase."""

    name = Backend.SERIAL.value

    def assign(self, pixels, centers, labels, dists):
        return bool(assign_range(pixels, centers, labels, dists, 0, pixels.shape[0]))

    def accumulate(self, pixels, labels, n_clusters):
        sums = np.zeros((n_clusters, pixels.shape[1]), dtype=np.float64)
        counts = np.zeros(n_clusters, dtype=np.int64)
        accumulate_range(pixels, labels, sums, counts, 0, pixels.shape[0])
        return sums, counts

    def sum_sqr_errors(self, dists):
        return float(sum_range(dists, 0, dists.shape[0]))

    def write_pixels(self, pixels, rounded, labels):
        materialize_range(pixels, rounded, labels, 0, pixels.shape[0])


# ============================================================================
# Parallel Implementation
# ============================================================================

class ParallelBackend(BaseKMeansBackend):
    """
    Data-parallel execution over a fixed number of workers.

    Pixels are split into n_workers contiguous ranges. Per-worker change
    flags are OR-ed and per-worker partial sums are merged by the calling
    thread once every worker has finished the phase.

    Example:
        >>> backend = ParallelBackend(n_workers=4)
        >>> changed = backend.assign(pixels, centers, labels, dists)
    """

    name = Backend.PARALLEL.value

    def __init__(self, n_workers: int = 1):
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        self._n_workers = n_workers

    @property
    def n_workers(self) -> int:
        return self._n_workers

    def _bounds(self, n_pixels: int) -> np.ndarray:
        return partition_bounds(n_pixels, self._n_workers)

    def assign(self, pixels, centers, labels, dists):
        bounds = self._bounds(pixels.shape[0])
        with worker_threads(self._n_workers):
            changed = assign_partitioned(pixels, centers, labels, dists, bounds)
        return bool(changed.any())

    def accumulate(self, pixels, labels, n_clusters):
        bounds = self._bounds(pixels.shape[0])
        with worker_threads(self._n_workers):
            sums, counts = accumulate_partitioned(pixels, labels, bounds, n_clusters)
        return merge_partials(sums, counts)

    def sum_sqr_errors(self, dists):
        bounds = self._bounds(dists.shape[0])
        with worker_threads(self._n_workers):
            partial = sum_partitioned(dists, bounds)
        return float(partial.sum())

    def write_pixels(self, pixels, rounded, labels):
        bounds = self._bounds(pixels.shape[0])
        with worker_threads(self._n_workers):
            materialize_partitioned(pixels, rounded, labels, bounds)


# ============================================================================
# Accelerated Implementation (Placeholder)
# ============================================================================

class CudaBackend(BaseKMeansBackend):
    """
    GPU execution of the same phases.

    Declared so the strategy selector and interface stay complete; there is
    no GPU kernel yet.
    """

    name = Backend.CUDA.value

    def __init__(self):
        raise NotImplementedError("The CUDA backend is not implemented")

    def assign(self, pixels, centers, labels, dists):
        raise NotImplementedError

    def accumulate(self, pixels, labels, n_clusters):
        raise NotImplementedError

    def sum_sqr_errors(self, dists):
        raise NotImplementedError

    def write_pixels(self, pixels, rounded, labels):
        raise NotImplementedError


def create_backend(config: KMeansConfig) -> BaseKMeansBackend:
    """
    Factory function to create the configured execution backend.

    Args:
        config: K-means configuration

    Returns:
        backend: Concrete backend instance

    Raises:
        NotImplementedError: For the CUDA backend

    Example:
        >>> config = KMeansConfig(backend='parallel', n_workers=4)
        >>> backend = create_backend(config)
    """
    if config.backend == Backend.SERIAL:
        return SerialBackend()
    elif config.backend == Backend.PARALLEL:
        return ParallelBackend(n_workers=config.n_workers)
    elif config.backend == Backend.CUDA:
        return CudaBackend()
    else:
        raise ValueError(f"Unknown backend: {config.backend}")
