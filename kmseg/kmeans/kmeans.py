"""
K-Means Clustering for Color Segmentation

Iterative k-means over pixel color vectors:

1. Pick initial centers from the pixels
2. Assign every pixel to its nearest center
3. Stop if no label changed, otherwise recompute centers as cluster means
   (reseeding starved clusters) and repeat, up to max_iter iterations
4. Overwrite every pixel with its cluster's rounded center

Objective Function: SSE = Σ ||x_n - c_label(n)||²
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union
import logging
import numpy as np

from .backends import BaseKMeansBackend, create_backend
from .buffers import PixelBuffer
from .config import KMeansConfig
from .initializers import create_initializer
from .kernels import finalize_centers


logger = logging.getLogger(__name__)


# ============================================================================
# Results
# ============================================================================

class ConvergenceStatus(Enum):
    """States of the assign/update loop."""
    RUNNING = "running"
    CONVERGED = "converged"
    MAX_ITERS_REACHED = "max_iters_reached"


@dataclass
class ReseedEvent:
    """A starved cluster moved onto the farthest pixel."""
    iteration: int
    cluster: int
    pixel: int


@dataclass
class KMeansResult:
    """
    Results from a k-means run.

    Both terminal states are successful runs; `status` tells them apart.
    """
    labels: np.ndarray
    """Cluster index of each pixel. Shape: (N,)"""

    centers: np.ndarray
    """Final (unrounded) cluster centers. Shape: (n_clusters, C)"""

    sse: float
    """Sum of squared errors of the final distance array."""

    n_iter: int
    """Number of update iterations performed."""

    status: ConvergenceStatus
    """CONVERGED or MAX_ITERS_REACHED."""

    sse_history: List[float] = field(default_factory=list)
    """SSE after every assignment pass."""

    reseeds: List[ReseedEvent] = field(default_factory=list)
    """Starved-cluster reseeds, in the order they happened."""

    rounded_centers: Optional[np.ndarray] = None
    """uint8 colors written to the image, set once the result is materialized."""

    @property
    def converged(self) -> bool:
        return self.status == ConvergenceStatus.CONVERGED

    @property
    def n_clusters(self) -> int:
        return self.centers.shape[0]

    def cluster_counts(self) -> np.ndarray:
        """Number of pixels per cluster. Shape: (n_clusters,)"""
        return np.bincount(self.labels, minlength=self.n_clusters)

    def reshape_labels(self, shape: Tuple[int, int]) -> np.ndarray:
        """
        Reshape flat labels to 2D image shape.

        Args:
            shape: (H, W) image dimensions

        Returns:
            labels_2d: (H, W) cluster labels
        """
        return self.labels.reshape(shape)


# ============================================================================
# Driver
# ============================================================================

class KMeans:
    """
    K-means color segmentation.

    The loop, reseed policy and rounding live here; the per-pixel phases run
    on the configured backend.

    Example:
        >>> config = KMeansConfig(n_clusters=5, random_state=2)
        >>> kmeans = KMeans(config)
        >>> buffer = PixelBuffer.from_array(image)  # image: (H, W, 3) uint8
        >>> result = kmeans.segment(buffer)         # buffer now holds 5 colors
        >>> print(f"SSE: {result.sse:.2f} after {result.n_iter} iterations")
    """

    def __init__(
        self,
        config: Optional[KMeansConfig] = None,
        backend: Optional[BaseKMeansBackend] = None
    ):
        """
        Initialize the k-means driver.

        Args:
            config: Configuration parameters. If None, uses defaults.
            backend: Execution backend. If None, built from config.backend.

        Raises:
            NotImplementedError: If the configured backend is 'cuda'
        """
        self.config = config or KMeansConfig()
        self.backend = backend or create_backend(self.config)
        self._result: Optional[KMeansResult] = None

    @property
    def result(self) -> KMeansResult:
        """
        Result of the last run.

        Raises:
            RuntimeError: If not fitted yet
        """
        if self._result is None:
            raise RuntimeError("Must call fit() or segment() before accessing result")
        return self._result

    def fit(
        self,
        pixels: Union[PixelBuffer, np.ndarray],
        initial_centers: Optional[np.ndarray] = None
    ) -> KMeansResult:
        """
        Cluster pixel colors without touching the pixel data.

        Args:
            pixels: PixelBuffer, or uint8 array of shape (N, C)
            initial_centers: Optional starting centers, shape (n_clusters, C).
                             If None, they are drawn by the configured
                             initializer from a generator seeded with
                             config.random_state.

        Returns:
            result: KMeansResult with labels, centers, SSE and iteration count

        Raises:
            ValueError: If the pixels are malformed or fewer than n_clusters
        """
        if isinstance(pixels, PixelBuffer):
            pixels = pixels.pixels
        self._validate_pixels(pixels)

        n_pixels, n_channels = pixels.shape
        n_clusters = self.config.n_clusters

        if initial_centers is None:
            rng = np.random.default_rng(self.config.random_state)
            initializer = create_initializer(self.config.init)
            centers = initializer(pixels, n_clusters, rng)
        else:
            centers = self._validate_centers(initial_centers, n_channels)

        labels = np.full(n_pixels, -1, dtype=np.int32)
        dists = np.zeros(n_pixels, dtype=np.float64)

        logger.info(
            "Clustering %d pixels (%d channels) into %d clusters, backend=%s workers=%d",
            n_pixels, n_channels, n_clusters, self.backend.name, self.backend.n_workers
        )

        status = ConvergenceStatus.RUNNING
        iteration = 0
        sse_history = []
        reseeds = []

        while status == ConvergenceStatus.RUNNING:
            changed = self.backend.assign(pixels, centers, labels, dists)
            sse_history.append(self.backend.sum_sqr_errors(dists))
            logger.debug("Iteration %d: SSE %.4f, changed=%s",
                         iteration, sse_history[-1], changed)

            if not changed:
                status = ConvergenceStatus.CONVERGED
                break

            sums, counts = self.backend.accumulate(pixels, labels, n_clusters)
            centers, reseeded = finalize_centers(sums, counts, pixels, dists, centers)

            for cluster, pixel in reseeded:
                logger.debug("Iteration %d: cluster %d starved, reseeded on pixel %d",
                             iteration, cluster, pixel)
                reseeds.append(ReseedEvent(iteration, cluster, pixel))

            iteration += 1
            if iteration >= self.config.max_iter:
                status = ConvergenceStatus.MAX_ITERS_REACHED

        sse = self.backend.sum_sqr_errors(dists)

        logger.info("Finished: %s after %d iterations, SSE %.4f",
                    status.value, iteration, sse)

        self._result = KMeansResult(
            labels=labels,
            centers=centers,
            sse=sse,
            n_iter=iteration,
            status=status,
            sse_history=sse_history,
            reseeds=reseeds,
        )

        return self._result

    def segment(
        self,
        buffer: PixelBuffer,
        initial_centers: Optional[np.ndarray] = None
    ) -> KMeansResult:
        """
        Cluster the buffer and overwrite it with the cluster colors.

        Args:
            buffer: Image data, modified in place
            initial_centers: Optional starting centers, see fit()

        Returns:
            result: KMeansResult, with rounded_centers set
        """
        result = self.fit(buffer, initial_centers=initial_centers)
        self.materialize(buffer)
        return result

    def materialize(self, buffer: PixelBuffer) -> np.ndarray:
        """
        Write the last result's colors into a buffer.

        Running it again with the same result leaves the buffer unchanged.

        Returns:
            rounded: uint8 centers written, shape (n_clusters, C)
        """
        result = self.result
        if buffer.n_pixels != len(result.labels):
            raise ValueError(
                f"Buffer has {buffer.n_pixels} pixels, result has {len(result.labels)}"
            )

        rounded = self.backend.materialize(buffer.pixels, result.centers, result.labels)
        result.rounded_centers = rounded
        return rounded

    def _validate_pixels(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 2:
            raise ValueError(f"pixels must have shape (N, C), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {pixels.dtype}")
        if pixels.shape[1] < 1:
            raise ValueError("pixels must have at least one channel")
        if pixels.shape[0] < self.config.n_clusters:
            raise ValueError(
                f"Cannot form {self.config.n_clusters} clusters from "
                f"{pixels.shape[0]} pixels"
            )

    def _validate_centers(self, centers: np.ndarray, n_channels: int) -> np.ndarray:
        centers = np.array(centers, dtype=np.float64)
        expected = (self.config.n_clusters, n_channels)
        if centers.shape != expected:
            raise ValueError(
                f"initial_centers must have shape {expected}, got {centers.shape}"
            )
        if not np.all(np.isfinite(centers)):
            raise ValueError("initial_centers must be finite")
        return centers


def segment_image(
    image: np.ndarray,
    config: Optional[KMeansConfig] = None,
    initial_centers: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, KMeansResult]:
    """
    Segment an image array by color.

    The input array is left untouched.

    Args:
        image: uint8 image, shape (H, W) or (H, W, C)
        config: K-means configuration. If None, uses defaults.
        initial_centers: Optional starting centers, shape (n_clusters, C)

    Returns:
        segmented: Image of the same shape with n_clusters colors at most
        result: KMeansResult of the run

    Example:
        >>> segmented, result = segment_image(image, KMeansConfig(n_clusters=3))
        >>> plt.imshow(segmented)
    """
    buffer = PixelBuffer.from_array(image)
    result = KMeans(config).segment(buffer, initial_centers=initial_centers)
    return buffer.to_array().reshape(image.shape), result
