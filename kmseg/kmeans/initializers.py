"""
Center Initializers

Pick the starting centers of a run from the pixel population. Each initial
center is a verbatim copy (as float64) of one pixel's channel values.

Both policies draw from a numpy Generator owned by the run, so a fixed seed
always yields the same centers.
"""

from abc import ABC, abstractmethod
import numpy as np

from .config import InitMethod


class BaseInitializer(ABC):
    """Interface for center initialization policies."""

    def __call__(self, pixels: np.ndarray, n_clusters: int,
                 rng: np.random.Generator) -> np.ndarray:
        """
        Build initial centers.

        Args:
            pixels: Pixel data, shape (N, C), uint8
            n_clusters: Number of centers to pick (<= N)
            rng: Random generator of the current run

        Returns:
            centers: shape (n_clusters, C), float64
        """
        indices = self.select(pixels.shape[0], n_clusters, rng)
        return pixels[indices].astype(np.float64)

    @abstractmethod
    def select(self, n_pixels: int, n_clusters: int,
               rng: np.random.Generator) -> np.ndarray:
        """Indices of the pixels used as initial centers."""
        pass


class RandomInitializer(BaseInitializer):
    """
    Independent uniform draws over [0, n_pixels).

    Two clusters may start on the same pixel; the duplicate is either pulled
    apart by the iterations or starves and gets reseeded.
    """

    def select(self, n_pixels, n_clusters, rng):
        return rng.integers(0, n_pixels, size=n_clusters)


class DistinctInitializer(BaseInitializer):
    """Draws without replacement, every center starts on a different pixel."""

    def select(self, n_pixels, n_clusters, rng):
        if n_clusters > n_pixels:
            raise ValueError(
                f"Cannot pick {n_clusters} distinct pixels out of {n_pixels}"
            )
        return rng.choice(n_pixels, size=n_clusters, replace=False)


def create_initializer(method: InitMethod) -> BaseInitializer:
    """
    Factory function for initialization policies.

    Args:
        method: Initialization policy

    Returns:
        initializer: Concrete initializer instance
    """
    if method == InitMethod.RANDOM:
        return RandomInitializer()
    elif method == InitMethod.DISTINCT:
        return DistinctInitializer()
    else:
        raise ValueError(f"Unknown init method: {method}")
