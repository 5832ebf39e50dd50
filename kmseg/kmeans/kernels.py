"""
Clustering Kernels

Per-pixel building blocks of the k-means loop, compiled with numba.

Every range kernel works on the half-open pixel range [start, stop) so the
serial backend can call it once over the whole image and the parallel
backend once per worker partition. Arrays use the (n_pixels, n_channels)
layout exposed by PixelBuffer.pixels; centers are (n_clusters, n_channels)
float64.
"""

from typing import List, Tuple
import numpy as np
from numba import njit


# ============================================================================
# Distance and Assignment
# ============================================================================

@njit
def sqr_distance(pixel, center):
    """Squared Euclidean distance between a uint8 pixel and a float center."""
    dist = 0.0
    for ch in range(pixel.shape[0]):
        # Widen before subtracting, uint8 would wrap around
        diff = np.float64(pixel[ch]) - center[ch]
        dist += diff * diff
    return dist


@njit
def closest_center(pixel, centers):
    """
    Index of the nearest center and the squared distance to it.

    Ties go to the lowest cluster index.
    """
    min_k = 0
    min_dist = np.inf
    for k in range(centers.shape[0]):
        dist = sqr_distance(pixel, centers[k])
        if dist < min_dist:
            min_dist = dist
            min_k = k
    return min_k, min_dist


@njit
def assign_range(pixels, centers, labels, dists, start, stop):
    """
    Assign pixels [start, stop) to their nearest center.

    Writes the winning distance for every pixel and overwrites the label
    only when it differs.

    Returns:
        changed: True if at least one label changed
    """
    changed = False
    for px in range(start, stop):
        k, dist = closest_center(pixels[px], centers)
        dists[px] = dist
        if labels[px] != k:
            labels[px] = k
            changed = True
    return changed


# ============================================================================
# Center Update
# ============================================================================

@njit
def accumulate_range(pixels, labels, sums, counts, start, stop):
    """Add pixels [start, stop) into their cluster's channel sums and counts."""
    n_channels = pixels.shape[1]
    for px in range(start, stop):
        k = labels[px]
        for ch in range(n_channels):
            sums[k, ch] += pixels[px, ch]
        counts[k] += 1


def farthest_pixel(dists: np.ndarray) -> int:
    """
    Index of the pixel farthest from its assigned center.

    Ties go to the first occurrence.

    Returns:
        index: Pixel index, or -1 when no distance is greater than zero
    """
    if dists.size == 0:
        return -1

    far_px = int(np.argmax(dists))
    if dists[far_px] <= 0:
        return -1

    return far_px


def finalize_centers(
    sums: np.ndarray,
    counts: np.ndarray,
    pixels: np.ndarray,
    dists: np.ndarray,
    previous: np.ndarray
) -> Tuple[np.ndarray, List[Tuple[int, int]]]:
    """
    Turn merged per-cluster sums into new centers.

    Clusters with pixels get the mean of their pixels. Starved clusters are
    handled in ascending index order: each one takes the raw color of the
    pixel currently farthest from its center, and that pixel's distance is
    zeroed so the next starved cluster picks a different one. When no pixel
    has a positive distance left the starved cluster keeps its previous
    center.

    Args:
        sums: Channel sums per cluster, shape (K, C)
        counts: Pixels per cluster, shape (K,)
        pixels: Pixel data, shape (N, C)
        dists: Distances from the last assignment pass, shape (N,).
               Modified in place for reseeded pixels.
        previous: Centers used in the last assignment pass, shape (K, C)

    Returns:
        centers: New centers, shape (K, C)
        reseeded: (cluster, pixel) pairs, one per reseeded cluster
    """
    centers = np.empty_like(sums)
    reseeded = []

    for k in range(sums.shape[0]):
        if counts[k] > 0:
            centers[k] = sums[k] / counts[k]
            continue

        far_px = farthest_pixel(dists)
        if far_px < 0:
            centers[k] = previous[k]
            continue

        centers[k] = pixels[far_px]
        dists[far_px] = 0.0
        reseeded.append((k, far_px))

    return centers, reseeded


# ============================================================================
# SSE and Materialization
# ============================================================================

@njit
def sum_range(dists, start, stop):
    """Sum of distances [start, stop)."""
    total = 0.0
    for px in range(start, stop):
        total += dists[px]
    return total


def round_centers(centers: np.ndarray) -> np.ndarray:
    """
    Round centers to channel bytes, half away from zero.

    Done once per run so every pixel of a cluster gets the same bytes.
    """
    return np.clip(np.floor(centers + 0.5), 0, 255).astype(np.uint8)


@njit
def materialize_range(pixels, rounded, labels, start, stop):
    """Overwrite pixels [start, stop) with their cluster's rounded center."""
    n_channels = pixels.shape[1]
    for px in range(start, stop):
        k = labels[px]
        for ch in range(n_channels):
            pixels[px, ch] = rounded[k, ch]
