"""
Partitioned Kernels

Data-parallel versions of the clustering phases.

The pixel index space is split into n_workers contiguous ranges and each
worker runs the serial range kernel on its own range. Every kernel call is
one bulk-synchronous phase: it returns only after all workers are done.
Shared results are never written concurrently; workers fill per-worker
slots (changed flags, partial sums, partial SSE) that the calling thread
combines afterwards.
"""

from contextlib import contextmanager
import logging
import numpy as np
import numba
from numba import njit, prange

from .kernels import assign_range, accumulate_range, sum_range, materialize_range


logger = logging.getLogger(__name__)


def partition_bounds(n_pixels: int, n_workers: int) -> np.ndarray:
    """
    Boundaries of n_workers contiguous pixel ranges.

    Worker w owns [bounds[w], bounds[w + 1]). Range sizes differ by at most
    one; with more workers than pixels some ranges are empty.

    Returns:
        bounds: int64 array of length n_workers + 1
    """
    return (np.arange(n_workers + 1, dtype=np.int64) * n_pixels) // n_workers


@contextmanager
def worker_threads(n_workers: int):
    """
    Fix numba's thread pool size for the enclosed phases.

    The pool cannot grow past NUMBA_NUM_THREADS; the requested worker count
    still decides the partitioning.
    """
    n_threads = min(n_workers, numba.config.NUMBA_NUM_THREADS)
    if n_threads < n_workers:
        logger.debug(
            "Requested %d workers, thread pool limited to %d",
            n_workers, n_threads
        )

    previous = numba.get_num_threads()
    numba.set_num_threads(n_threads)
    try:
        yield n_threads
    finally:
        numba.set_num_threads(previous)


@njit(parallel=True)
def assign_partitioned(pixels, centers, labels, dists, bounds):
    """
    Nearest-center assignment, one contiguous range per worker.

    Returns:
        changed: Per-worker change flags, shape (n_workers,)
    """
    n_workers = bounds.shape[0] - 1
    changed = np.zeros(n_workers, dtype=np.bool_)
    for w in prange(n_workers):
        changed[w] = assign_range(pixels, centers, labels, dists,
                                  bounds[w], bounds[w + 1])
    return changed


@njit(parallel=True)
def accumulate_partitioned(pixels, labels, bounds, n_clusters):
    """
    Per-worker private cluster sums and counts.

    Returns:
        sums: shape (n_workers, n_clusters, n_channels)
        counts: shape (n_workers, n_clusters)
    """
    n_workers = bounds.shape[0] - 1
    sums = np.zeros((n_workers, n_clusters, pixels.shape[1]), dtype=np.float64)
    counts = np.zeros((n_workers, n_clusters), dtype=np.int64)
    for w in prange(n_workers):
        accumulate_range(pixels, labels, sums[w], counts[w],
                         bounds[w], bounds[w + 1])
    return sums, counts


@njit(parallel=True)
def sum_partitioned(dists, bounds):
    """Per-worker partial sums of the distance array."""
    n_workers = bounds.shape[0] - 1
    partial = np.zeros(n_workers, dtype=np.float64)
    for w in prange(n_workers):
        partial[w] = sum_range(dists, bounds[w], bounds[w + 1])
    return partial


@njit(parallel=True)
def materialize_partitioned(pixels, rounded, labels, bounds):
    """Write rounded centers into each worker's pixel range."""
    n_workers = bounds.shape[0] - 1
    for w in prange(n_workers):
        materialize_range(pixels, rounded, labels, bounds[w], bounds[w + 1])


def merge_partials(sums: np.ndarray, counts: np.ndarray):
    """
    Add per-worker partial buffers together in worker order.

    Args:
        sums: shape (n_workers, K, C)
        counts: shape (n_workers, K)

    Returns:
        merged_sums: shape (K, C)
        merged_counts: shape (K,)
    """
    merged_sums = sums[0].copy()
    merged_counts = counts[0].copy()
    for w in range(1, sums.shape[0]):
        merged_sums += sums[w]
        merged_counts += counts[w]
    return merged_sums, merged_counts
