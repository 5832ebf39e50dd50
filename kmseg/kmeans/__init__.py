"""
K-Means clustering module for color image segmentation.
"""

from .config import KMeansConfig, Backend, InitMethod, DEBUG_SEED
from .buffers import PixelBuffer
from .initializers import (
    BaseInitializer,
    RandomInitializer,
    DistinctInitializer,
    create_initializer
)
from .backends import (
    BaseKMeansBackend,
    SerialBackend,
    ParallelBackend,
    CudaBackend,
    create_backend
)
from .kmeans import (
    ConvergenceStatus,
    ReseedEvent,
    KMeansResult,
    KMeans,
    segment_image
)

__all__ = [
    'KMeansConfig',
    'Backend',
    'InitMethod',
    'DEBUG_SEED',
    'PixelBuffer',
    'BaseInitializer',
    'RandomInitializer',
    'DistinctInitializer',
    'create_initializer',
    'BaseKMeansBackend',
    'SerialBackend',
    'ParallelBackend',
    'CudaBackend',
    'create_backend',
    'ConvergenceStatus',
    'ReseedEvent',
    'KMeansResult',
    'KMeans',
    'segment_image',
]
