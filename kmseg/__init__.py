"""
kmseg - Color-based image segmentation with k-means clustering.

Contains the clustering engine (serial and parallel execution), image
loading/saving, and visualization of segmentation results.
"""

__version__ = "0.1.0"
