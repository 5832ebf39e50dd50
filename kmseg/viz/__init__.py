"""
Módulo de visualización para kmseg.
"""

from .plots import plot_segmentation, plot_sse_history, center_colors

__all__ = ['plot_segmentation', 'plot_sse_history', 'center_colors']
