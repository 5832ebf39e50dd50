"""
Utilidades de visualización para resultados de K-Means.

Muestra la imagen original junto a la segmentada y la distribución de
píxeles por cluster, y la evolución del SSE a lo largo de las iteraciones.
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import Tuple

from ..kmeans.kmeans import KMeansResult


def _show(ax, image: np.ndarray, title: str) -> None:
    if image.ndim == 2 or image.shape[2] == 1:
        ax.imshow(image.reshape(image.shape[:2]), cmap='gray', vmin=0, vmax=255)
    elif image.shape[2] == 2:
        # Gris + alfa: mostrar solo la intensidad
        ax.imshow(image[:, :, 0], cmap='gray', vmin=0, vmax=255)
    else:
        ax.imshow(image)
    ax.axis('off')
    ax.set_title(title, fontsize=12, pad=10)


def center_colors(centers: np.ndarray) -> np.ndarray:
    """
    Colores RGB en [0, 1] para dibujar los centros.

    Args:
        centers: Centros de los clusters, shape (K, C), valores en [0, 255]

    Returns:
        colors: shape (K, 3) o (K, 4) si hay canal alfa
    """
    colors = np.clip(centers, 0, 255) / 255.0
    n_channels = colors.shape[1]

    if n_channels == 1:
        return np.repeat(colors, 3, axis=1)
    if n_channels == 2:
        return np.repeat(colors[:, :1], 3, axis=1)
    return colors[:, :4]


def plot_segmentation(
    original: np.ndarray,
    segmented: np.ndarray,
    result: KMeansResult,
    figsize: Tuple[int, int] = (18, 6)
) -> plt.Figure:
    """
    Visualiza un resultado de K-Means en una fila de 3 paneles.

    - Columna 1: Imagen original
    - Columna 2: Imagen segmentada (K colores)
    - Columna 3: Gráfico de barras con el porcentaje de píxeles por cluster,
                 coloreado con el color de cada centro

    Args:
        original: Imagen original uint8, shape (H, W) o (H, W, C)
        segmented: Imagen segmentada con la misma forma
        result: KMeansResult de la ejecución
        figsize: Tamaño de la figura (ancho, alto) en pulgadas

    Returns:
        fig: Figura de matplotlib

    Raises:
        ValueError: Si las imágenes no tienen la misma forma
    """
    if original.shape != segmented.shape:
        raise ValueError(
            f"Las imágenes deben tener la misma forma: "
            f"{original.shape} != {segmented.shape}"
        )

    fig, axes = plt.subplots(1, 3, figsize=figsize)

    _show(axes[0], original, 'Original')
    _show(axes[1], segmented, f'Segmentada (K={result.n_clusters})')

    # === Distribución de píxeles por cluster ===
    ax_colors = axes[2]
    counts = result.cluster_counts()
    percentages = counts / max(counts.sum(), 1) * 100

    centers = result.rounded_centers if result.rounded_centers is not None else result.centers
    x_pos = np.arange(result.n_clusters)
    bars = ax_colors.bar(
        x_pos,
        percentages,
        color=center_colors(np.asarray(centers, dtype=np.float64)),
        edgecolor='black',
        linewidth=1.5
    )

    ax_colors.set_xlabel('Cluster', fontsize=10)
    ax_colors.set_ylabel('Frecuencia (%)', fontsize=10)
    ax_colors.set_title(
        f'SSE={result.sse:.1f}, iteraciones={result.n_iter}',
        fontsize=12,
        pad=10
    )
    ax_colors.set_xticks(x_pos)
    ax_colors.set_ylim(0, max(percentages.max(), 1) * 1.1)

    for bar, percentage in zip(bars, percentages):
        ax_colors.text(
            bar.get_x() + bar.get_width() / 2.,
            bar.get_height(),
            f'{percentage:.1f}%',
            ha='center',
            va='bottom',
            fontsize=8
        )

    plt.tight_layout()

    return fig


def plot_sse_history(
    result: KMeansResult,
    figsize: Tuple[int, int] = (8, 4)
) -> plt.Figure:
    """
    Evolución del SSE por pasada de asignación.

    Las iteraciones con clusters re-sembrados se marcan con una línea
    vertical.

    Args:
        result: KMeansResult de la ejecución
        figsize: Tamaño de la figura

    Returns:
        fig: Figura de matplotlib
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(np.arange(len(result.sse_history)), result.sse_history,
            marker='o', markersize=3)

    for it in sorted({event.iteration for event in result.reseeds}):
        ax.axvline(it, color='red', linestyle='--', alpha=0.5)

    ax.set_xlabel('Iteración', fontsize=10)
    ax.set_ylabel('SSE', fontsize=10)
    ax.set_title(f'SSE ({result.status.value})', fontsize=12)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    return fig
