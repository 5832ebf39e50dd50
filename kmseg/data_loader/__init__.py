"""
Módulo de carga de imágenes para kmseg.

Componentes principales:
- load_image: Decodifica un archivo a PixelBuffer
- save_image: Codifica un PixelBuffer según la extensión de salida
- ImageLoadError / ImageSaveError / UnsupportedFormatError: errores de
  lectura, de escritura y de formato

Example:
    >>> from kmseg.data_loader import load_image, save_image
    >>>
    >>> buffer = load_image('input.png')
    >>> save_image('output.png', buffer)
"""

from .image_io import (
    load_image,
    save_image,
    ImageLoadError,
    ImageSaveError,
    UnsupportedFormatError,
    SAVE_FORMATS
)

__all__ = [
    'load_image',
    'save_image',
    'ImageLoadError',
    'ImageSaveError',
    'UnsupportedFormatError',
    'SAVE_FORMATS'
]
