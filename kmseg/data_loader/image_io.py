"""
Lectura y escritura de imágenes.

Convierte archivos de imagen en PixelBuffer (bytes por canal, intercalados,
fila por fila) y vuelve a codificar un PixelBuffer segmentado. Usa Pillow
para decodificar y codificar.
"""

from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image, UnidentifiedImageError

from ..kmeans.buffers import PixelBuffer


class ImageLoadError(IOError):
    """La imagen no existe o no se puede decodificar."""


class UnsupportedFormatError(ValueError):
    """El formato de salida no se puede determinar o no está soportado."""


class ImageSaveError(IOError):
    """La imagen no se puede escribir en la ruta de salida."""


CHANNELS_BY_MODE = {'L': 1, 'LA': 2, 'RGB': 3, 'RGBA': 4}
"""Modos de Pillow que se cargan sin conversión."""

SAVE_FORMATS = {
    '.jpg': 'JPEG',
    '.jpeg': 'JPEG',
    '.png': 'PNG',
    '.bmp': 'BMP',
    '.tga': 'TGA',
}
"""Extensiones de salida soportadas y su formato Pillow."""


def load_image(path: Union[str, Path]) -> PixelBuffer:
    """
    Carga una imagen como PixelBuffer.

    Los modos L, LA, RGB y RGBA se conservan con 1, 2, 3 y 4 canales.
    Las imágenes con paleta pasan a RGB (o RGBA si tienen transparencia),
    las de 1 bit y las de gris de alta profundidad pasan a un canal de 8 bits,
    y el resto (CMYK, YCbCr, ...) pasa a RGB.

    Args:
        path: Ruta de la imagen.

    Returns:
        PixelBuffer con los bytes de la imagen.

    Raises:
        ImageLoadError: Si el archivo no existe o no se puede decodificar.

    Example:
        >>> buffer = load_image('photos/rice.jpg')
        >>> print(buffer.width, buffer.height, buffer.n_channels)  # 481 321 3
    """
    path = Path(path)

    try:
        with Image.open(path) as img:
            img.load()
            array = _to_uint8_array(img)
    except FileNotFoundError as e:
        raise ImageLoadError(f"No existe la imagen: {path}") from e
    except (UnidentifiedImageError, OSError) as e:
        raise ImageLoadError(f"No se pudo decodificar la imagen {path}: {e}") from e

    return PixelBuffer.from_array(array)


def save_image(path: Union[str, Path], buffer: PixelBuffer) -> Path:
    """
    Codifica un PixelBuffer según la extensión del archivo.

    Formatos: JPEG (calidad 100, sin canal alfa), PNG, BMP y TGA.
    El formato se valida antes de escribir nada.

    Args:
        path: Ruta de salida. La extensión decide el formato.
        buffer: Datos de la imagen.

    Returns:
        La ruta escrita.

    Raises:
        UnsupportedFormatError: Si falta la extensión, no está soportada o
                                el número de canales no se puede codificar.
        ImageSaveError: Si el archivo no se puede escribir.
    """
    path = Path(path)
    ext = path.suffix.lower()

    if not ext:
        raise UnsupportedFormatError(f"Formato no especificado: {path}")
    if ext not in SAVE_FORMATS:
        raise UnsupportedFormatError(
            f"Formato no soportado '{ext}'. "
            f"Formatos válidos: {sorted(SAVE_FORMATS)}"
        )
    if buffer.n_channels not in CHANNELS_BY_MODE.values():
        raise UnsupportedFormatError(
            f"No se puede codificar una imagen de {buffer.n_channels} canales"
        )

    fmt = SAVE_FORMATS[ext]
    img = Image.fromarray(buffer.to_array())

    options = {}
    if fmt == 'JPEG':
        # JPEG no tiene canal alfa
        if img.mode == 'LA':
            img = img.convert('L')
        elif img.mode == 'RGBA':
            img = img.convert('RGB')
        options['quality'] = 100
    elif fmt == 'BMP' and img.mode == 'LA':
        img = img.convert('RGBA')

    try:
        img.save(path, format=fmt, **options)
    except OSError as e:
        raise ImageSaveError(f"No se pudo escribir la imagen {path}: {e}") from e

    return path


def _to_uint8_array(img: Image.Image) -> np.ndarray:
    """Convierte una imagen Pillow a un array uint8 (H, W) o (H, W, C)."""
    mode = img.mode

    if mode in CHANNELS_BY_MODE:
        return np.array(img)

    if mode in ('P', 'PA'):
        has_alpha = mode == 'PA' or 'transparency' in img.info
        return np.array(img.convert('RGBA' if has_alpha else 'RGB'))

    if mode == '1':
        return np.array(img.convert('L'))

    if mode.startswith('I;16'):
        # Gris de 16 bits: conservar el byte alto
        return (np.array(img).astype(np.uint32) >> 8).astype(np.uint8)

    if mode in ('I', 'F'):
        return np.clip(np.array(img), 0, 255).astype(np.uint8)

    return np.array(img.convert('RGB'))
