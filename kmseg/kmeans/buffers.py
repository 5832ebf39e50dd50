"""
Pixel Buffer

Strided view over a flat, row-major, channel-interleaved byte buffer.

The image data is kept as one contiguous uint8 array of length
width * height * n_channels. Pixel i lives at offset i * n_channels, which
is exactly what a (n_pixels, n_channels) reshape of the flat array exposes,
so the clustering kernels never do index arithmetic on the flat buffer.
"""

from dataclasses import dataclass
from typing import Tuple
import numpy as np


@dataclass
class PixelBuffer:
    """
    Decoded image data plus its geometry.

    Attributes:
        data: Flat uint8 array, length width * height * n_channels
        width: Image width in pixels
        height: Image height in pixels
        n_channels: Color components per pixel (1 = gray ... 4 = RGBA)

    Example:
        >>> img = np.zeros((2, 3, 3), dtype=np.uint8)
        >>> buf = PixelBuffer.from_array(img)
        >>> buf.n_pixels
        6
        >>> buf.pixels.shape
        (6, 3)
    """
    data: np.ndarray
    width: int
    height: int
    n_channels: int

    def __post_init__(self):
        """Validate buffer geometry."""
        if self.n_channels < 1:
            raise ValueError(f"n_channels must be >= 1, got {self.n_channels}")
        if self.width < 1 or self.height < 1:
            raise ValueError(
                f"Image dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.data.dtype != np.uint8:
            raise ValueError(f"Pixel data must be uint8, got {self.data.dtype}")
        if self.data.ndim != 1 or not self.data.flags.c_contiguous:
            raise ValueError("Pixel data must be a flat contiguous array")

        expected = self.width * self.height * self.n_channels
        if self.data.size != expected:
            raise ValueError(
                f"Buffer holds {self.data.size} values, expected "
                f"{self.width}x{self.height}x{self.n_channels} = {expected}"
            )

    @classmethod
    def from_array(cls, image: np.ndarray) -> 'PixelBuffer':
        """
        Build a buffer from an image array.

        The array is copied, so later segmentation never touches the caller's
        image.

        Args:
            image: uint8 array of shape (H, W) or (H, W, C)

        Returns:
            buffer: PixelBuffer owning a flat copy of the image
        """
        if image.ndim == 2:
            image = image[:, :, np.newaxis]
        if image.ndim != 3:
            raise ValueError(f"Image must be (H, W) or (H, W, C), got shape {image.shape}")
        if image.dtype != np.uint8:
            raise ValueError(f"Image must be uint8, got {image.dtype}")

        h, w, c = image.shape
        data = np.array(image, dtype=np.uint8, order='C').reshape(-1)

        return cls(data=data, width=w, height=h, n_channels=c)

    @property
    def n_pixels(self) -> int:
        return self.width * self.height

    @property
    def shape(self) -> Tuple[int, int, int]:
        """(H, W, C) shape of the image."""
        return (self.height, self.width, self.n_channels)

    @property
    def pixels(self) -> np.ndarray:
        """
        Writable (n_pixels, n_channels) view sharing memory with `data`.
        """
        return self.data.reshape(self.n_pixels, self.n_channels)

    def to_array(self) -> np.ndarray:
        """
        Image array for display or encoding.

        Returns:
            image: (H, W) for one channel, (H, W, C) otherwise
        """
        image = self.data.reshape(self.shape)
        if self.n_channels == 1:
            return image[:, :, 0]
        return image

    def copy(self) -> 'PixelBuffer':
        return PixelBuffer(
            data=self.data.copy(),
            width=self.width,
            height=self.height,
            n_channels=self.n_channels,
        )
