from __future__ import annotations

import numpy as np

from .backend import ComputeBackend, DeviceBuffer
from .image_buffer import ImageBuffer


def reduce_intensity(backend: ComputeBackend, image: ImageBuffer) -> DeviceBuffer:
    """
    Upload ``image`` and reduce it to one 8-bit intensity per pixel.
    RGB images go through the luma kernel, greyscale images are copied unchanged.
    """
    samples = backend.upload(np.frombuffer(image.data, dtype=np.uint8))
    intensity = backend.allocate(image.pixel_count, np.uint8)
    kernel = "rgb2grey" if image.channels == 3 else "identity"
    backend.launch(kernel, image.pixel_count, None, samples, intensity, image.pixel_count)
    return intensity


def luminance(r: int, g: int, b: int) -> int:
    """Host-side value of the luma kernel for a single pixel."""
    return (54 * r + 183 * g + 19 * b) >> 8
