from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

import numpy as np

Pixel = Tuple[int, ...]

SUPPORTED_CHANNELS = (1, 3)


@dataclass
class ImageBuffer:
    """Greyscale or RGB image backed by a flat bytearray of interleaved samples."""

    width: int
    height: int
    channels: int
    data: bytearray
    max_value: int = 255

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Image dimensions must be positive")
        if self.channels not in SUPPORTED_CHANNELS:
            raise ValueError(f"Unsupported channel count: {self.channels}")
        if len(self.data) != self.width * self.height * self.channels:
            raise ValueError("Pixel data does not match provided dimensions")

    @classmethod
    def from_dimensions(
        cls,
        width: int,
        height: int,
        channels: int = 1,
        color: Pixel | None = None,
        max_value: int = 255,
    ) -> "ImageBuffer":
        if width <= 0 or height <= 0:
            raise ValueError("Image dimensions must be positive")
        color = color or (0,) * channels
        if len(color) != channels:
            raise ValueError("Fill color does not match channel count")
        data = bytearray(bytes(color) * (width * height))
        return cls(width, height, channels, data, max_value)

    @classmethod
    def from_pixels(
        cls,
        width: int,
        height: int,
        pixels: Iterable[int | Pixel],
        channels: int = 1,
        max_value: int = 255,
    ) -> "ImageBuffer":
        data = bytearray()
        for pixel in pixels:
            if isinstance(pixel, int):
                data.append(pixel)
            else:
                data.extend(pixel)
        return cls(width, height, channels, data, max_value)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "ImageBuffer":
        """Wrap a ``(H, W)`` or ``(H, W, 3)`` uint8 array."""
        if array.ndim == 2:
            channels = 1
        elif array.ndim == 3:
            channels = array.shape[2]
        else:
            raise ValueError(f"Expected a 2D or 3D array, got shape {array.shape}")
        height, width = array.shape[:2]
        data = bytearray(np.ascontiguousarray(array, dtype=np.uint8).tobytes())
        return cls(width, height, channels, data)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def copy(self) -> "ImageBuffer":
        return ImageBuffer(self.width, self.height, self.channels, bytearray(self.data), self.max_value)

    def clamp(self, value: float) -> int:
        return max(0, min(self.max_value, int(round(value))))

    def get_pixel(self, x: int, y: int) -> Pixel:
        self._validate_coordinates(x, y)
        idx = self._offset(x, y)
        return tuple(self.data[idx : idx + self.channels])

    def set_pixel(self, x: int, y: int, color: Pixel) -> None:
        self._validate_coordinates(x, y)
        if len(color) != self.channels:
            raise ValueError("Color does not match channel count")
        idx = self._offset(x, y)
        for ch, value in enumerate(color):
            self.data[idx + ch] = self.clamp(value)

    def iter_pixels(self) -> Iterator[Pixel]:
        step = self.channels
        for i in range(0, len(self.data), step):
            yield tuple(self.data[i : i + step])

    def to_array(self) -> np.ndarray:
        array = np.frombuffer(bytes(self.data), dtype=np.uint8)
        if self.channels == 1:
            return array.reshape(self.height, self.width)
        return array.reshape(self.height, self.width, self.channels)

    def to_pillow_image(self):
        from PIL import Image

        mode = "L" if self.channels == 1 else "RGB"
        return Image.frombytes(mode, (self.width, self.height), bytes(self.data))

    @classmethod
    def from_pillow_image(cls, image) -> "ImageBuffer":
        if image.mode.startswith("I;16") or image.mode == "I":
            # 16-bit grey, rescaled to 0-255 like 16-bit PNM samples
            samples = np.clip(np.asarray(image, dtype=np.float64), 0, 65535)
            scaled = np.rint(samples / 65535 * 255).astype(np.uint8)
            return cls(image.width, image.height, 1, bytearray(scaled.tobytes()))
        if image.mode in ("1", "L", "LA", "F", "P") and _is_grey_palette(image):
            converted = image.convert("L")
            channels = 1
        else:
            converted = image.convert("RGB")
            channels = 3
        return cls(converted.width, converted.height, channels, bytearray(converted.tobytes()))

    def _validate_coordinates(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError("Pixel coordinates out of bounds")

    def _offset(self, x: int, y: int) -> int:
        return (y * self.width + x) * self.channels


def _is_grey_palette(image) -> bool:
    if image.mode != "P":
        return True
    palette = image.getpalette() or []
    triples = zip(palette[0::3], palette[1::3], palette[2::3])
    return all(r == g == b for r, g, b in triples)
