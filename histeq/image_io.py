from __future__ import annotations

from pathlib import Path

from .errors import ImageLoadError, ImageSaveError
from .image_buffer import ImageBuffer
from .pillow_io import read_pillow, write_pillow
from .ppm import read_ppm, write_ppm

PNM_EXTENSIONS = {".ppm", ".pgm", ".pnm"}
PILLOW_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff"}


class ImageFormatError(ImageLoadError):
    pass


def load_image(path: str | Path) -> ImageBuffer:
    path = Path(path)
    if not path.is_file():
        raise ImageLoadError(f"Image file not found: {path}")
    suffix = path.suffix.lower()
    if suffix in PNM_EXTENSIONS:
        return read_ppm(path)
    if suffix in PILLOW_EXTENSIONS:
        return read_pillow(path)
    raise ImageFormatError(f"Unsupported file extension: {path.suffix}")


def save_image(image: ImageBuffer, path: str | Path, quality: int = 90) -> None:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in PNM_EXTENSIONS | PILLOW_EXTENSIONS:
        raise ImageFormatError(f"Unsupported file extension: {path.suffix}")
    try:
        if suffix in PNM_EXTENSIONS:
            write_ppm(image, path, binary=True)
        else:
            write_pillow(image, path, quality=quality)
    except (OSError, ValueError) as exc:
        raise ImageSaveError(f"Cannot write {path}: {exc}") from exc
