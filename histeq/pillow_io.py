from __future__ import annotations

from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import ImageLoadError
from .image_buffer import ImageBuffer


def read_pillow(path: str | Path) -> ImageBuffer:
    try:
        with Image.open(path) as img:
            img.load()
            return ImageBuffer.from_pillow_image(img)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"Cannot decode {path}: {exc}") from exc


def write_pillow(image: ImageBuffer, path: str | Path, quality: int = 90) -> None:
    pil_image = image.to_pillow_image()
    if Path(path).suffix.lower() in {".jpg", ".jpeg"}:
        quality = max(1, min(95, quality))
        pil_image.save(path, format="JPEG", quality=quality, optimize=True)
    else:
        pil_image.save(path)
