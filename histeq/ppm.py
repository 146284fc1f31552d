from __future__ import annotations

from pathlib import Path
from typing import Iterator

from .errors import ImageLoadError
from .image_buffer import ImageBuffer

# magic -> (channels, binary)
_FORMATS = {
    "P2": (1, False),
    "P3": (3, False),
    "P5": (1, True),
    "P6": (3, True),
}


class PPMFormatError(ImageLoadError):
    pass


def read_ppm(path: str | Path) -> ImageBuffer:
    """Read a PGM (P2/P5) or PPM (P3/P6) file; samples are rescaled to 0-255."""
    with open(path, "rb") as stream:
        try:
            magic, width, height, max_value = _read_header(stream)
            channels, binary = _FORMATS[magic]
            total_values = width * height * channels
            if binary:
                data = _read_binary_pixels(stream, total_values, max_value)
            else:
                data = _read_ascii_pixels(stream, total_values, max_value)
        except UnicodeDecodeError as exc:
            raise PPMFormatError(f"PNM text is not ASCII: {exc.reason}") from exc
    try:
        return ImageBuffer(width, height, channels, data)
    except ValueError as exc:
        raise PPMFormatError(str(exc)) from exc


def write_ppm(image: ImageBuffer, path: str | Path, binary: bool = True) -> None:
    """Write ``image`` as PGM when it has one channel, PPM otherwise."""
    if image.channels == 1:
        magic = "P5" if binary else "P2"
    else:
        magic = "P6" if binary else "P3"
    header = f"{magic}\n{image.width} {image.height}\n{image.max_value}\n"
    with open(path, "wb") as stream:
        stream.write(header.encode("ascii"))
        if binary:
            stream.write(bytes(image.data))
        else:
            _write_ascii_pixels(image, stream)


def _read_header(stream) -> tuple[str, int, int, int]:
    magic = stream.read(2).decode("ascii", errors="replace")
    if magic not in _FORMATS:
        raise PPMFormatError("File is not a valid PNM (expected P2, P3, P5 or P6)")
    tokens = list(_read_tokens(stream, 3))
    if len(tokens) < 3:
        raise PPMFormatError("PNM header is incomplete")
    try:
        width, height, max_value = map(int, tokens)
    except ValueError as exc:
        raise PPMFormatError(f"PNM header is malformed: {tokens}") from exc
    if width <= 0 or height <= 0:
        raise PPMFormatError("PNM dimensions must be positive")
    if not 0 < max_value < 65536:
        raise PPMFormatError(f"PNM max value out of range: {max_value}")
    return magic, width, height, max_value


def _read_tokens(stream, required: int) -> Iterator[str]:
    token = bytearray()
    comment = False
    while required:
        chunk = stream.read(1)
        if not chunk:
            break
        ch = chunk[0]
        if comment:
            if ch in (10, 13):
                comment = False
            continue
        if ch == 35:
            comment = True
            continue
        if ch in b" \t\r\n\v\f":
            if token:
                yield token.decode("ascii")
                token.clear()
                required -= 1
        else:
            token.append(ch)
    if token and required > 0:
        yield token.decode("ascii")


def _read_ascii_pixels(stream, total_values: int, max_value: int) -> bytearray:
    data = bytearray(total_values)
    idx = 0
    for token in _ascii_value_generator(stream):
        if idx >= total_values:
            break
        try:
            value = int(token)
        except ValueError as exc:
            raise PPMFormatError(f"Invalid ASCII sample: {token!r}") from exc
        if not 0 <= value <= max_value:
            raise PPMFormatError(f"ASCII sample {value} outside 0..{max_value}")
        data[idx] = _normalize_value(value, max_value)
        idx += 1
    if idx != total_values:
        raise PPMFormatError("Unexpected end of ASCII pixel data")
    return data


def _ascii_value_generator(stream) -> Iterator[str]:
    token = bytearray()
    comment = False
    while True:
        chunk = stream.read(4096)
        if not chunk:
            break
        for ch in chunk:
            if comment:
                if ch in (10, 13):
                    comment = False
                continue
            if ch == 35:
                comment = True
                continue
            if chr(ch).isspace():
                if token:
                    yield token.decode("ascii")
                    token.clear()
            else:
                token.append(ch)
    if token:
        yield token.decode("ascii")


def _read_binary_pixels(stream, total_values: int, max_value: int) -> bytearray:
    sample_size = 1 if max_value < 256 else 2
    raw = stream.read(total_values * sample_size)
    if len(raw) != total_values * sample_size:
        raise PPMFormatError("Binary pixel data shorter than expected")
    if sample_size == 2:
        values = (int.from_bytes(raw[i : i + 2], "big") for i in range(0, len(raw), 2))
        return bytearray(_normalize_value(min(v, max_value), max_value) for v in values)
    if max_value == 255:
        return bytearray(raw)
    return bytearray(_normalize_value(min(b, max_value), max_value) for b in raw)


def _write_ascii_pixels(image: ImageBuffer, stream) -> None:
    row_length = image.width * image.channels
    for y in range(image.height):
        offset = y * row_length
        row = image.data[offset : offset + row_length]
        stream.write((" ".join(str(v) for v in row) + "\n").encode("ascii"))


def _normalize_value(value: int, max_value: int) -> int:
    if max_value == 255:
        return value
    return int(round((value / max_value) * 255))
