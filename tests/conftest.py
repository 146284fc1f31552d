from __future__ import annotations

import numpy as np
import pytest

from histeq.emulator import EmulatorBackend
from histeq.image_buffer import ImageBuffer


@pytest.fixture
def backend() -> EmulatorBackend:
    return EmulatorBackend()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "HISTEQ_BACKEND",
        "HISTEQ_PLATFORM",
        "HISTEQ_DEVICE",
        "HISTEQ_BINS",
        "HISTEQ_HISTOGRAM",
        "HISTEQ_SCAN",
        "HISTEQ_GROUP_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def grey_image(rng) -> ImageBuffer:
    # 37 * 23 pixels is not a multiple of any work-group size used in the tests
    return ImageBuffer.from_array(rng.integers(0, 256, size=(23, 37), dtype=np.uint8))


@pytest.fixture
def rgb_image(rng) -> ImageBuffer:
    return ImageBuffer.from_array(rng.integers(0, 256, size=(19, 21, 3), dtype=np.uint8))


def reference_equalize(values: np.ndarray, bins: int) -> dict[str, np.ndarray]:
    """Serial host computation of every pipeline intermediate."""
    width = 256 // bins
    n = values.size
    counts = np.bincount(values.astype(np.int64) // width, minlength=bins)
    cumulative = np.cumsum(counts)
    norm = np.clip((cumulative * 510 + n) // (2 * n), 0, 255)
    output = norm[values.astype(np.int64) // width].astype(np.uint8)
    return {"counts": counts, "cumulative": cumulative, "norm": norm, "output": output}


def reference_luma(array: np.ndarray) -> np.ndarray:
    rgb = array.reshape(-1, 3).astype(np.uint32)
    return ((54 * rgb[:, 0] + 183 * rgb[:, 1] + 19 * rgb[:, 2]) >> 8).astype(np.uint8)
