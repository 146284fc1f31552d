from __future__ import annotations

import numpy as np

from .backend import ComputeBackend, DeviceBuffer
from .bins import bin_width


def normalize(
    backend: ComputeBackend,
    cumulative: DeviceBuffer,
    histogram: DeviceBuffer,
    pixel_count: int,
    bins: int,
    inclusive: bool = True,
) -> DeviceBuffer:
    """
    Rescale the cumulative histogram to ``[0, 255]`` (round half up).

    Exclusive scan results are shifted back to inclusive values by adding each
    bin's own count, so both scans yield the same lookup table.
    """
    norm = backend.allocate(bins, np.int32)
    backend.launch("normalise", bins, None, cumulative, histogram, norm, pixel_count, int(not inclusive))
    return norm


def apply_lookup(
    backend: ComputeBackend,
    intensity: DeviceBuffer,
    normalized: DeviceBuffer,
    pixel_count: int,
    bins: int,
) -> DeviceBuffer:
    output = backend.allocate(pixel_count, np.uint8)
    backend.launch("lookup", pixel_count, None, intensity, normalized, output, pixel_count, bin_width(bins))
    return output
