from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .backend import ComputeBackend, DeviceBuffer
from .bins import bin_width
from .errors import ConfigurationError


class HistogramStrategy(ABC):
    """Counts the intensity buffer into ``bins`` bins on the device."""

    name = ""

    @abstractmethod
    def build(self, backend: ComputeBackend, intensity: DeviceBuffer, pixel_count: int, bins: int) -> DeviceBuffer:
        ...


class SerialAtomicHistogram(HistogramStrategy):
    """Every pixel increments its bin in the global array with one atomic."""

    name = "atomic"

    def build(self, backend: ComputeBackend, intensity: DeviceBuffer, pixel_count: int, bins: int) -> DeviceBuffer:
        hist = backend.zeros(bins, np.int32)
        backend.launch("hist_atomic", pixel_count, None, intensity, hist, pixel_count, bin_width(bins))
        return hist


class LocalReduceHistogram(HistogramStrategy):
    """
    Each work-group counts into its own local histogram, then one work-item per
    group adds the local counts to the global array.

    The global range is padded up to a multiple of ``group_size``; padding
    work-items take part in the barriers but never increment a counter.
    """

    name = "local"

    def __init__(self, group_size: int = 256) -> None:
        if group_size <= 0:
            raise ConfigurationError("Group size must be positive")
        self.group_size = group_size

    def global_size(self, pixel_count: int) -> int:
        groups = -(-pixel_count // self.group_size)
        return groups * self.group_size

    def build(self, backend: ComputeBackend, intensity: DeviceBuffer, pixel_count: int, bins: int) -> DeviceBuffer:
        hist = backend.zeros(bins, np.int32)
        backend.launch(
            "hist_local",
            self.global_size(pixel_count),
            self.group_size,
            intensity,
            hist,
            backend.local(bins, np.int32),
            pixel_count,
            bins,
            bin_width(bins),
        )
        return hist


def histogram_strategy(name: str, group_size: int = 256) -> HistogramStrategy:
    if name == LocalReduceHistogram.name:
        return LocalReduceHistogram(group_size)
    if name == SerialAtomicHistogram.name:
        return SerialAtomicHistogram()
    raise ConfigurationError(f"Unknown histogram strategy: {name}")
