from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .backend import ComputeBackend, DeviceBuffer
from .errors import ConfigurationError


class ScanStrategy(ABC):
    """
    Prefix sum over the histogram, run as a single work-group of ``bins`` work-items.

    ``inclusive`` tells callers whether ``cum[i]`` counts bin ``i`` itself.
    """

    name = ""
    inclusive = True

    @abstractmethod
    def scan(self, backend: ComputeBackend, histogram: DeviceBuffer, bins: int) -> DeviceBuffer:
        ...

    def steps(self, bins: int) -> int:
        """Number of barrier-separated steps the kernel performs."""
        return (bins - 1).bit_length()


class HillisSteeleScan(ScanStrategy):
    """Inclusive scan: at stride d every element adds the one d places back."""

    name = "hillis-steele"
    inclusive = True

    def scan(self, backend: ComputeBackend, histogram: DeviceBuffer, bins: int) -> DeviceBuffer:
        cumulative = backend.allocate(bins, np.int32)
        backend.launch(
            "scan_hs",
            bins,
            bins,
            histogram,
            cumulative,
            backend.local(bins, np.int32),
            backend.local(bins, np.int32),
        )
        return cumulative


class BlellochScan(ScanStrategy):
    """Work-efficient exclusive scan: up-sweep reduction tree, then down-sweep."""

    name = "blelloch"
    inclusive = False

    def scan(self, backend: ComputeBackend, histogram: DeviceBuffer, bins: int) -> DeviceBuffer:
        if bins & (bins - 1):
            raise ConfigurationError(f"Blelloch scan needs a power-of-two bin count, got {bins}")
        cumulative = backend.allocate(bins, np.int32)
        backend.launch("scan_bl", bins, bins, histogram, cumulative, backend.local(bins, np.int32))
        return cumulative

    def steps(self, bins: int) -> int:
        return 2 * super().steps(bins)


SCAN_STRATEGIES = {
    HillisSteeleScan.name: HillisSteeleScan,
    BlellochScan.name: BlellochScan,
}


def scan_strategy(name: str) -> ScanStrategy:
    try:
        return SCAN_STRATEGIES[name]()
    except KeyError:
        raise ConfigurationError(f"Unknown scan strategy: {name}") from None


def scan_total(cumulative: np.ndarray, histogram: np.ndarray, inclusive: bool) -> int:
    """Pixel total implied by a scan result; equals the pixel count when the scan is correct."""
    total = int(cumulative[-1])
    if not inclusive:
        total += int(histogram[-1])
    return total
