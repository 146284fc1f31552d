from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from .backend import ComputeBackend, DeviceBuffer, LocalMemory
from .errors import DeviceError

logger = logging.getLogger(__name__)


class EmulatorBackend(ComputeBackend):
    """
    Host-side stand-in for a data-parallel device.

    Kernels are evaluated with numpy, one vectorised step per barrier: work-items
    are split into groups of ``local_size``, every group gets its own copy of each
    ``LocalMemory`` argument, work-items past the valid range are masked out, and
    atomic increments are accumulated with ``numpy.add.at`` so repeated indices
    are all counted.
    """

    name = "emulator"

    def __init__(self, max_group_size: int = 1024, local_mem_size: int = 32 * 1024) -> None:
        self._max_group_size = max_group_size
        self._local_mem_size = local_mem_size
        self._kernels: dict[str, Callable] = {
            "rgb2grey": self._rgb2grey,
            "identity": self._identity,
            "hist_atomic": self._hist_atomic,
            "hist_local": self._hist_local,
            "scan_hs": self._scan_hs,
            "scan_bl": self._scan_bl,
            "normalise": self._normalise,
            "lookup": self._lookup,
        }

    @property
    def max_group_size(self) -> int:
        return self._max_group_size

    @property
    def description(self) -> str:
        return f"numpy emulator (max work-group size {self._max_group_size})"

    def allocate(self, count: int, dtype) -> DeviceBuffer:
        try:
            array = np.empty(count, dtype=dtype)
        except (MemoryError, ValueError) as exc:
            raise DeviceError(f"Cannot allocate {count} x {np.dtype(dtype).name}: {exc}") from exc
        return DeviceBuffer(array, count, array.dtype)

    def upload(self, host: np.ndarray) -> DeviceBuffer:
        buffer = self.allocate(host.size, host.dtype)
        buffer.handle[:] = host.ravel()
        return buffer

    def download(self, buffer: DeviceBuffer) -> np.ndarray:
        return buffer.handle.copy()

    def fill(self, buffer: DeviceBuffer, value: int = 0) -> None:
        buffer.handle.fill(value)

    def launch(self, kernel: str, global_size: int, local_size: int | None, *args) -> None:
        try:
            body = self._kernels[kernel]
        except KeyError:
            raise DeviceError(f"No kernel named {kernel!r}") from None
        if local_size is None:
            local_size = min(global_size, self._max_group_size)
            while global_size % local_size:
                local_size -= 1
        if local_size <= 0 or local_size > self._max_group_size:
            raise DeviceError(f"{kernel}: invalid work-group size {local_size}")
        if global_size % local_size:
            raise DeviceError(f"{kernel}: global size {global_size} is not a multiple of work-group size {local_size}")
        local_bytes = sum(arg.nbytes for arg in args if isinstance(arg, LocalMemory))
        if local_bytes > self._local_mem_size:
            raise DeviceError(f"{kernel}: {local_bytes} bytes of local memory exceeds {self._local_mem_size}")
        values = [arg.handle if isinstance(arg, DeviceBuffer) else arg for arg in args]
        logger.debug("launch %s global=%d local=%d", kernel, global_size, local_size)
        try:
            body(global_size, local_size, *values)
        except IndexError as exc:
            raise DeviceError(f"{kernel}: out-of-bounds access: {exc}") from exc

    # Kernels

    def _rgb2grey(self, global_size, local_size, rgb, grey, n):
        idx = _valid_ids(global_size, n)
        r = rgb[idx * 3].astype(np.uint32)
        g = rgb[idx * 3 + 1].astype(np.uint32)
        b = rgb[idx * 3 + 2].astype(np.uint32)
        grey[idx] = ((54 * r + 183 * g + 19 * b) >> 8).astype(np.uint8)

    def _identity(self, global_size, local_size, src, dst, n):
        idx = _valid_ids(global_size, n)
        dst[idx] = src[idx]

    def _hist_atomic(self, global_size, local_size, values, hist, n, bin_width):
        idx = _valid_ids(global_size, n)
        np.add.at(hist, values[idx].astype(np.int64) // bin_width, 1)

    def _hist_local(self, global_size, local_size, values, hist, local_hist, n, nbins, bin_width):
        if local_hist.count < nbins:
            raise IndexError(f"local histogram holds {local_hist.count} bins, kernel needs {nbins}")
        groups = global_size // local_size
        counters = np.zeros((groups, nbins), dtype=local_hist.dtype)
        idx = _valid_ids(global_size, n)
        # barrier
        np.add.at(counters, (idx // local_size, values[idx].astype(np.int64) // bin_width), 1)
        # barrier; work-item 0 of every group merges its counters
        np.add.at(hist, np.tile(np.arange(nbins), groups), counters.ravel())

    def _scan_hs(self, global_size, local_size, src, dst, scratch_1, scratch_2):
        for scratch in (scratch_1, scratch_2):
            if scratch.count < local_size:
                raise IndexError(f"scratch holds {scratch.count} values, work-group has {local_size}")
        current = src[:global_size].astype(np.int32).reshape(-1, local_size)
        stride = 1
        while stride < local_size:
            following = current.copy()
            following[:, stride:] = current[:, stride:] + current[:, :-stride]
            # barrier, buffers swap
            current = following
            stride *= 2
        dst[:global_size] = current.ravel()

    def _scan_bl(self, global_size, local_size, src, dst, temp):
        if temp.count < local_size:
            raise IndexError(f"scratch holds {temp.count} values, work-group has {local_size}")
        tree = src[:global_size].astype(np.int32).reshape(-1, local_size)
        ids = np.arange(local_size)
        stride = 1
        while stride < local_size:
            right = ids[(ids + 1) % (stride * 2) == 0]
            tree[:, right] += tree[:, right - stride]
            stride *= 2
        tree[:, local_size - 1] = 0
        stride = local_size // 2
        while stride > 0:
            right = ids[(ids + 1) % (stride * 2) == 0]
            left = right - stride
            carried = tree[:, right].copy()
            tree[:, right] += tree[:, left]
            tree[:, left] = carried
            stride //= 2
        dst[:global_size] = tree.ravel()

    def _normalise(self, global_size, local_size, cum, counts, norm, total, exclusive):
        c = cum[:global_size].astype(np.int64)
        if exclusive:
            c = c + counts[:global_size]
        scaled = (c * 510 + total) // (2 * total)
        norm[:global_size] = np.clip(scaled, 0, 255)

    def _lookup(self, global_size, local_size, values, norm, out, n, bin_width):
        idx = _valid_ids(global_size, n)
        out[idx] = norm[values[idx].astype(np.int64) // bin_width].astype(np.uint8)


def _valid_ids(global_size: int, n: int) -> np.ndarray:
    return np.arange(min(global_size, n))
