from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pyopencl as cl

from .backend import ComputeBackend, DeviceBuffer, LocalMemory
from .errors import DeviceError

logger = logging.getLogger(__name__)

KERNEL_SOURCE = Path(__file__).with_name("kernels") / "histeq.cl"


def list_devices() -> list[str]:
    """Describe every OpenCL platform and device, indexed as ``-p`` / ``-d`` expect."""
    try:
        platforms = cl.get_platforms()
    except cl.Error as exc:
        raise DeviceError(f"Cannot enumerate OpenCL platforms: {exc}") from exc
    lines = []
    for p_idx, platform in enumerate(platforms):
        lines.append(f"Platform {p_idx}: {platform.name}, version: {platform.version}, vendor: {platform.vendor}")
        try:
            devices = platform.get_devices()
        except cl.Error as exc:
            lines.append(f"  no devices: {exc}")
            continue
        for d_idx, device in enumerate(devices):
            kind = cl.device_type.to_string(device.type)
            lines.append(
                f"  Device {d_idx}: {device.name}, type: {kind}, "
                f"compute units: {device.max_compute_units}, "
                f"max work-group size: {device.max_work_group_size}"
            )
    return lines


class OpenCLBackend(ComputeBackend):
    name = "opencl"

    def __init__(self, platform_id: int = 0, device_id: int = 0, source: str | None = None) -> None:
        self._platform, self._device = _select_device(platform_id, device_id)
        try:
            self._context = cl.Context([self._device])
            self._queue = cl.CommandQueue(self._context)
        except cl.Error as exc:
            raise DeviceError(f"Cannot create OpenCL context: {exc}") from exc
        if source is None:
            source = KERNEL_SOURCE.read_text(encoding="utf-8")
        self._program = self._build(source)
        self._kernels: dict[str, cl.Kernel] = {}

    @property
    def max_group_size(self) -> int:
        return self._device.max_work_group_size

    @property
    def description(self) -> str:
        return f"{self._platform.name}, {self._device.name}"

    def allocate(self, count: int, dtype) -> DeviceBuffer:
        dtype = np.dtype(dtype)
        try:
            handle = cl.Buffer(self._context, cl.mem_flags.READ_WRITE, size=max(1, count * dtype.itemsize))
        except cl.Error as exc:
            raise DeviceError(f"Cannot allocate {count} x {dtype.name}: {exc}") from exc
        return DeviceBuffer(handle, count, dtype)

    def upload(self, host: np.ndarray) -> DeviceBuffer:
        host = np.ascontiguousarray(host)
        flags = cl.mem_flags.READ_WRITE | cl.mem_flags.COPY_HOST_PTR
        try:
            handle = cl.Buffer(self._context, flags, hostbuf=host)
        except cl.Error as exc:
            raise DeviceError(f"Cannot upload {host.nbytes} bytes: {exc}") from exc
        return DeviceBuffer(handle, host.size, host.dtype)

    def download(self, buffer: DeviceBuffer) -> np.ndarray:
        host = np.empty(buffer.count, dtype=buffer.dtype)
        try:
            cl.enqueue_copy(self._queue, host, buffer.handle, is_blocking=True)
        except cl.Error as exc:
            raise DeviceError(f"Cannot read back {buffer.nbytes} bytes: {exc}") from exc
        return host

    def fill(self, buffer: DeviceBuffer, value: int = 0) -> None:
        pattern = np.array([value], dtype=buffer.dtype)
        try:
            cl.enqueue_fill_buffer(self._queue, buffer.handle, pattern, 0, buffer.nbytes).wait()
        except cl.Error as exc:
            raise DeviceError(f"Cannot fill buffer: {exc}") from exc

    def launch(self, kernel: str, global_size: int, local_size: int | None, *args) -> None:
        local = (local_size,) if local_size else None
        try:
            event = self._kernel(kernel)(self._queue, (global_size,), local, *map(_kernel_arg, args))
            event.wait()
        except cl.Error as exc:
            raise DeviceError(f"{kernel} dispatch failed: {exc}") from exc

    def finish(self) -> None:
        try:
            self._queue.finish()
        except cl.Error as exc:
            raise DeviceError(f"Queue did not drain: {exc}") from exc

    def _kernel(self, name: str) -> cl.Kernel:
        if name not in self._kernels:
            self._kernels[name] = cl.Kernel(self._program, name)
        return self._kernels[name]

    def _build(self, source: str) -> cl.Program:
        program = cl.Program(self._context, source)
        try:
            program.build()
        except cl.Error as exc:
            raise DeviceError(f"Kernel build failed: {exc}", build_log=self._build_log(program)) from exc
        logger.debug("Built %s for %s", KERNEL_SOURCE.name, self._device.name)
        return program

    def _build_log(self, program: cl.Program) -> str | None:
        try:
            return program.get_build_info(self._device, cl.program_build_info.LOG)
        except cl.Error:
            return None


def _select_device(platform_id: int, device_id: int):
    try:
        platforms = cl.get_platforms()
    except cl.Error as exc:
        raise DeviceError(f"Cannot enumerate OpenCL platforms: {exc}") from exc
    if not 0 <= platform_id < len(platforms):
        raise DeviceError(f"No OpenCL platform with index {platform_id} ({len(platforms)} available)")
    platform = platforms[platform_id]
    try:
        devices = platform.get_devices()
    except cl.Error as exc:
        raise DeviceError(f"Cannot enumerate devices of {platform.name}: {exc}") from exc
    if not 0 <= device_id < len(devices):
        raise DeviceError(f"No device with index {device_id} on {platform.name} ({len(devices)} available)")
    return platform, devices[device_id]


def _kernel_arg(arg):
    if isinstance(arg, DeviceBuffer):
        return arg.handle
    if isinstance(arg, LocalMemory):
        return cl.LocalMemory(arg.nbytes)
    if isinstance(arg, (bool, int, np.integer)):
        return np.int32(arg)
    return arg
