from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import numpy as np

from .config import PipelineConfig
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class DeviceBuffer:
    """Handle to a device-resident array of ``count`` elements of ``dtype``."""

    handle: Any
    count: int
    dtype: np.dtype

    @property
    def nbytes(self) -> int:
        return self.count * np.dtype(self.dtype).itemsize


@dataclass(frozen=True)
class LocalMemory:
    """Per-work-group scratch array passed as a kernel argument."""

    count: int
    dtype: np.dtype = np.dtype(np.int32)

    @property
    def nbytes(self) -> int:
        return self.count * np.dtype(self.dtype).itemsize


class ComputeBackend(ABC):
    """
    Data-parallel device the pipeline stages run on.

    Every method blocks until the device has finished the requested work, so a
    returned ``launch`` call is a full barrier between stages.
    """

    name = ""

    @property
    @abstractmethod
    def max_group_size(self) -> int:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @abstractmethod
    def allocate(self, count: int, dtype) -> DeviceBuffer:
        ...

    @abstractmethod
    def upload(self, host: np.ndarray) -> DeviceBuffer:
        ...

    @abstractmethod
    def download(self, buffer: DeviceBuffer) -> np.ndarray:
        ...

    @abstractmethod
    def fill(self, buffer: DeviceBuffer, value: int = 0) -> None:
        ...

    @abstractmethod
    def launch(self, kernel: str, global_size: int, local_size: int | None, *args) -> None:
        """Run ``kernel`` over ``global_size`` work-items and wait for it to finish."""

    def local(self, count: int, dtype=np.int32) -> LocalMemory:
        return LocalMemory(count, np.dtype(dtype))

    def zeros(self, count: int, dtype=np.int32) -> DeviceBuffer:
        buffer = self.allocate(count, dtype)
        self.fill(buffer, 0)
        return buffer

    def finish(self) -> None:
        pass


def create_backend(config: PipelineConfig) -> ComputeBackend:
    if config.backend == "emulator":
        from .emulator import EmulatorBackend

        backend: ComputeBackend = EmulatorBackend()
    elif config.backend == "opencl":
        from .opencl_backend import OpenCLBackend

        backend = OpenCLBackend(config.platform_id, config.device_id)
    else:
        raise ConfigurationError(f"Unknown compute backend: {config.backend}")
    logger.info("Running on %s", backend.description)
    return backend
