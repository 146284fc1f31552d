from __future__ import annotations

import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

from .bins import validate_bin_count
from .errors import ConfigurationError

BACKENDS = ("opencl", "emulator")
HISTOGRAM_CHOICES = ("atomic", "local")
SCAN_CHOICES = ("hillis-steele", "blelloch")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Settings for one equalization run.
    Defaults can be overridden through ``HISTEQ_*`` environment variables or a ``.env`` file.
    """

    bins: int = 256
    histogram: str = "local"
    scan: str = "hillis-steele"
    group_size: int = 256
    backend: str = "opencl"
    platform_id: int = 0
    device_id: int = 0

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        load_dotenv()
        config = cls(
            bins=_int_env("HISTEQ_BINS", cls.bins),
            histogram=os.getenv("HISTEQ_HISTOGRAM", cls.histogram),
            scan=os.getenv("HISTEQ_SCAN", cls.scan),
            group_size=_int_env("HISTEQ_GROUP_SIZE", cls.group_size),
            backend=os.getenv("HISTEQ_BACKEND", cls.backend),
            platform_id=_int_env("HISTEQ_PLATFORM", cls.platform_id),
            device_id=_int_env("HISTEQ_DEVICE", cls.device_id),
        )
        return config.with_overrides(**overrides)

    def with_overrides(self, **overrides) -> "PipelineConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "PipelineConfig":
        validate_bin_count(self.bins)
        if self.histogram not in HISTOGRAM_CHOICES:
            raise ConfigurationError(f"Unknown histogram strategy: {self.histogram}")
        if self.scan not in SCAN_CHOICES:
            raise ConfigurationError(f"Unknown scan strategy: {self.scan}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Unknown compute backend: {self.backend}")
        if self.group_size <= 0:
            raise ConfigurationError("Group size must be positive")
        if self.platform_id < 0 or self.device_id < 0:
            raise ConfigurationError("Platform and device indices must be non-negative")
        return self


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
