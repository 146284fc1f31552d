from __future__ import annotations


class HistEqError(RuntimeError):
    """Base class for every failure surfaced by the equalization pipeline."""


class ConfigurationError(HistEqError, ValueError):
    pass


class ImageLoadError(HistEqError):
    pass


class DeviceError(HistEqError):
    """Allocation, program build or dispatch failure reported by a compute backend."""

    def __init__(self, message: str, build_log: str | None = None) -> None:
        super().__init__(message)
        self.build_log = build_log


class StageError(DeviceError):
    """A device failure tagged with the pipeline stage that raised it."""

    def __init__(self, stage: str, reason: str, build_log: str | None = None) -> None:
        super().__init__(f"{stage} stage failed: {reason}", build_log=build_log)
        self.stage = stage
        self.reason = reason


class ImageSaveError(HistEqError):
    pass
