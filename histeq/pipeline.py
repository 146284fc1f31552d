from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .backend import ComputeBackend, DeviceBuffer, create_backend
from .config import PipelineConfig
from .errors import ConfigurationError, DeviceError, ImageLoadError, StageError
from .histogram import HistogramStrategy, histogram_strategy
from .image_buffer import ImageBuffer
from .intensity import reduce_intensity
from .mapping import apply_lookup, normalize
from .scan import ScanStrategy, scan_strategy, scan_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EqualizationResult:
    """Host copies of every intermediate produced by one run, plus the output image."""

    histogram: np.ndarray
    cumulative: np.ndarray
    normalized: np.ndarray
    output: ImageBuffer
    bins: int
    inclusive: bool


class EqualizationPipeline:
    """
    Runs intensity reduction, histogram, scan, normalisation and lookup on ``backend``.

    Each stage is a blocking call, so a stage only starts once the previous one
    has fully written its output buffer. The first failing stage aborts the run.
    """

    def __init__(
        self,
        backend: ComputeBackend,
        config: PipelineConfig | None = None,
        histogram: HistogramStrategy | None = None,
        scan: ScanStrategy | None = None,
    ) -> None:
        self.config = (config or PipelineConfig()).validate()
        self.backend = backend
        self.histogram = histogram or histogram_strategy(self.config.histogram, self.config.group_size)
        self.scan = scan or scan_strategy(self.config.scan)
        self._check_device_limits()

    def run(self, image: ImageBuffer) -> EqualizationResult:
        if image.channels not in (1, 3):
            raise ImageLoadError(f"Unsupported channel count: {image.channels}")
        bins = self.config.bins
        pixels = image.pixel_count
        logger.debug(
            "Equalizing %dx%d image (%d channel(s)), %d bins, %s histogram, %s scan in %d steps",
            image.width,
            image.height,
            image.channels,
            bins,
            self.histogram.name,
            self.scan.name,
            self.scan.steps(bins),
        )

        with self._stage("intensity"):
            intensity = reduce_intensity(self.backend, image)

        with self._stage("histogram"):
            hist_buf = self.histogram.build(self.backend, intensity, pixels, bins)
            histogram = self._read(hist_buf)
            if int(histogram.sum()) != pixels:
                raise DeviceError(f"histogram counts {int(histogram.sum())} pixels, image has {pixels}")

        with self._stage("scan"):
            cum_buf = self.scan.scan(self.backend, hist_buf, bins)
            cumulative = self._read(cum_buf)
            total = scan_total(cumulative, histogram, self.scan.inclusive)
            if total != pixels:
                raise DeviceError(f"scan total {total} does not match pixel count {pixels}")

        with self._stage("normalise"):
            norm_buf = normalize(self.backend, cum_buf, hist_buf, pixels, bins, self.scan.inclusive)
            normalized = self._read(norm_buf)

        with self._stage("lookup"):
            out_buf = apply_lookup(self.backend, intensity, norm_buf, pixels, bins)
            samples = self.backend.download(out_buf)

        output = ImageBuffer(image.width, image.height, 1, bytearray(samples.tobytes()))
        logger.info(
            "Equalized %dx%d image: %d bins, %s histogram, %s scan",
            image.width,
            image.height,
            bins,
            self.histogram.name,
            self.scan.name,
        )
        return EqualizationResult(histogram, cumulative, normalized, output, bins, self.scan.inclusive)

    def _read(self, buffer: DeviceBuffer) -> np.ndarray:
        host = self.backend.download(buffer)
        host.flags.writeable = False
        return host

    def _check_device_limits(self) -> None:
        limit = self.backend.max_group_size
        if self.config.bins > limit:
            raise ConfigurationError(f"{self.config.bins} bins exceed the device work-group limit of {limit}")
        group_size = getattr(self.histogram, "group_size", None)
        if group_size is not None and group_size > limit:
            raise ConfigurationError(f"Group size {group_size} exceeds the device work-group limit of {limit}")

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        logger.debug("%s stage started", name)
        try:
            yield
            self.backend.finish()
        except StageError:
            raise
        except DeviceError as exc:
            raise StageError(name, str(exc), build_log=exc.build_log) from exc
        logger.debug("%s stage finished", name)


def equalize(
    image: ImageBuffer,
    config: PipelineConfig | None = None,
    backend: ComputeBackend | None = None,
) -> EqualizationResult:
    """Validate ``config``, open a backend if none is given and run the pipeline once."""
    config = (config or PipelineConfig()).validate()
    if backend is None:
        backend = create_backend(config)
    return EqualizationPipeline(backend, config).run(image)
