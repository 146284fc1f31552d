from __future__ import annotations

import numpy as np

from .errors import ConfigurationError

INTENSITY_LEVELS = 256


def validate_bin_count(bins: int) -> int:
    """Return ``bins`` if it is a divisor of 256 in ``[1, 256]``."""
    if isinstance(bins, bool) or not isinstance(bins, (int, np.integer)):
        raise ConfigurationError(f"Bin count must be an integer, got {bins!r}")
    if not 1 <= bins <= INTENSITY_LEVELS:
        raise ConfigurationError(f"Bin count must be in range [1, {INTENSITY_LEVELS}], got {bins}")
    if INTENSITY_LEVELS % bins:
        raise ConfigurationError(f"Bin count must divide {INTENSITY_LEVELS}, got {bins}")
    return int(bins)


def bin_width(bins: int) -> int:
    return INTENSITY_LEVELS // validate_bin_count(bins)


def bin_index(value, bins: int):
    """Bin of an intensity (or array of intensities): ``value // (256 // bins)``."""
    width = bin_width(bins)
    if isinstance(value, np.ndarray):
        return value.astype(np.int64) // width
    return int(value) // width


def bin_map(bins: int) -> tuple[int, ...]:
    """Lower threshold of every bin, ``t_i = i * (256 // bins)``."""
    width = bin_width(bins)
    return tuple(range(0, INTENSITY_LEVELS, width))


def quantize(value, bins: int):
    """Snap an intensity to the threshold of its bin."""
    return bin_index(value, bins) * bin_width(bins)
