import numpy as np
import pytest

from histeq.bins import bin_map, quantize
from histeq.mapping import apply_lookup, normalize


def _normalize(backend, cumulative, counts, total, inclusive=True):
    cum_buf = backend.upload(np.asarray(cumulative, dtype=np.int32))
    hist_buf = backend.upload(np.asarray(counts, dtype=np.int32))
    return backend.download(normalize(backend, cum_buf, hist_buf, total, len(counts), inclusive))


def test_round_half_up(backend):
    norm = _normalize(backend, [1, 2, 3, 4], [1, 1, 1, 1], 4)
    assert list(norm) == [64, 128, 191, 255]


def test_exclusive_input_is_shifted_to_inclusive(backend):
    norm = _normalize(backend, [0, 1, 2, 3], [1, 1, 1, 1], 4, inclusive=False)
    assert list(norm) == [64, 128, 191, 255]


def test_degenerate_single_intensity(backend):
    counts = np.zeros(256, dtype=np.int32)
    counts[100] = 50
    cumulative = np.cumsum(counts)
    norm = _normalize(backend, cumulative, counts, 50)
    assert np.all(norm[:100] == 0)
    assert np.all(norm[100:] == 255)


@pytest.mark.parametrize("inclusive", [True, False])
@pytest.mark.parametrize("bins", [1, 8, 256])
def test_monotone_and_bounded(backend, rng, bins, inclusive):
    counts = rng.integers(0, 5000, size=bins)
    counts[rng.integers(0, bins)] += 1
    inclusive_cum = np.cumsum(counts)
    cumulative = inclusive_cum if inclusive else inclusive_cum - counts
    total = int(counts.sum())
    norm = _normalize(backend, cumulative, counts, total, inclusive)
    assert norm.min() >= 0
    assert norm.max() == 255
    assert np.all(np.diff(norm) >= 0)


def test_large_images_do_not_overflow(backend):
    total = 40_000_000
    norm = _normalize(backend, [total // 2, total], [total // 2, total // 2], total)
    assert list(norm) == [128, 255]


@pytest.mark.parametrize("bins", [4, 32, 256])
def test_identity_table_quantizes(backend, rng, bins):
    values = rng.integers(0, 256, size=500, dtype=np.uint8)
    intensity = backend.upload(values)
    table = backend.upload(np.array(bin_map(bins), dtype=np.int32))
    output = backend.download(apply_lookup(backend, intensity, table, values.size, bins))
    np.testing.assert_array_equal(output, quantize(values, bins))


def test_lookup_substitutes_per_bin(backend):
    intensity = backend.upload(np.array([0, 85, 170, 255, 10], dtype=np.uint8))
    table = backend.upload(np.array([64, 128, 191, 255], dtype=np.int32))
    output = backend.download(apply_lookup(backend, intensity, table, 5, 4))
    assert list(output) == [64, 128, 191, 255, 64]
