import numpy as np
import pytest

from histeq.backend import LocalMemory
from histeq.errors import DeviceError


def test_upload_download_and_fill(backend):
    buffer = backend.upload(np.array([[1, 2], [3, 4]], dtype=np.int32))
    assert buffer.count == 4
    assert buffer.nbytes == 16
    np.testing.assert_array_equal(backend.download(buffer), [1, 2, 3, 4])
    backend.fill(buffer, 7)
    np.testing.assert_array_equal(backend.download(buffer), [7, 7, 7, 7])
    assert list(backend.download(backend.zeros(3))) == [0, 0, 0]


def test_download_is_a_copy(backend):
    buffer = backend.upload(np.zeros(2, dtype=np.uint8))
    host = backend.download(buffer)
    host[0] = 9
    assert backend.download(buffer)[0] == 0


def test_unknown_kernel(backend):
    with pytest.raises(DeviceError, match="No kernel"):
        backend.launch("sobel", 4, None)


def test_work_group_size_must_divide_global_size(backend):
    values = backend.upload(np.zeros(10, dtype=np.uint8))
    hist = backend.zeros(4)
    with pytest.raises(DeviceError, match="multiple"):
        backend.launch("hist_local", 10, 4, values, hist, LocalMemory(4), 10, 4, 64)


def test_work_group_size_limit(backend):
    values = backend.upload(np.zeros(4096, dtype=np.uint8))
    hist = backend.zeros(4)
    with pytest.raises(DeviceError, match="work-group size"):
        backend.launch("hist_local", 4096, 2048, values, hist, LocalMemory(4), 4096, 4, 64)


def test_local_memory_limit(backend):
    src = backend.zeros(256)
    with pytest.raises(DeviceError, match="local memory"):
        backend.launch("scan_bl", 256, 256, src, backend.zeros(256), LocalMemory(16 * 1024))


def test_undersized_local_histogram_is_a_device_fault(backend):
    values = backend.upload(np.zeros(8, dtype=np.uint8))
    with pytest.raises(DeviceError, match="out-of-bounds"):
        backend.launch("hist_local", 8, 8, values, backend.zeros(16), LocalMemory(4), 8, 16, 16)


def test_out_of_range_bin_is_a_device_fault(backend):
    values = backend.upload(np.array([255], dtype=np.uint8))
    with pytest.raises(DeviceError):
        backend.launch("hist_atomic", 1, None, values, backend.zeros(2), 1, 1)


def test_scan_runs_independently_per_group(backend):
    src = backend.upload(np.ones(8, dtype=np.int32))
    dst = backend.zeros(8)
    backend.launch("scan_hs", 8, 4, src, dst, LocalMemory(4), LocalMemory(4))
    assert list(backend.download(dst)) == [1, 2, 3, 4, 1, 2, 3, 4]
