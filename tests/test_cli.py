import numpy as np

from histeq.cli import default_output_path, main
from histeq.image_buffer import ImageBuffer
from histeq.image_io import load_image, save_image

from conftest import reference_equalize


def test_equalizes_file_with_emulator(tmp_path, grey_image):
    source = tmp_path / "input.pgm"
    target = tmp_path / "output.png"
    save_image(grey_image, source)
    code = main(["-f", str(source), "-o", str(target), "--backend", "emulator", "-b", "32", "--scan", "blelloch"])
    assert code == 0
    output = load_image(target)
    expected = reference_equalize(grey_image.to_array().ravel(), 32)["output"]
    np.testing.assert_array_equal(output.to_array().ravel(), expected)


def test_default_output_path(tmp_path):
    source = tmp_path / "test.ppm"
    save_image(ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (255, 255, 255)], channels=3), source)
    assert main(["-f", str(source), "--backend", "emulator", "--histogram", "atomic"]) == 0
    assert default_output_path(source) == tmp_path / "test_equalized.ppm"
    assert list(load_image(tmp_path / "test_equalized.ppm").data) == [128, 255]


def test_environment_selects_backend(tmp_path, monkeypatch):
    source = tmp_path / "in.pgm"
    save_image(ImageBuffer.from_pixels(1, 1, [42]), source)
    monkeypatch.setenv("HISTEQ_BACKEND", "emulator")
    assert main(["-f", str(source), "-o", str(tmp_path / "out.pgm")]) == 0


def test_configuration_error_exit_code(tmp_path, caplog):
    source = tmp_path / "in.pgm"
    save_image(ImageBuffer.from_pixels(1, 1, [42]), source)
    assert main(["-f", str(source), "--backend", "emulator", "-b", "200"]) == 1
    assert "Bin count must divide 256" in caplog.text
    assert not (tmp_path / "in_equalized.pgm").exists()


def test_missing_input_exit_code(tmp_path, caplog):
    assert main(["-f", str(tmp_path / "nope.ppm"), "--backend", "emulator"]) == 1
    assert "not found" in caplog.text


def test_unwritable_output_exit_code(tmp_path, caplog):
    source = tmp_path / "in.pgm"
    save_image(ImageBuffer.from_pixels(1, 1, [42]), source)
    target = tmp_path / "nodir" / "out.pgm"
    assert main(["-f", str(source), "--backend", "emulator", "-o", str(target)]) == 1
    assert "Cannot write" in caplog.text
    assert not target.exists()


def test_negative_ascii_sample_exit_code(tmp_path, caplog):
    source = tmp_path / "bad.pgm"
    source.write_bytes(b"P2\n2 1\n255\n-5 10\n")
    assert main(["-f", str(source), "--backend", "emulator"]) == 1
    assert "outside 0..255" in caplog.text
