import numpy as np
import pytest

from histeq.image_buffer import ImageBuffer


def test_from_pixels_greyscale_and_rgb():
    grey = ImageBuffer.from_pixels(2, 1, [10, 20])
    assert grey.channels == 1
    assert grey.get_pixel(1, 0) == (20,)

    rgb = ImageBuffer.from_pixels(1, 2, [(1, 2, 3), (4, 5, 6)], channels=3)
    assert rgb.get_pixel(0, 1) == (4, 5, 6)
    assert list(rgb.iter_pixels()) == [(1, 2, 3), (4, 5, 6)]


def test_dimension_and_channel_checks():
    with pytest.raises(ValueError):
        ImageBuffer(0, 1, 1, bytearray())
    with pytest.raises(ValueError):
        ImageBuffer(1, 1, 4, bytearray(4))
    with pytest.raises(ValueError):
        ImageBuffer(2, 2, 1, bytearray(3))


def test_array_round_trip_keeps_shape():
    array = np.arange(12, dtype=np.uint8).reshape(3, 4)
    image = ImageBuffer.from_array(array)
    assert (image.width, image.height, image.channels) == (4, 3, 1)
    assert image.pixel_count == 12
    np.testing.assert_array_equal(image.to_array(), array)

    rgb = ImageBuffer.from_array(np.zeros((2, 5, 3), dtype=np.uint8))
    assert rgb.to_array().shape == (2, 5, 3)


def test_set_pixel_clamps_and_copy_is_independent():
    image = ImageBuffer.from_dimensions(2, 2, channels=3, color=(1, 2, 3))
    clone = image.copy()
    image.set_pixel(0, 0, (300, -5, 7.6))
    assert image.get_pixel(0, 0) == (255, 0, 8)
    assert clone.get_pixel(0, 0) == (1, 2, 3)
    with pytest.raises(IndexError):
        image.get_pixel(2, 0)


def test_pillow_conversion_detects_greyscale():
    from PIL import Image

    grey = ImageBuffer.from_pillow_image(Image.new("L", (3, 2), 77))
    assert grey.channels == 1
    assert set(grey.data) == {77}

    rgba = ImageBuffer.from_pillow_image(Image.new("RGBA", (3, 2), (1, 2, 3, 4)))
    assert rgba.channels == 3
    assert rgba.get_pixel(2, 1) == (1, 2, 3)

    assert grey.to_pillow_image().mode == "L"
    assert rgba.to_pillow_image().mode == "RGB"


def test_pillow_sixteen_bit_grey_matches_pnm_scaling():
    from PIL import Image

    deep = Image.fromarray(np.array([[0, 257, 32768, 65535]], dtype=np.uint16))
    assert deep.mode.startswith("I;16")
    assert list(ImageBuffer.from_pillow_image(deep).data) == [0, 1, 128, 255]

    wide = Image.fromarray(np.array([[-7, 65535, 70000]], dtype=np.int32))
    assert wide.mode == "I"
    assert list(ImageBuffer.from_pillow_image(wide).data) == [0, 255, 255]
