from __future__ import annotations

import io
from pathlib import Path
import sys

import pytest
from PIL import Image

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cookbook.images import UnsupportedImageError, compress_image


def encode_image(image, fmt):
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def open_result(data):
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_large_landscape_image_is_scaled_to_max_dimension():
    data = encode_image(Image.new("RGB", (3200, 1600), (10, 120, 10)), "PNG")

    result = open_result(compress_image(data))

    assert result.format == "JPEG"
    assert result.size == (1600, 800)


def test_portrait_image_scales_by_height():
    data = encode_image(Image.new("RGB", (300, 600), (10, 10, 120)), "PNG")

    result = open_result(compress_image(data, max_dimension=200))

    assert result.size == (100, 200)


def test_small_image_is_not_enlarged():
    data = encode_image(Image.new("RGB", (120, 80), (255, 0, 0)), "JPEG")

    result = open_result(compress_image(data))

    assert result.size == (120, 80)


def test_transparent_image_is_flattened_to_rgb():
    data = encode_image(Image.new("RGBA", (50, 50), (0, 0, 0, 0)), "PNG")

    result = open_result(compress_image(data))

    assert result.mode == "RGB"
    assert result.getpixel((25, 25))[0] > 240


def test_unreadable_data_raises():
    with pytest.raises(UnsupportedImageError):
        compress_image(b"definitely not an image")


def test_image_over_pixel_limit_raises(monkeypatch):
    data = encode_image(Image.new("1", (40, 20)), "PNG")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(UnsupportedImageError):
        compress_image(data)
