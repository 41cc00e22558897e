"""Tests for image file loading and saving."""

import numpy as np
import pytest
from PIL import Image

from unmark.image_io import is_supported_image, load_image, save_image, save_params


@pytest.mark.parametrize(
    "name,expected",
    [("a.jpg", True), ("b.JPEG", True), ("c.png", True), ("d.webp", True),
     ("e.bmp", True), ("f.gif", False), ("g", False)],
)
def test_supported_extensions(name, expected):
    """Test extension filtering is case-insensitive."""
    assert is_supported_image(name) is expected


def test_png_round_trip_is_lossless(tmp_path, noisy_image):
    """Test PNG save and load preserve every pixel."""
    path = tmp_path / "out" / "image.png"

    save_image(noisy_image, path)

    assert path.exists()
    assert np.array_equal(load_image(path), noisy_image)


def test_load_converts_to_rgb(tmp_path):
    """Test grayscale files load as RGB."""
    path = tmp_path / "gray.png"
    Image.new("L", (20, 10), color=42).save(path)

    image = load_image(path)

    assert image.shape == (10, 20, 3)
    assert np.all(image == 42)


def test_load_missing_file(tmp_path):
    """Test loading a missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_image(tmp_path / "nope.png")


def test_load_corrupt_file(tmp_path):
    """Test loading a corrupt file raises ValueError."""
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"definitely not a jpeg")
    with pytest.raises(ValueError):
        load_image(path)


def test_save_params_per_format():
    """Test encoder parameters for each output format."""
    assert save_params("x.jpg") == {"quality": 100, "subsampling": 0}
    assert save_params("x.jpeg", quality=80) == {"quality": 80, "subsampling": 0}
    assert save_params("x.png") == {"compress_level": 6}
    assert save_params("x.webp") == {"lossless": True}
    assert save_params("x.webp", quality=90) == {"quality": 90}
    assert save_params("x.bmp") == {}


def test_save_unknown_format_raises(tmp_path, noisy_image):
    """Test saving with an unknown extension raises ValueError."""
    with pytest.raises(ValueError):
        save_image(noisy_image, tmp_path / "image.unknownext")
