"""Shared fixtures: synthetic background captures and images."""

import cv2
import numpy as np
import pytest

from unmark.watermark_engine import WatermarkEngine


def sparkle_alpha(size, peak=0.5):
    """Four-pointed star opacity pattern, brightest at the centre."""
    coords = (np.arange(size, dtype=np.float32) + 0.5) / size * 2.0 - 1.0
    dx = np.abs(coords)[np.newaxis, :]
    dy = np.abs(coords)[:, np.newaxis]
    alpha = 1.0 - (np.sqrt(dx) + np.sqrt(dy)) / np.sqrt(0.9)
    return np.clip(alpha, 0.0, 1.0) * peak


def sparkle_capture(size, peak=0.5):
    """A 3-channel uint8 capture of the star over a pure black background."""
    gray = np.round(sparkle_alpha(size, peak) * 255).astype(np.uint8)
    return np.dstack([gray, gray, gray])


@pytest.fixture
def bg_small():
    return sparkle_capture(48)


@pytest.fixture
def bg_large():
    return sparkle_capture(96)


@pytest.fixture
def engine(bg_small, bg_large):
    return WatermarkEngine(bg_small, bg_large)


@pytest.fixture
def capture_files(tmp_path, bg_small, bg_large):
    """Captures written as bg_48.png / bg_96.png."""
    small_path = tmp_path / "bg_48.png"
    large_path = tmp_path / "bg_96.png"
    cv2.imwrite(str(small_path), bg_small)
    cv2.imwrite(str(large_path), bg_large)
    return small_path, large_path


@pytest.fixture
def flat_image():
    """An 800x600 flat mid-gray image (small watermark class)."""
    return np.full((600, 800, 3), 100, dtype=np.uint8)


@pytest.fixture
def noisy_image():
    """An 800x600 image of reproducible texture."""
    rng = np.random.default_rng(1234)
    return rng.integers(40, 200, size=(600, 800, 3), dtype=np.uint8)
