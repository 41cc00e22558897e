"""Tests for guided multi-scale search."""

import threading

import numpy as np
import pytest

from unmark.geometry import Region
from unmark.guided_locator import (
    MIN_ADJUSTED_SCORE,
    GuidedDetectionResult,
    coarse_scales,
    size_adjusted_score,
)


@pytest.fixture
def watermarked_scene(engine):
    """A 400x300 flat image with a 96x96 watermark at (200, 120)."""
    image = np.full((300, 400, 3), 90, dtype=np.uint8)
    target = Region(200, 120, 96, 96)
    engine.add_custom(image, target)
    return image, target


def test_finds_exact_position_and_size(engine, watermarked_scene):
    """Test a 96x96 watermark is located exactly."""
    image, target = watermarked_scene

    result = engine.guided_locate(image, Region(150, 80, 200, 180))

    assert result.found
    assert result.match_region == target
    assert result.detected_size == 96
    assert result.confidence > 0.9
    assert result.raw_ncc == pytest.approx(result.confidence)
    assert not result.was_cancelled
    assert result.scales_searched == result.total_scales


def test_scaled_watermark_is_enclosed_by_match(engine):
    """A 64x64 watermark is found inside the returned box.

    The size weighting favours templates of 96 and up, so a smaller
    watermark may be reported as a larger box centred on it.
    """
    image = np.full((300, 400, 3), 90, dtype=np.uint8)
    target = Region(100, 60, 64, 64)
    engine.add_custom(image, target)

    result = engine.guided_locate(image, Region(60, 30, 180, 150))

    assert result.found
    match = result.match_region
    assert match.x <= target.x and match.y <= target.y
    assert match.right >= target.right and match.bottom >= target.bottom
    assert result.detected_size >= 64


def test_search_rect_is_clamped_to_image(engine, watermarked_scene):
    """Test an oversized search rectangle is clamped to the image."""
    image, target = watermarked_scene

    result = engine.guided_locate(image, Region(150, 80, 1000, 1000))

    assert result.found
    assert result.match_region == target


def test_preset_cancel_flag_stops_search(engine, watermarked_scene):
    """Test a pre-set cancel flag stops the sweep early."""
    image, _ = watermarked_scene
    cancel = threading.Event()
    cancel.set()

    result = engine.guided_locate(image, Region(150, 80, 200, 180), cancel_flag=cancel)

    assert result.was_cancelled
    assert not result.found
    assert result.total_scales > 0
    assert result.scales_searched < result.total_scales


def test_clean_region_finds_nothing(engine):
    """Test a flat region yields no match."""
    image = np.full((300, 400, 3), 90, dtype=np.uint8)

    result = engine.guided_locate(image, Region(100, 100, 120, 120))

    assert not result.found
    assert result.match_region is None


@pytest.mark.parametrize(
    "rect",
    [
        Region(10, 10, 4, 100),
        Region(10, 10, 100, 7),
        Region(1000, 1000, 50, 50),
    ],
)
def test_degenerate_search_rect(engine, watermarked_scene, rect):
    """Test tiny or off-image search rectangles return the default result."""
    image, _ = watermarked_scene

    result = engine.guided_locate(image, rect)

    assert result == GuidedDetectionResult()


def test_min_size_above_region_returns_empty(engine, watermarked_scene):
    """Test a region smaller than the minimum size is not scanned."""
    image, _ = watermarked_scene

    result = engine.guided_locate(image, Region(0, 0, 20, 20))

    assert not result.found
    assert result.total_scales == 0


def test_min_size_above_max_size_returns_empty(engine, watermarked_scene):
    """Test an inverted size range is not scanned."""
    image, _ = watermarked_scene

    result = engine.guided_locate(
        image, Region(150, 80, 200, 180), min_size=120, max_size=100
    )

    assert not result.found
    assert result.total_scales == 0


def test_empty_image(engine):
    """Test an empty image returns the default result."""
    result = engine.guided_locate(np.zeros((0, 0, 3), dtype=np.uint8), Region(0, 0, 50, 50))
    assert result == GuidedDetectionResult()


def test_large_template_beats_small_high_scoring_one():
    """Test size weighting ranks a weak 96 match above a strong 24 match."""
    assert size_adjusted_score(0.30, 96) > size_adjusted_score(0.58, 24)


def test_size_weight_is_capped():
    """Test the size weight stops growing at 96."""
    assert size_adjusted_score(0.5, 96) == pytest.approx(0.5)
    assert size_adjusted_score(0.5, 192) == pytest.approx(0.5)
    assert size_adjusted_score(0.5, 24) == pytest.approx(0.25)


def _constant_match(raw_score):
    def match(image, template):
        return raw_score, (0, 0)
    return match


@pytest.mark.parametrize(
    "raw_score,found",
    [(MIN_ADJUSTED_SCORE - 0.001, False), (MIN_ADJUSTED_SCORE + 0.001, True)],
)
def test_matches_at_the_score_floor(engine, monkeypatch, raw_score, found):
    """A best adjusted score just under the floor is reported as not found."""
    monkeypatch.setattr("unmark.guided_locator.match_template", _constant_match(raw_score))
    image = np.full((150, 150, 3), 90, dtype=np.uint8)

    result = engine.guided_locate(image, Region(0, 0, 120, 120))

    assert result.found is found
    if found:
        assert result.detected_size >= 96
        assert result.confidence == pytest.approx(raw_score)


@pytest.mark.parametrize("min_size,max_size", [(16, 100), (20, 100), (24, 192)])
def test_coarse_scales_include_standard_sizes(min_size, max_size):
    """Test the coarse pass covers 48 and 96."""
    scales = coarse_scales(min_size, max_size)
    assert any(abs(s - 48) <= 2 for s in scales)
    assert any(abs(s - 96) <= 2 for s in scales)
    assert scales == sorted(scales)


def test_standard_size_added_only_when_missing():
    """Test standard sizes are added only when no nearby scale exists."""
    # 17, 25, ..., 97: 49 and 97 are within tolerance of 48 and 96
    scales = coarse_scales(17, 100)
    assert 48 not in scales
    assert 96 not in scales

    # 19, 27, ..., 99: nothing within 2 of 48 or 96
    scales = coarse_scales(19, 100)
    assert 48 in scales
    assert 96 in scales


def test_standard_sizes_outside_range_are_not_added():
    """Test out-of-range standard sizes are not added."""
    assert coarse_scales(50, 90) == [50, 58, 66, 74, 82, 90]
