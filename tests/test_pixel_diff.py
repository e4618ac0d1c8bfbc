"""Tests for the Pillow diff provider and compare_images."""

import pytest
from PIL import Image, ImageDraw

from helpers import FakeDiffProvider, make_mask
from pagediff.analysis.compare import compare_images
from pagediff.capture.pixel_diff import PillowDiffProvider
from pagediff.capture.providers import DIFF_COLOR, PixelDiffProvider
from pagediff.errors import DimensionMismatchError


def _white(width=100, height=100) -> Image.Image:
    return Image.new("RGB", (width, height), "white")


def _with_box(box, color="black", width=100, height=100) -> Image.Image:
    image = _white(width, height)
    ImageDraw.Draw(image).rectangle(box, fill=color)
    return image


class TestPillowDiffProvider:

    def test_satisfies_protocol(self):
        assert isinstance(PillowDiffProvider(), PixelDiffProvider)

    def test_identical_images(self):
        output = PillowDiffProvider().diff(_white(), _white(), 100, 100, 0.1)
        assert output.diff_pixel_count == 0
        assert output.mask.mode == "L"
        assert output.mask.getbbox() is None

    def test_counts_changed_pixels(self):
        current = _with_box((10, 10, 19, 19))  # inclusive: 10x10
        output = PillowDiffProvider().diff(_white(), current, 100, 100, 0.1)

        assert output.diff_pixel_count == 100
        assert output.mask.getpixel((15, 15)) == 255
        assert output.mask.getpixel((50, 50)) == 0

    def test_threshold_ignores_small_color_shifts(self):
        current = _with_box((0, 0, 9, 9), color=(250, 250, 250))
        assert PillowDiffProvider().diff(_white(), current, 100, 100, 0.1).diff_pixel_count == 0
        assert PillowDiffProvider().diff(_white(), current, 100, 100, 0.0).diff_pixel_count == 100

    def test_size_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError) as exc_info:
            PillowDiffProvider().diff(_white(100, 100), _white(100, 120), 100, 100, 0.1)
        assert exc_info.value.baseline_size == (100, 100)
        assert exc_info.value.current_size == (100, 120)
        assert "baseline (100x100) vs current (100x120)" in str(exc_info.value)

    def test_writes_diff_image(self, tmp_path):
        diff_path = tmp_path / "out" / "diff.png"
        PillowDiffProvider().diff(_white(), _with_box((0, 0, 4, 4)), 100, 100, 0.1, diff_path=diff_path)

        with Image.open(diff_path) as diff:
            assert diff.size == (100, 100)
            assert diff.convert("RGB").getpixel((2, 2)) == DIFF_COLOR
            assert diff.convert("RGB").getpixel((50, 50)) == (255, 255, 255)


class TestCompareImages:

    @pytest.fixture
    def rasters(self, tmp_path):
        def write(baseline: Image.Image, current: Image.Image):
            baseline_path = tmp_path / "baseline.png"
            current_path = tmp_path / "current.png"
            baseline.save(baseline_path)
            current.save(current_path)
            return baseline_path, current_path, tmp_path / "diff.png"
        return write

    def test_match(self, rasters):
        paths = rasters(_white(), _white())
        comparison = compare_images(*paths, PillowDiffProvider())

        assert comparison.result.match is True
        assert comparison.result.diff_percent == 0
        assert comparison.result.total_pixels == 10000
        assert (comparison.width, comparison.height) == (100, 100)
        assert paths[2].exists()

    def test_diff_percent_rounded(self, rasters):
        paths = rasters(_white(), _with_box((0, 0, 2, 0)))  # 3 pixels
        comparison = compare_images(*paths, PillowDiffProvider(), threshold=0.01)

        assert comparison.result.diff_pixels == 3
        assert comparison.result.diff_percent == 0.03
        assert comparison.result.threshold == 0.01
        assert comparison.result.match is False

    def test_tiny_diff_rounds_to_zero_but_does_not_match(self, rasters):
        paths = rasters(_white(300, 300), _with_box((0, 0, 0, 0), width=300, height=300))
        result = compare_images(*paths, PillowDiffProvider()).result

        assert result.diff_pixels == 1
        assert result.diff_percent == 0.0
        assert result.match is False

    def test_uses_injected_provider(self, rasters):
        provider = FakeDiffProvider(make_mask(100, 100, [(0, 0, 10, 10)]))
        comparison = compare_images(*rasters(_white(), _white()), provider)

        assert provider.calls == 1
        assert comparison.result.diff_pixels == 100
        assert comparison.result.diff_percent == 1.0

    def test_dimension_mismatch_propagates(self, rasters):
        paths = rasters(_white(100, 100), _white(100, 150))
        with pytest.raises(DimensionMismatchError):
            compare_images(*paths, PillowDiffProvider())
