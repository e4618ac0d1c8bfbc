"""Image comparison — runs the pixel diff stage and summarizes it as a ComparisonResult."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from pagediff.capture.providers import PixelDiffProvider
from pagediff.models.session import ComparisonResult

logger = logging.getLogger(__name__)


@dataclass
class ImageComparison:
    result: ComparisonResult
    mask: Image.Image
    width: int
    height: int


def compare_images(
    baseline_path: Path,
    current_path: Path,
    diff_path: Path,
    diff_provider: PixelDiffProvider,
    threshold: float = 0.1,
) -> ImageComparison:
    """Diff two rasters on disk and write the diff raster to ``diff_path``.

    ``DimensionMismatchError`` from the provider propagates unchanged.
    """
    with Image.open(baseline_path) as baseline, Image.open(current_path) as current:
        baseline.load()
        current.load()
        width, height = baseline.size
        output = diff_provider.diff(baseline, current, width, height, threshold, diff_path=diff_path)

    total_pixels = width * height
    diff_percent = output.diff_pixel_count / total_pixels * 100 if total_pixels else 0.0
    result = ComparisonResult(
        match=output.diff_pixel_count == 0,
        diff_percent=round(diff_percent, 2),
        diff_pixels=output.diff_pixel_count,
        total_pixels=total_pixels,
        threshold=threshold,
    )
    logger.info(
        "Compared %s vs %s: %s%% (%d pixels)",
        baseline_path, current_path, result.diff_percent, result.diff_pixels,
    )
    return ImageComparison(result=result, mask=output.mask, width=width, height=height)
