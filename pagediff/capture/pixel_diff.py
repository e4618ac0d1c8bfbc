"""Pillow-backed pixel diff provider."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageChops

from pagediff.errors import DimensionMismatchError

from .providers import DIFF_COLOR, DiffOutput

logger = logging.getLogger(__name__)


class PillowDiffProvider:
    """Marks a pixel as changed when any RGB channel moves by more than ``threshold * 255``."""

    def __init__(self, fade_alpha: float = 0.1):
        self.fade_alpha = fade_alpha

    def diff(
        self,
        raster_a: Image.Image,
        raster_b: Image.Image,
        width: int,
        height: int,
        threshold: float,
        diff_path: Path | None = None,
    ) -> DiffOutput:
        if raster_a.size != raster_b.size:
            raise DimensionMismatchError(raster_a.size, raster_b.size)
        if raster_a.size != (width, height):
            raise DimensionMismatchError((width, height), raster_a.size)

        a = raster_a.convert("RGB")
        b = raster_b.convert("RGB")
        r, g, bl = ImageChops.difference(a, b).split()
        channel_max = ImageChops.lighter(ImageChops.lighter(r, g), bl)

        cutoff = max(0, min(255, int(threshold * 255)))
        mask = channel_max.point(lambda v: 255 if v > cutoff else 0)
        diff_pixels = mask.histogram()[255]
        logger.debug("Pixel diff: %d/%d pixels above cutoff %d", diff_pixels, width * height, cutoff)

        if diff_path is not None:
            self._write_diff_image(a, mask, Path(diff_path))

        return DiffOutput(mask=mask, diff_pixel_count=diff_pixels)

    def _write_diff_image(self, baseline: Image.Image, mask: Image.Image, path: Path) -> None:
        """Faded grayscale baseline with changed pixels painted in DIFF_COLOR."""
        background = Image.blend(
            Image.new("RGB", baseline.size, (255, 255, 255)),
            baseline.convert("L").convert("RGB"),
            self.fade_alpha,
        )
        overlay = Image.new("RGB", baseline.size, DIFF_COLOR)
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.composite(overlay, background, mask).save(path, format="PNG")
        logger.debug("Wrote diff image to %s", path)
