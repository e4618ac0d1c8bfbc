"""Region segmentation — localizes changed pixels into named page regions."""

from __future__ import annotations

import logging
import math
import re
from typing import Optional

from PIL import Image, ImageChops

from pagediff.capture.providers import DIFF_COLOR
from pagediff.models.config import ClassifierConfig, RegionSpec
from pagediff.models.session import SEVERITY_RANK, Bounds, ChangedRegion, Severity

logger = logging.getLogger(__name__)

_PERCENT_RE = re.compile(r"(\d+\.?\d*)%")


def region_bounds(region: RegionSpec, width: int, height: int) -> Bounds:
    """Resolve a fractional region to pixel bounds on a width x height raster."""
    x_start = math.floor(region.x_start * width)
    x_end = math.floor(region.x_end * width)
    y_start = math.floor(region.y_start * height)
    y_end = math.floor(region.y_end * height)
    return Bounds(x=x_start, y=y_start, width=x_end - x_start, height=y_end - y_start)


def classify_severity(percent: float, config: ClassifierConfig) -> Severity:
    if percent > config.critical_percent:
        return "critical"
    if percent > config.unexpected_percent:
        return "unexpected"
    return "expected"


def description_percent(description: str) -> float:
    """Parse the change percentage back out of a region description."""
    match = _PERCENT_RE.search(description)
    return float(match.group(1)) if match else 0.0


def changed_pixel_mask(mask: Image.Image) -> Image.Image:
    """Normalize a diff mask to mode "L" with 255 for changed pixels and 0 elsewhere.

    Single-band masks mark changes with any non-zero value. Colour diff rasters
    mark them with exactly ``DIFF_COLOR``; every other colour is background.
    """
    if mask.mode in ("1", "L"):
        return mask.convert("L").point(lambda v: 255 if v else 0)

    bands = mask.convert("RGB").split()
    matched = [band.point(lambda v, c=c: 255 if v == c else 0) for band, c in zip(bands, DIFF_COLOR)]
    return ImageChops.multiply(ImageChops.multiply(matched[0], matched[1]), matched[2])


def _count_changed(mask: Image.Image, bounds: Bounds) -> int:
    crop = mask.crop((bounds.x, bounds.y, bounds.x + bounds.width, bounds.y + bounds.height))
    histogram = crop.histogram()
    # Bucket 0 holds the unchanged pixels
    return bounds.width * bounds.height - histogram[0]


def detect_changed_regions(
    mask: Optional[Image.Image],
    width: int,
    height: int,
    config: ClassifierConfig | None = None,
) -> list[ChangedRegion]:
    """Partition a diff mask into named regions and report the ones that changed.

    Changed pixels are read through ``changed_pixel_mask``. A region is
    reported when its changed fraction exceeds ``config.min_region_percent``. The result is
    ordered by severity (critical first), then by descending change percentage.
    """
    config = config or ClassifierConfig()
    if mask is None or width <= 0 or height <= 0:
        return []
    if mask.size != (width, height):
        logger.warning(
            "Diff mask is %dx%d but raster is %dx%d; skipping region analysis",
            mask.size[0], mask.size[1], width, height,
        )
        return []
    mask = changed_pixel_mask(mask)

    regions: list[ChangedRegion] = []
    for spec in config.regions:
        bounds = region_bounds(spec, width, height)
        area = bounds.width * bounds.height
        if area == 0:
            continue

        percent = _count_changed(mask, bounds) / area * 100
        logger.debug("Region %s: %.3f%% changed", spec.name, percent)
        if percent <= config.min_region_percent:
            continue

        regions.append(ChangedRegion(
            location=spec.location,
            bounds=bounds,
            description=f"{spec.name}: {percent:.1f}% changed",
            severity=classify_severity(percent, config),
        ))

    return sorted(
        regions,
        key=lambda r: (SEVERITY_RANK[r.severity], -description_percent(r.description)),
    )
