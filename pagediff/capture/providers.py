"""Interfaces for the external capture and pixel-diff stages."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from PIL import Image

from pagediff.models.config import Viewport


# Sentinel marking changed pixels in RGB diff rasters
DIFF_COLOR = (255, 0, 0)


@dataclass
class DiffOutput:
    mask: Image.Image  # mode "1"/"L" non-zero = changed; RGB(A) DIFF_COLOR = changed
    diff_pixel_count: int


@runtime_checkable
class CaptureProvider(Protocol):
    """Writes a raster image of a live page to disk."""

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def capture(self, url: str, viewport: Viewport, output_path: Path) -> Path: ...


@runtime_checkable
class PixelDiffProvider(Protocol):
    """Compares two equally-sized rasters pixel by pixel.

    Implementations write a visual diff raster to ``diff_path`` and raise
    ``DimensionMismatchError`` when the rasters differ in size.
    """

    def diff(
        self,
        raster_a: Image.Image,
        raster_b: Image.Image,
        width: int,
        height: int,
        threshold: float,
        diff_path: Path | None = None,
    ) -> DiffOutput: ...
