"""Builders and fake providers shared across the test suite."""

from datetime import datetime
from pathlib import Path

from PIL import Image, ImageDraw

from pagediff.capture.providers import DiffOutput
from pagediff.models.config import Viewport
from pagediff.models.session import Analysis, Session


def make_mask(width: int, height: int, boxes: list[tuple[int, int, int, int]] = ()) -> Image.Image:
    """Blank "L" mask with each (x0, y0, x1, y1) box (exclusive end) marked changed."""
    mask = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(mask)
    for x0, y0, x1, y1 in boxes:
        draw.rectangle((x0, y0, x1 - 1, y1 - 1), fill=255)
    return mask


def make_session(
    session_id: str,
    created_at: datetime,
    url: str = "https://example.com/",
    name: str = "homepage",
    status: str = "baseline",
    viewport_name: str = "desktop",
    analysis: Analysis | None = None,
) -> Session:
    return Session(
        id=session_id,
        name=name,
        url=url,
        viewport=Viewport(name=viewport_name, width=1280, height=720),
        status=status,
        created_at=created_at,
        updated_at=created_at,
        analysis=analysis,
    )


class FakeCaptureProvider:
    """Writes queued images instead of driving a browser."""

    def __init__(self, images: list[Image.Image] | None = None):
        self.images = list(images or [])
        self.calls: list[tuple[str, Viewport, Path]] = []
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def capture(self, url: str, viewport: Viewport, output_path: Path) -> Path:
        self.calls.append((url, viewport, Path(output_path)))
        image = self.images.pop(0) if self.images else Image.new("RGB", (viewport.width, viewport.height), "white")
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        image.save(output_path, format="PNG")
        return Path(output_path)


class FailingCaptureProvider(FakeCaptureProvider):
    """Raises ``error`` from every capture without writing anything."""

    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    async def capture(self, url: str, viewport: Viewport, output_path: Path) -> Path:
        self.calls.append((url, viewport, Path(output_path)))
        raise self.error


class FakeDiffProvider:
    """Returns a fixed mask and records the call."""

    def __init__(self, mask: Image.Image):
        self.mask = mask
        self.calls = 0

    def diff(self, raster_a, raster_b, width, height, threshold, diff_path=None) -> DiffOutput:
        self.calls += 1
        count = self.mask.histogram()[255]
        return DiffOutput(mask=self.mask, diff_pixel_count=count)
