"""Configuration models for pagediff."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

RegionLocation = Literal["top", "bottom", "left", "right", "center", "full"]


class Viewport(BaseModel):
    name: str = Field(default="desktop", min_length=1, max_length=50)
    width: int = Field(default=1920, ge=320, le=3840)
    height: int = Field(default=1080, ge=480, le=2160)


VIEWPORTS: dict[str, Viewport] = {
    v.name: v
    for v in (
        Viewport(name="desktop", width=1920, height=1080),
        Viewport(name="desktop-lg", width=2560, height=1440),
        Viewport(name="desktop-sm", width=1440, height=900),
        Viewport(name="laptop", width=1366, height=768),
        Viewport(name="tablet", width=768, height=1024),
        Viewport(name="tablet-landscape", width=1024, height=768),
        Viewport(name="mobile", width=375, height=667),
        Viewport(name="mobile-lg", width=414, height=896),
        Viewport(name="iphone-14", width=390, height=844),
        Viewport(name="iphone-14-pro-max", width=430, height=932),
    )
}


def get_viewport(name: str) -> Viewport:
    """Return a copy of a predefined viewport by name."""
    try:
        return VIEWPORTS[name].model_copy()
    except KeyError:
        known = ", ".join(sorted(VIEWPORTS))
        raise KeyError(f"Unknown viewport '{name}'. Known viewports: {known}") from None


class RegionSpec(BaseModel):
    """A named rectangle expressed as fractions of the full raster."""

    name: str
    location: RegionLocation
    x_start: float = Field(ge=0.0, le=1.0)
    x_end: float = Field(ge=0.0, le=1.0)
    y_start: float = Field(ge=0.0, le=1.0)
    y_end: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self) -> "RegionSpec":
        if self.x_end < self.x_start or self.y_end < self.y_start:
            raise ValueError(f"Region '{self.name}' has end before start")
        return self


DEFAULT_REGIONS: list[RegionSpec] = [
    RegionSpec(name="header", location="top", x_start=0, x_end=1, y_start=0, y_end=0.1),
    RegionSpec(name="navigation", location="left", x_start=0, x_end=0.2, y_start=0.1, y_end=0.9),
    RegionSpec(name="content", location="center", x_start=0.2, x_end=1, y_start=0.1, y_end=0.9),
    RegionSpec(name="footer", location="bottom", x_start=0, x_end=1, y_start=0.9, y_end=1),
]


class ClassifierConfig(BaseModel):
    # Per-region change percentages
    critical_percent: float = 30.0
    unexpected_percent: float = 10.0
    min_region_percent: float = 0.1

    # Overall diff percentages
    unexpected_diff_percent: float = 20.0
    full_fallback_percent: float = 50.0

    regions: list[RegionSpec] = Field(
        default_factory=lambda: [r.model_copy() for r in DEFAULT_REGIONS]
    )


class RetentionConfig(BaseModel):
    max_sessions: Optional[int] = Field(default=None, ge=1)
    max_age_days: Optional[int] = Field(default=None, ge=1)
    keep_failed: bool = True
    auto_clean: bool = False


class PageDiffConfig(BaseModel):
    # Target
    base_url: str

    # Storage
    output_dir: str = "./.pagediff"

    # Capture
    viewport: Viewport = Field(default_factory=lambda: get_viewport("desktop"))
    full_page: bool = True
    wait_for_network_idle: bool = True
    timeout: int = Field(default=30000, ge=1000, le=120000)  # milliseconds
    selector: Optional[str] = None  # screenshot one element instead of the page
    wait_for: Optional[str] = None  # selector to wait for before capturing
    storage_state: Optional[str] = None  # Playwright storage state file for logged-in pages
    headless: bool = True

    # Comparison
    threshold: float = Field(default=1.0, ge=0.0, le=100.0)  # acceptable change, percent
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)

    # Retention
    retention: RetentionConfig = Field(default_factory=RetentionConfig)

    # Web viewer port for report links
    web_view_port: Optional[int] = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got '{v}'")
        return v.rstrip("/")

    @classmethod
    def load(cls, path: str | Path) -> "PageDiffConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
