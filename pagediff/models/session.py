"""Session records and comparison results persisted by the session store."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from pagediff.models.config import RegionLocation, Viewport

Severity = Literal["expected", "unexpected", "critical"]
Verdict = Literal["MATCH", "EXPECTED_CHANGE", "UNEXPECTED_CHANGE", "LAYOUT_BROKEN"]
SessionStatus = Literal["baseline", "compared", "pending"]

SEVERITY_RANK: dict[str, int] = {"critical": 0, "unexpected": 1, "expected": 2}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ComparisonResult(BaseModel):
    match: bool
    diff_percent: float = Field(ge=0.0, le=100.0)
    diff_pixels: int = Field(ge=0)
    total_pixels: int = Field(ge=0)
    threshold: float


class Bounds(BaseModel):
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


class ChangedRegion(BaseModel):
    location: RegionLocation
    bounds: Bounds = Field(default_factory=Bounds)
    description: str
    severity: Severity


class Analysis(BaseModel):
    verdict: Verdict
    summary: str
    changed_regions: list[ChangedRegion] = Field(default_factory=list)  # severity == expected
    unexpected_changes: list[ChangedRegion] = Field(default_factory=list)  # unexpected/critical
    recommendation: Optional[str] = None


class Session(BaseModel):
    id: str
    name: str
    url: str
    viewport: Viewport
    status: SessionStatus = "baseline"
    created_at: datetime
    updated_at: datetime
    comparison: Optional[ComparisonResult] = None
    analysis: Optional[Analysis] = None

    @field_validator("url")
    @classmethod
    def require_absolute_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Session url must be an absolute http(s) URL, got '{v}'")
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)


class SessionPaths(BaseModel):
    """Filesystem locations of one session's artifacts. Derived, never stored."""

    root: Path
    session_json: Path
    baseline: Path
    current: Path
    diff: Path


class SessionQuery(BaseModel):
    route: Optional[str] = None
    url: Optional[str] = None
    status: Optional[SessionStatus] = None
    name: Optional[str] = None
    viewport: Optional[str] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=100)

    @field_validator("created_after", "created_before")
    @classmethod
    def normalize_bound(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None


class CleanResult(BaseModel):
    deleted: list[str] = Field(default_factory=list)
    kept: list[str] = Field(default_factory=list)


class SessionStats(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_viewport: dict[str, int] = Field(default_factory=dict)
    by_verdict: dict[str, int] = Field(default_factory=dict)
