"""Comparison report data structures."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from pagediff.models.config import Viewport
from pagediff.models.session import Analysis, ComparisonResult


class ReportFiles(BaseModel):
    model_config = ConfigDict(frozen=True)

    baseline: str
    current: str
    diff: str


class ComparisonReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    session_name: str
    url: str
    timestamp: datetime
    viewport: Viewport
    comparison: ComparisonResult
    analysis: Analysis
    files: ReportFiles
    web_view_url: Optional[str] = None
