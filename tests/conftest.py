"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from helpers import make_session
from pagediff.models.config import ClassifierConfig, PageDiffConfig, Viewport
from pagediff.models.session import (
    Analysis,
    Bounds,
    ChangedRegion,
    ComparisonResult,
)
from pagediff.sessions.store import SessionStore


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def viewport() -> Viewport:
    """Create a test viewport."""
    return Viewport(name="desktop", width=1280, height=720)


@pytest.fixture
def classifier_config() -> ClassifierConfig:
    return ClassifierConfig()


@pytest.fixture
def pagediff_config(tmp_path: Path, viewport: Viewport) -> PageDiffConfig:
    """Create a test config writing into tmp_path."""
    return PageDiffConfig(
        base_url="https://example.com",
        output_dir=str(tmp_path / ".pagediff"),
        viewport=viewport,
        threshold=1.0,
    )


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / ".pagediff")


@pytest.fixture
def base_time() -> datetime:
    return datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def comparison_result() -> ComparisonResult:
    return ComparisonResult(
        match=False, diff_percent=6.0, diff_pixels=55296, total_pixels=921600, threshold=0.01,
    )


@pytest.fixture
def analysis() -> Analysis:
    region = ChangedRegion(
        location="center",
        bounds=Bounds(x=256, y=72, width=1024, height=576),
        description="content: 15.0% changed",
        severity="unexpected",
    )
    return Analysis(
        verdict="UNEXPECTED_CHANGE",
        summary="Significant changes in: content (6% overall).",
        unexpected_changes=[region],
        recommendation="Review changes carefully - some may be unintentional.",
    )


@pytest.fixture
def populated_store(store: SessionStore, base_time: datetime) -> SessionStore:
    """Five sessions one hour apart: sess_a (oldest) .. sess_e (newest)."""
    for i, sid in enumerate(["sess_a", "sess_b", "sess_c", "sess_d", "sess_e"]):
        store.save(make_session(sid, base_time + timedelta(hours=i), name=f"page {sid[-1]}"))
    return store
