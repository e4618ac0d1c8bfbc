"""Severity and verdict classification for a single comparison."""

from __future__ import annotations

import logging
from typing import Optional

from pagediff.models.config import ClassifierConfig
from pagediff.models.session import (
    Analysis,
    Bounds,
    ChangedRegion,
    ComparisonResult,
    Severity,
    Verdict,
)

logger = logging.getLogger(__name__)

_VERDICT_DESCRIPTIONS: dict[str, str] = {
    "MATCH": "No changes - screenshots match",
    "EXPECTED_CHANGE": "Changes detected - appear intentional",
    "UNEXPECTED_CHANGE": "Unexpected changes - review required",
    "LAYOUT_BROKEN": "Layout broken - significant issues detected",
}

_VERDICT_SEVERITY: dict[str, Severity] = {
    "LAYOUT_BROKEN": "critical",
    "UNEXPECTED_CHANGE": "unexpected",
}


def format_percent(value: float) -> str:
    """Render a percentage without trailing zeros (6.0 -> '6', 0.50 -> '0.5')."""
    return f"{value:g}"


def region_name(region: ChangedRegion) -> str:
    return region.description.split(":")[0]


def _mentions_navigation(regions: list[ChangedRegion]) -> bool:
    for r in regions:
        text = r.description.lower()
        if "navigation" in text or "header" in text:
            return True
    return False


def _decide(
    result: ComparisonResult,
    regions: list[ChangedRegion],
    threshold_percent: float,
    config: ClassifierConfig,
) -> tuple[Verdict, str, Optional[str]]:
    """First pass: verdict, summary and recommendation from the detected regions."""
    diff = format_percent(result.diff_percent)

    if result.match or result.diff_percent == 0:
        return "MATCH", "No visual changes detected. Screenshots are identical.", None

    critical = [r for r in regions if r.severity == "critical"]
    if critical:
        names = ", ".join(region_name(r) for r in critical)
        return (
            "LAYOUT_BROKEN",
            f"Critical changes in: {names}. Layout may be broken.",
            f"Major changes detected in {names}. "
            "Check for missing elements, broken layout, or loading errors.",
        )

    unexpected = [r for r in regions if r.severity == "unexpected"]
    if unexpected or result.diff_percent > config.unexpected_diff_percent:
        names = ", ".join(region_name(r) for r in unexpected) if unexpected else "multiple areas"
        if _mentions_navigation(regions):
            recommendation = "Navigation area changed - verify menu items and links are correct."
        else:
            recommendation = "Review changes carefully - some may be unintentional."
        return (
            "UNEXPECTED_CHANGE",
            f"Significant changes in: {names} ({diff}% overall).",
            recommendation,
        )

    if result.diff_percent <= threshold_percent:
        return (
            "EXPECTED_CHANGE",
            f"Minor changes detected ({diff}%). Within acceptable threshold.",
            None,
        )

    names = ", ".join(region_name(r) for r in regions) if regions else "content area"
    return (
        "EXPECTED_CHANGE",
        f"Changes in: {names} ({diff}% overall). Changes appear intentional.",
        None,
    )


def _fallback_region(
    result: ComparisonResult, verdict: Verdict, width: int, height: int, config: ClassifierConfig,
) -> ChangedRegion:
    """Second pass: a single whole-raster region derived from the verdict."""
    return ChangedRegion(
        location="full" if result.diff_percent > config.full_fallback_percent else "center",
        bounds=Bounds(x=0, y=0, width=max(width, 0), height=max(height, 0)),
        description=f"overall: {format_percent(result.diff_percent)}% changed",
        severity=_VERDICT_SEVERITY.get(verdict, "expected"),
    )


def analyze_comparison(
    result: ComparisonResult,
    regions: list[ChangedRegion] | None = None,
    threshold_percent: float = 1.0,
    width: int = 0,
    height: int = 0,
    config: ClassifierConfig | None = None,
) -> Analysis:
    """Classify a comparison into a verdict and split regions by severity.

    The verdict is decided from ``regions`` and the raw diff percentage first.
    Only afterwards, when no region was detected on a non-matching comparison,
    is a single fallback region synthesized from that verdict. Never raises.
    """
    config = config or ClassifierConfig()
    regions = list(regions or [])

    verdict, summary, recommendation = _decide(result, regions, threshold_percent, config)

    changed_regions = [r for r in regions if r.severity == "expected"]
    unexpected_changes = [r for r in regions if r.severity in ("unexpected", "critical")]

    if not regions and not result.match:
        fallback = _fallback_region(result, verdict, width, height, config)
        if fallback.severity == "expected":
            changed_regions.append(fallback)
        else:
            unexpected_changes.append(fallback)

    logger.debug(
        "Verdict %s (diff=%s%%, %d expected, %d unexpected)",
        verdict, format_percent(result.diff_percent), len(changed_regions), len(unexpected_changes),
    )
    return Analysis(
        verdict=verdict,
        summary=summary,
        changed_regions=changed_regions,
        unexpected_changes=unexpected_changes,
        recommendation=recommendation,
    )


def get_verdict_description(verdict: str) -> str:
    """Human-readable description of a verdict."""
    return _VERDICT_DESCRIPTIONS.get(verdict, "Unknown verdict")
