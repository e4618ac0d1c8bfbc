"""Runner — coordinates capture, diff, classification, persistence and reporting."""

from __future__ import annotations

import logging
import shutil
from typing import Optional

from pagediff.analysis.classifier import analyze_comparison
from pagediff.analysis.compare import compare_images
from pagediff.analysis.regions import detect_changed_regions
from pagediff.capture.providers import CaptureProvider, PixelDiffProvider
from pagediff.errors import SessionNotFoundError
from pagediff.models.config import PageDiffConfig, Viewport
from pagediff.models.report import ComparisonReport
from pagediff.models.session import Session
from pagediff.reporter.report import generate_report
from pagediff.sessions.retention import maybe_auto_clean
from pagediff.sessions.store import SessionStore
from pagediff.url_utils import resolve_url, session_name_from_path

logger = logging.getLogger(__name__)


class VisualRegressionRunner:
    """Runs visual regression sessions against injected capture and diff providers."""

    def __init__(
        self,
        config: PageDiffConfig,
        capture_provider: CaptureProvider,
        diff_provider: PixelDiffProvider,
        store: SessionStore | None = None,
    ):
        self.config = config
        self.capture_provider = capture_provider
        self.diff_provider = diff_provider
        self.store = store or SessionStore(config.output_dir)

    async def open(self) -> None:
        await self.capture_provider.open()

    async def close(self) -> None:
        await self.capture_provider.close()

    async def __aenter__(self) -> "VisualRegressionRunner":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _require_session(self, session_id: Optional[str]) -> Session:
        session = self.store.read(session_id) if session_id else self.store.most_recent()
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def start_session(
        self,
        path: str,
        name: Optional[str] = None,
        viewport: Optional[Viewport] = None,
    ) -> Session:
        """Create a session and capture its baseline."""
        url = resolve_url(self.config.base_url, path)
        viewport = viewport or self.config.viewport
        session = self.store.create(url, name or session_name_from_path(path), viewport)

        paths = self.store.paths(session.id)
        try:
            await self.capture_provider.capture(url, viewport, paths.baseline)
        except Exception:
            # A session only exists once its baseline has been captured
            self.store.delete(session.id)
            logger.warning("Baseline capture failed for %s; session discarded", url)
            raise
        logger.info("Baseline captured for %s: %s", session.id, paths.baseline)

        maybe_auto_clean(self.store, self.config.retention)
        return session

    async def check(self, session_id: Optional[str] = None) -> ComparisonReport:
        """Capture the current state, compare it to the baseline and record the verdict.

        Defaults to the most recent session. A size mismatch between baseline
        and current raster propagates as ``DimensionMismatchError``.
        """
        session = self._require_session(session_id)
        paths = self.store.paths(session.id)

        await self.capture_provider.capture(session.url, session.viewport, paths.current)

        comparison = compare_images(
            paths.baseline,
            paths.current,
            paths.diff,
            self.diff_provider,
            threshold=self.config.threshold / 100,
        )
        regions = []
        if not comparison.result.match:
            regions = detect_changed_regions(
                comparison.mask, comparison.width, comparison.height, self.config.classifier,
            )
        analysis = analyze_comparison(
            comparison.result,
            regions,
            threshold_percent=self.config.threshold,
            width=comparison.width,
            height=comparison.height,
            config=self.config.classifier,
        )

        updated = self.store.mark_compared(session.id, comparison.result, analysis)
        logger.info("Session %s: %s (%s%%)", session.id, analysis.verdict, comparison.result.diff_percent)
        return generate_report(
            updated, comparison.result, analysis,
            self.config.output_dir, web_view_port=self.config.web_view_port,
        )

    async def update_baseline(self, session_id: Optional[str] = None) -> Session:
        """Recapture the baseline and reset the session to ``baseline`` status."""
        session = self._require_session(session_id)
        paths = self.store.paths(session.id)
        await self.capture_provider.capture(session.url, session.viewport, paths.baseline)
        return self.store.reset_baseline(session.id)

    def accept(self, session_id: Optional[str] = None) -> Session:
        """Promote the last captured current raster to baseline without recapturing."""
        session = self._require_session(session_id)
        paths = self.store.paths(session.id)
        if not paths.current.exists():
            raise FileNotFoundError(f"No current screenshot for {session.id}. Run a check first.")
        shutil.copy2(paths.current, paths.baseline)
        paths.diff.unlink(missing_ok=True)
        logger.info("Accepted current screenshot as baseline for %s", session.id)
        return self.store.reset_baseline(session.id)
