"""Tests for the visual regression runner using fake providers."""

import pytest
from PIL import Image

from helpers import FailingCaptureProvider, FakeCaptureProvider, FakeDiffProvider, make_mask
from pagediff.errors import DimensionMismatchError, SessionNotFoundError
from pagediff.capture.pixel_diff import PillowDiffProvider
from pagediff.models.config import RetentionConfig, get_viewport
from pagediff.runner import VisualRegressionRunner

WIDTH, HEIGHT = 1280, 720


@pytest.fixture
def capture():
    return FakeCaptureProvider()


def _runner(config, capture, mask_boxes=()):
    return VisualRegressionRunner(config, capture, FakeDiffProvider(make_mask(WIDTH, HEIGHT, list(mask_boxes))))


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes_provider(self, pagediff_config, capture):
        async with _runner(pagediff_config, capture):
            assert capture.opened
            assert not capture.closed
        assert capture.closed


class TestStartSession:

    @pytest.mark.asyncio
    async def test_creates_session_and_captures_baseline(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture)
        session = await runner.start_session("/blog/post")

        assert session.url == "https://example.com/blog/post"
        assert session.name == "blog-post"
        assert session.status == "baseline"
        assert session.viewport.name == "desktop"
        assert runner.store.paths(session.id).baseline.exists()
        assert capture.calls[0][0] == "https://example.com/blog/post"

    @pytest.mark.asyncio
    async def test_explicit_name_and_viewport(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture)
        session = await runner.start_session("/", name="home", viewport=get_viewport("mobile"))

        assert session.name == "home"
        assert session.viewport.width == 375
        assert capture.calls[0][1].name == "mobile"

    @pytest.mark.asyncio
    async def test_auto_clean_runs_after_start(self, pagediff_config, capture):
        pagediff_config.retention = RetentionConfig(max_sessions=1, auto_clean=True)
        runner = _runner(pagediff_config, capture)
        await runner.start_session("/a")
        latest = await runner.start_session("/b")

        assert [s.id for s in runner.store.list_sessions()] == [latest.id]

    @pytest.mark.asyncio
    async def test_failed_capture_leaves_no_session(self, pagediff_config):
        capture = FailingCaptureProvider(TimeoutError("navigation timed out"))
        runner = _runner(pagediff_config, capture)

        with pytest.raises(TimeoutError):
            await runner.start_session("/")

        assert runner.store.list_sessions() == []
        assert runner.store.most_recent() is None
        assert len(capture.calls) == 1


class TestCheck:

    @pytest.mark.asyncio
    async def test_identical_capture_matches(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture)
        session = await runner.start_session("/")
        report = await runner.check(session.id)

        assert report.analysis.verdict == "MATCH"
        assert report.comparison.match is True
        assert report.comparison.threshold == 0.01
        stored = runner.store.read(session.id)
        assert stored.status == "compared"
        assert stored.analysis.verdict == "MATCH"

    @pytest.mark.asyncio
    async def test_broken_content_region(self, pagediff_config, capture):
        # Entire content region: x 256..1280, y 72..648
        runner = _runner(pagediff_config, capture, [(256, 72, 1280, 648)])
        session = await runner.start_session("/")
        report = await runner.check()

        assert report.session_id == session.id
        assert report.comparison.diff_percent == 64.0
        assert report.analysis.verdict == "LAYOUT_BROKEN"
        assert [r.location for r in report.analysis.unexpected_changes] == ["center"]
        assert report.files.baseline.endswith("baseline.png")

    @pytest.mark.asyncio
    async def test_check_defaults_to_most_recent(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture)
        await runner.start_session("/first")
        second = await runner.start_session("/second")
        report = await runner.check()
        assert report.session_id == second.id

    @pytest.mark.asyncio
    async def test_web_view_url(self, pagediff_config, capture):
        pagediff_config.web_view_port = 4200
        runner = _runner(pagediff_config, capture)
        session = await runner.start_session("/")
        report = await runner.check(session.id)
        assert report.web_view_url == f"http://localhost:4200/sessions/{session.id}"

    @pytest.mark.asyncio
    async def test_unknown_session(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture)
        with pytest.raises(SessionNotFoundError, match="sess_missing"):
            await runner.check("sess_missing")
        assert capture.calls == []

    @pytest.mark.asyncio
    async def test_no_sessions(self, pagediff_config, capture):
        with pytest.raises(SessionNotFoundError, match="No sessions found"):
            await _runner(pagediff_config, capture).check()

    @pytest.mark.asyncio
    async def test_dimension_mismatch_leaves_session_unchanged(self, pagediff_config):
        capture = FakeCaptureProvider([
            Image.new("RGB", (WIDTH, HEIGHT), "white"),
            Image.new("RGB", (WIDTH, HEIGHT + 100), "white"),
        ])
        runner = VisualRegressionRunner(pagediff_config, capture, PillowDiffProvider())
        session = await runner.start_session("/")

        with pytest.raises(DimensionMismatchError):
            await runner.check(session.id)

        stored = runner.store.read(session.id)
        assert stored.status == "baseline"
        assert stored.analysis is None


class TestBaselineUpdates:

    @pytest.mark.asyncio
    async def test_update_baseline_recaptures_and_resets(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture, [(0, 0, 100, 100)])
        session = await runner.start_session("/")
        await runner.check(session.id)

        updated = await runner.update_baseline(session.id)

        assert updated.status == "baseline"
        assert updated.comparison is None
        assert updated.analysis is None
        assert len(capture.calls) == 3

    @pytest.mark.asyncio
    async def test_accept_promotes_current(self, pagediff_config):
        capture = FakeCaptureProvider([
            Image.new("RGB", (WIDTH, HEIGHT), "white"),
            Image.new("RGB", (WIDTH, HEIGHT), "black"),
        ])
        runner = _runner(pagediff_config, capture, [(0, 0, WIDTH, HEIGHT)])
        session = await runner.start_session("/")
        await runner.check(session.id)

        accepted = runner.accept(session.id)

        paths = runner.store.paths(session.id)
        assert accepted.status == "baseline"
        assert not paths.diff.exists()
        with Image.open(paths.baseline) as baseline:
            assert baseline.convert("RGB").getpixel((0, 0)) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_accept_without_current_raises(self, pagediff_config, capture):
        runner = _runner(pagediff_config, capture)
        session = await runner.start_session("/")
        with pytest.raises(FileNotFoundError):
            runner.accept(session.id)
