"""Playwright capture provider — renders a page in headless Chromium and screenshots it."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from pagediff.models.config import Viewport

logger = logging.getLogger(__name__)

# Freeze CSS animations and transitions so two captures of a static page are identical
_FREEZE_ANIMATIONS_CSS = """
*, *::before, *::after {
    animation-duration: 0s !important;
    animation-delay: 0s !important;
    transition-duration: 0s !important;
    transition-delay: 0s !important;
}
"""


class PlaywrightCaptureProvider:
    """Captures page screenshots with a browser that lives between open() and close()."""

    def __init__(
        self,
        full_page: bool = True,
        wait_for_network_idle: bool = True,
        timeout: int = 30000,
        selector: Optional[str] = None,
        wait_for: Optional[str] = None,
        storage_state: Optional[dict | str] = None,
        headless: bool = True,
    ):
        self.full_page = full_page
        self.wait_for_network_idle = wait_for_network_idle
        self.timeout = timeout
        self.selector = selector
        self.wait_for = wait_for
        self.storage_state = storage_state
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def open(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        logger.debug("Launched Chromium (headless=%s)", self.headless)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "PlaywrightCaptureProvider":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _new_context(self, viewport: Viewport) -> BrowserContext:
        context_kwargs: dict = {
            "viewport": {"width": viewport.width, "height": viewport.height},
            "reduced_motion": "reduce",
        }
        if self.storage_state:
            context_kwargs["storage_state"] = self.storage_state
        return await self._browser.new_context(**context_kwargs)

    async def capture(self, url: str, viewport: Viewport, output_path: Path) -> Path:
        """Navigate to ``url`` at ``viewport`` and write a PNG to ``output_path``."""
        await self.open()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        context = await self._new_context(viewport)
        try:
            page = await context.new_page()
            wait_until = "networkidle" if self.wait_for_network_idle else "load"
            logger.debug("Navigating to %s (wait_until=%s)", url, wait_until)
            await page.goto(url, wait_until=wait_until, timeout=self.timeout)

            if self.wait_for:
                await page.wait_for_selector(self.wait_for, timeout=self.timeout)

            # Let late layout and font loading settle
            await page.wait_for_timeout(500)
            await page.add_style_tag(content=_FREEZE_ANIMATIONS_CSS)

            if self.selector:
                element = await page.wait_for_selector(self.selector, timeout=5000)
                if element is None:
                    raise RuntimeError(f"Element not found: {self.selector}")
                await element.screenshot(path=str(output_path), type="png")
            else:
                await page.screenshot(path=str(output_path), full_page=self.full_page, type="png")
        finally:
            await context.close()

        logger.info("Captured %s at %s (%dx%d)", output_path, url, viewport.width, viewport.height)
        return output_path
