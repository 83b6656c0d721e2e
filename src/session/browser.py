"""
Browser Factory — headless Chromium acquisition

Launches one Playwright driver + browser + context + page per call. The
returned handle is owned by exactly one login or discovery call and must be
closed by it; there is no pooling.
"""

from __future__ import annotations

from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from src.config import settings
from src.errors import SessionAcquisitionError

logger = structlog.get_logger(__name__)


class BrowserHandle:
    """Owns a launched page and everything above it in the Playwright stack."""

    def __init__(self, playwright: Any, browser: Any, context: Any, page: Page) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.page = page
        self._closed = False

    async def close(self) -> None:
        """Release context, browser and driver. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        for name, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except PlaywrightError as e:
                # Keep releasing the rest of the stack.
                logger.warning(
                    "browser_close_failed",
                    resource=name,
                    error=str(e),
                    source="browser",
                )

        logger.debug("browser_closed", source="browser")


class BrowserFactory:
    """
    Creates headless browser pages configured from settings.

    Usage:
        handle = await BrowserFactory().open_page()
        try:
            await handle.page.goto(url)
        finally:
            await handle.close()
    """

    def __init__(
        self,
        headless: bool | None = None,
        viewport: dict[str, int] | None = None,
    ) -> None:
        self._headless = settings.BROWSER_HEADLESS if headless is None else headless
        self._viewport = viewport or {
            "width": settings.BROWSER_VIEWPORT_WIDTH,
            "height": settings.BROWSER_VIEWPORT_HEIGHT,
        }

    async def open_page(self) -> BrowserHandle:
        """
        Launch a fresh browser and return a handle to its single page.

        Raises:
            SessionAcquisitionError: the engine could not start or create a page.
        """
        playwright = browser = context = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(
                headless=self._headless,
                args=list(settings.BROWSER_ARGS),
            )
            context = await browser.new_context(
                viewport=self._viewport,
                user_agent=settings.BROWSER_USER_AGENT,
            )
            page = await context.new_page()
            page.set_default_timeout(settings.ELEMENT_WAIT_TIMEOUT_MS)
        except Exception as e:
            logger.error(
                "browser_launch_failed",
                error=str(e),
                error_type=type(e).__name__,
                source="browser",
            )
            await BrowserHandle(playwright, browser, context, None).close()  # type: ignore[arg-type]
            raise SessionAcquisitionError(f"Browser engine unavailable: {e}") from e

        logger.info("browser_launched", headless=self._headless, source="browser")
        return BrowserHandle(playwright, browser, context, page)
