"""
Headless browser session for offscreen scraping.

One Playwright browser per process. Pages are handed out through
``open_page()``, an async context manager that always closes the page,
whether the caller returns normally or raises. A browser that is not running
(failed launch or failed restart) is launched again on the next page request.

Every request a page makes is intercepted and stripped of headers that
block iframe embedding and of the sec-fetch metadata headers.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from playwright.async_api import async_playwright

from datahive_worker.core.exceptions import BrowserUnavailableError

logger = structlog.get_logger()

STRIPPED_HEADERS = frozenset(
    {
        "x-frame-options",
        "frame-options",
        "content-security-policy",
        "content-security-policy-report-only",
        "sec-fetch-dest",
        "sec-fetch-mode",
        "sec-fetch-site",
        "sec-fetch-user",
    }
)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
]


def strip_headers(headers: dict[str, str]) -> dict[str, str]:
    """Drop frame-blocking and fetch-metadata headers (case-insensitive)."""
    return {k: v for k, v in headers.items() if k.lower() not in STRIPPED_HEADERS}


async def _rewrite_request(route: Any) -> None:
    await route.continue_(headers=strip_headers(dict(route.request.headers)))


class BrowserSession:
    """Owns the process-wide headless browser.

    Args:
        headless: Launch without a visible window
        browser: An already launched Playwright ``Browser`` (tests pass a fake)
    """

    def __init__(self, headless: bool = True, browser: Any | None = None):
        self.headless = headless
        self._browser = browser
        self._playwright: Any | None = None

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        if self._browser is not None:
            return

        logger.info("Launching headless browser", headless=self.headless)
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[Any]:
        """Yield a fresh page with request interception; closed on exit."""
        if self._browser is None:
            try:
                await self.start()
            except Exception as e:
                raise BrowserUnavailableError(f"Browser could not be started: {e}") from e
        if self._browser is None:
            raise BrowserUnavailableError("Browser could not be started")

        page = await self._browser.new_page()
        try:
            await page.route("**/*", _rewrite_request)
            logger.debug("Created page with request interception")
            yield page
        finally:
            await page.close()

    async def restart(self) -> None:
        logger.info("Restarting headless browser")
        await self.close()
        await self.start()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
            logger.info("Browser closed")
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
