import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, Tuple

from playwright.async_api import Browser, Page, Playwright, async_playwright

from core.config import Settings, settings as default_settings
from core.errors import BrowserUnavailable

logger = logging.getLogger(__name__)

# Masks the most common automation fingerprints on every new document.
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
window.chrome = { runtime: {} };
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--window-size=1920,1080",
]

Launcher = Callable[[Settings], Awaitable[Tuple[Optional[Playwright], Browser]]]


async def launch_chromium(config: Settings) -> Tuple[Playwright, Browser]:
    """Start Playwright and launch Chromium with the configured options."""
    playwright = await async_playwright().start()
    try:
        launch_kwargs = {
            "headless": config.BROWSER_HEADLESS,
            "args": LAUNCH_ARGS,
            "ignore_default_args": ["--enable-automation"],
        }
        if config.BROWSER_EXECUTABLE_PATH:
            launch_kwargs["executable_path"] = config.BROWSER_EXECUTABLE_PATH
        browser = await playwright.chromium.launch(**launch_kwargs)
    except Exception:
        await playwright.stop()
        raise
    return playwright, browser


class BrowserSessionManager:
    """
    Owns the single browser process shared by every running job.

    - acquire(): lazily launches the browser, then reuses it while connected
    - new_page(): isolated context (cookies, storage) with stealth settings
    - close_page(): closes the page together with its context
    - shutdown(): terminates the browser process

    A failed launch leaves the manager empty so a later caller can retry.
    """

    def __init__(self, config: Settings = None, launcher: Launcher = None):
        self.config = config or default_settings
        self._launcher = launcher or launch_chromium
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """Return the shared browser, launching it on first use."""
        async with self._lock:
            if self.is_running:
                return self._browser

            if self._browser is not None:
                logger.warning("⚠️ Browser disconnected, relaunching")
                await self._discard()

            logger.info("🔌 Launching browser...")
            try:
                self._playwright, self._browser = await self._launcher(self.config)
            except Exception as e:
                logger.error(f"❌ Failed to launch browser: {e}")
                await self._discard()
                raise BrowserUnavailable(f"Failed to launch browser: {e}") from e

            logger.info("✅ Browser launched successfully")
            return self._browser

    async def new_page(self) -> Page:
        browser = await self.acquire()
        try:
            context = await browser.new_context(
                viewport={"width": self.config.VIEWPORT_WIDTH, "height": self.config.VIEWPORT_HEIGHT},
                user_agent=self.config.BROWSER_USER_AGENT,
                locale=self.config.BROWSER_LOCALE,
                ignore_https_errors=True,
            )
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            page = await context.new_page()
        except Exception as e:
            raise BrowserUnavailable(f"Failed to create page: {e}") from e
        logger.debug("Page created successfully")
        return page

    async def close_page(self, page: Page) -> None:
        try:
            await page.close()
            await page.context.close()
        except Exception as e:
            logger.warning(f"Failed to close page: {e}")

    @asynccontextmanager
    async def page(self):
        """Scoped page acquisition; the page is closed on every exit path."""
        page = await self.new_page()
        try:
            yield page
        finally:
            await self.close_page(page)

    async def _discard(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.debug(f"Ignoring error while closing browser: {e}")
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.debug(f"Ignoring error while stopping playwright: {e}")

    async def shutdown(self) -> None:
        async with self._lock:
            if self._browser is None and self._playwright is None:
                return
            logger.info("🛑 Closing browser...")
            await self._discard()
            logger.info("Browser closed and cleaned up")


# Process-wide shared session
browser_manager = BrowserSessionManager()
