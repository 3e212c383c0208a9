"""Browser session shared by the dispatcher and the queue worker."""

import logging

from luxury_scraper.config import Settings

logger = logging.getLogger(__name__)

STEALTH_SCRIPT = """
    // Remove webdriver property
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    // Mock languages
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-GB', 'en', 'es']
    });
"""


class BrowserSession:
    """
    One Playwright browser per worker process.

    Pages are created per unit of work with ``new_page`` and must be
    closed by the caller; ``close`` tears down whatever is still open.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright = None
        self.browser = None
        self.context = None

    def _proxy(self) -> dict | None:
        if not self.settings.proxy_server:
            return None
        proxy = {"server": self.settings.proxy_server}
        if self.settings.proxy_username:
            proxy["username"] = self.settings.proxy_username
            proxy["password"] = self.settings.proxy_password or ""
        return proxy

    async def start(self) -> None:
        """Launch browser and context with stealth settings."""
        if self.browser is not None:
            return

        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()

        self.browser = await self._playwright.chromium.launch(
            headless=self.settings.headless,
            timeout=self.settings.navigation_timeout_ms,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ],
        )

        self.context = await self.browser.new_context(
            user_agent=self.settings.user_agent,
            viewport={"width": 1920, "height": 1080},
            locale="en-GB",
            ignore_https_errors=True,
            proxy=self._proxy(),
        )
        await self.context.add_init_script(STEALTH_SCRIPT)
        logger.info("Browser started (headless=%s)", self.settings.headless)

    async def new_page(self):
        """Open a new page in the shared context."""
        await self.start()
        page = await self.context.new_page()
        page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        page.set_default_timeout(self.settings.selector_timeout_ms)
        return page

    async def close(self) -> None:
        """Close browser and clean up."""
        if self.context:
            await self.context.close()
            self.context = None
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
