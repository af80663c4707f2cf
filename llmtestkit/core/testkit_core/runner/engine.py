"""Browser engine interface and its Playwright implementation."""

import logging
from pathlib import Path
from typing import List, Optional, Protocol

from playwright.async_api import Browser, Page, Playwright, async_playwright, expect

logger = logging.getLogger(__name__)

BROWSERS = ("chromium", "firefox", "webkit")


class BrowserEngine(Protocol):
    """Operations the test runner needs from a browser."""

    console_logs: List[str]

    async def start(self) -> None: ...

    async def navigate(self, url: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def select(self, selector: str, value: str) -> None: ...

    async def hover(self, selector: str) -> None: ...

    async def press(self, key: str) -> None: ...

    async def assert_text(self, selector: str, text: str) -> None: ...

    async def assert_url(self, url: str) -> None: ...

    async def wait_for_selector(self, selector: str) -> None: ...

    async def wait(self, milliseconds: int) -> None: ...

    async def screenshot(self, path: Path, selector: Optional[str] = None) -> None: ...

    async def close(self) -> None: ...


class PlaywrightEngine:
    """Drives a real browser through ``playwright.async_api``."""

    def __init__(self, browser: str = "chromium", headless: bool = True, timeout_ms: int = 30000):
        if browser not in BROWSERS:
            raise ValueError(f"Unsupported browser: {browser} (choose from {', '.join(BROWSERS)})")

        self.browser_name = browser
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.console_logs: List[str] = []

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self.page: Optional[Page] = None

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        browser_type = getattr(self._playwright, self.browser_name)
        self._browser = await browser_type.launch(headless=self.headless)
        self.page = await self._browser.new_page()
        self.page.set_default_timeout(self.timeout_ms)
        self.page.on("console", lambda msg: self.console_logs.append(f"[{msg.type}] {msg.text}"))
        logger.info(f"Launched {self.browser_name} (headless={self.headless})")

    async def navigate(self, url: str) -> None:
        await self.page.goto(url)

    async def click(self, selector: str) -> None:
        await self.page.click(selector)

    async def fill(self, selector: str, value: str) -> None:
        await self.page.fill(selector, value)

    async def select(self, selector: str, value: str) -> None:
        await self.page.select_option(selector, value)

    async def hover(self, selector: str) -> None:
        await self.page.hover(selector)

    async def press(self, key: str) -> None:
        await self.page.keyboard.press(key)

    async def assert_text(self, selector: str, text: str) -> None:
        await expect(self.page.locator(selector)).to_contain_text(text)

    async def assert_url(self, url: str) -> None:
        await expect(self.page).to_have_url(url)

    async def wait_for_selector(self, selector: str) -> None:
        await self.page.wait_for_selector(selector)

    async def wait(self, milliseconds: int) -> None:
        await self.page.wait_for_timeout(milliseconds)

    async def screenshot(self, path: Path, selector: Optional[str] = None) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if selector:
            await self.page.locator(selector).screenshot(path=str(path))
        else:
            await self.page.screenshot(path=str(path), full_page=True)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
