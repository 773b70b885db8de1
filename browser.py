"""Playwright browser driver used by the computer adapter."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Locator,
    Page,
    Playwright,
    async_playwright,
    TimeoutError as PlaywrightTimeout,
)

from exceptions import (
    BrowserNotStartedError,
    DeviceError,
    NavigationError,
    ScreenshotError,
)

BrowserType = Literal["chromium", "firefox", "webkit"]


class SimpleBrowser:
    """Single-tab browser session driven through Playwright."""

    def __init__(
        self,
        browser_type: BrowserType = "chromium",
        headless: bool = True,
        viewport_width: int = 1280,
        viewport_height: int = 800,
        slow_mo: int = 0,
        user_agent: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.browser_type = browser_type
        self.headless = headless
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.slow_mo = slow_mo
        self.user_agent = user_agent
        self.logger = logger or logging.getLogger("browser")

        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def _ensure_started(self) -> Page:
        """Raise if browser not started."""
        if self.page is None:
            raise BrowserNotStartedError()
        return self.page

    async def start(self) -> None:
        """Start the browser with specified engine."""
        self._playwright = await async_playwright().start()
        try:
            await self._launch()
        except Exception as e:
            self.logger.error(f"Browser failed to start: {e}")
            await self.close()
            raise DeviceError(f"Browser failed to start: {e}") from e

        self.logger.info(f"Browser started: {self.browser_type} (headless={self.headless})")

    async def _launch(self) -> None:
        browser_launcher = getattr(self._playwright, self.browser_type)
        launch_options: dict[str, Any] = {"headless": self.headless}
        if self.slow_mo > 0:
            launch_options["slow_mo"] = self.slow_mo

        self.browser = await browser_launcher.launch(**launch_options)
        context_options: dict[str, Any] = {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height}
        }
        if self.user_agent:
            context_options["user_agent"] = self.user_agent
        self.context = await self.browser.new_context(**context_options)
        if self.browser_type == "chromium":
            await self.context.grant_permissions(["clipboard-read", "clipboard-write"])

        # Pages opened by the site (target=_blank, window.open) replace the active one.
        self.context.on("page", self._adopt_page)
        self.page = await self.context.new_page()

    def _adopt_page(self, page: Page) -> None:
        if page is self.page:
            return
        self.logger.info("New page opened; switching to it")
        self.page = page

    async def __aenter__(self) -> "SimpleBrowser":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the browser and clean up resources."""
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self._playwright:
            await self._playwright.stop()
        self.page = None
        self.context = None
        self.browser = None
        self._playwright = None
        self.logger.info("Browser closed")

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    async def goto(
        self,
        url: str,
        wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load",
        timeout: float = 30000,
    ) -> None:
        """Navigate to a URL with configurable wait strategy."""
        page = self._ensure_started()
        try:
            await page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeout as e:
            raise NavigationError(f"Navigation timed out: {url}", url=url, timeout=timeout) from e
        except Exception as e:
            raise NavigationError(f"Navigation failed: {e}", url=url) from e

    async def settle(self, ms: int) -> None:
        """Give the page a moment to finish rendering after navigation or input."""
        page = self._ensure_started()
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=max(ms, 1000))
        except PlaywrightTimeout:
            pass
        except Exception as e:
            raise DeviceError(f"Page did not settle: {e}") from e
        if ms > 0:
            await asyncio.sleep(ms / 1000.0)

    def get_url(self) -> str:
        """Get current URL."""
        return self._ensure_started().url

    async def get_title(self) -> str:
        """Get current page title."""
        page = self._ensure_started()
        try:
            return await page.title()
        except Exception:
            return ""

    async def get_body_text(self, max_len: int = 800) -> str:
        """Return a snippet of the page body text."""
        page = self._ensure_started()
        try:
            text = await page.evaluate(
                """() => {
                    const t = document.body?.innerText || "";
                    return t.slice(0, 4000);
                }"""
            )
            return text[:max_len]
        except Exception:
            return ""

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots
    # ─────────────────────────────────────────────────────────────────────────

    async def screenshot(self, full_page: bool = False) -> bytes:
        """Take a PNG screenshot of the viewport."""
        page = self._ensure_started()
        try:
            return await page.screenshot(full_page=full_page, type="png")
        except Exception as e:
            raise ScreenshotError(f"Screenshot failed: {e}") from e

    # ─────────────────────────────────────────────────────────────────────────
    # Mouse
    # ─────────────────────────────────────────────────────────────────────────

    async def click(
        self,
        x: float,
        y: float,
        button: Literal["left", "right", "middle"] = "left",
        click_count: int = 1,
    ) -> None:
        """Click at coordinates."""
        page = self._ensure_started()
        await page.mouse.click(x, y, button=button, click_count=click_count)

    async def hover(self, x: float, y: float) -> None:
        """Move cursor without clicking."""
        page = self._ensure_started()
        await page.mouse.move(x, y)

    async def drag_and_drop(
        self,
        start_x: float,
        start_y: float,
        end_x: float,
        end_y: float,
        steps: int = 10,
    ) -> None:
        """Drag from start coordinates to end coordinates."""
        page = self._ensure_started()
        await page.mouse.move(start_x, start_y)
        await page.mouse.down()
        await page.mouse.move(end_x, end_y, steps=steps)
        await page.mouse.up()

    async def scroll(self, dx: int, dy: int) -> None:
        """Scroll the page by a wheel delta."""
        page = self._ensure_started()
        await page.mouse.wheel(dx, dy)

    # ─────────────────────────────────────────────────────────────────────────
    # Keyboard
    # ─────────────────────────────────────────────────────────────────────────

    async def type_text(self, text: str, delay: int = 0) -> None:
        """Type text into the focused element."""
        page = self._ensure_started()
        await page.keyboard.type(text, delay=delay)

    async def press_key(self, combo: str) -> None:
        """Press a key or a combination such as "Control+A"."""
        page = self._ensure_started()
        await page.keyboard.press(combo)

    # ─────────────────────────────────────────────────────────────────────────
    # Element lookup
    # ─────────────────────────────────────────────────────────────────────────

    def locator(self, selector: str) -> Locator:
        """Playwright locator for a CSS or `xpath=` selector."""
        return self._ensure_started().locator(selector)

    def get_by_text(self, text: str) -> Locator:
        return self._ensure_started().get_by_text(text)

    def get_by_label(self, label: str) -> Locator:
        return self._ensure_started().get_by_label(label)

    def get_by_role(self, role: str, name: Optional[str] = None) -> Locator:
        page = self._ensure_started()
        if name:
            return page.get_by_role(role, name=name)
        return page.get_by_role(role)

    # ─────────────────────────────────────────────────────────────────────────
    # Clipboard
    # ─────────────────────────────────────────────────────────────────────────

    async def read_clipboard(self) -> str:
        page = self._ensure_started()
        try:
            return await page.evaluate("() => navigator.clipboard.readText()")
        except Exception as e:
            raise DeviceError(f"Clipboard read failed: {e}") from e

    async def write_clipboard(self, data: str) -> None:
        page = self._ensure_started()
        try:
            await page.evaluate("(text) => navigator.clipboard.writeText(text)", data)
        except Exception as e:
            raise DeviceError(f"Clipboard write failed: {e}") from e
