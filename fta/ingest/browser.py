"""
Browser automation capability
Wraps a playwright page so each step returns a StepResult instead of raising
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Generic, Optional, Sequence, TypeVar

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
]


@dataclass
class StepResult(Generic[T]):
    """Outcome of one browser step"""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "StepResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "StepResult[T]":
        return cls(ok=False, error=error)


class BrowserPage:
    """
    Step-oriented facade over a playwright Page.

    Timeouts are in seconds. Playwright errors (including timeouts) become
    failed StepResults.
    """

    def __init__(self, page: Page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, timeout: float = 30.0) -> StepResult[None]:
        try:
            await self._page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Navigation to {url} failed: {e}")

    async def find_first(self, selectors: Sequence[str], timeout: float = 15.0) -> StepResult[str]:
        """Return the first selector in priority order that matches an element"""
        try:
            await self._page.wait_for_selector(", ".join(selectors), timeout=timeout * 1000)
        except PlaywrightError:
            return StepResult.failure(f"None of {list(selectors)} appeared within {timeout:.0f}s")
        for selector in selectors:
            if await self._page.query_selector(selector) is not None:
                return StepResult.success(selector)
        return StepResult.failure(f"None of {list(selectors)} found")

    async def type(self, selector: str, text: str) -> StepResult[None]:
        try:
            await self._page.type(selector, text)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Typing into {selector} failed: {e}")

    async def click_and_wait(self, selector: str, timeout: float = 30.0) -> StepResult[None]:
        """Click and wait for the resulting navigation to settle"""
        try:
            async with self._page.expect_navigation(wait_until="networkidle", timeout=timeout * 1000):
                await self._page.click(selector)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Navigation after clicking {selector} did not settle: {e}")

    async def first_text(self, selectors: Sequence[str]) -> StepResult[str]:
        """Visible text of the first matching element"""
        for selector in selectors:
            try:
                element = await self._page.query_selector(selector)
                if element is None:
                    continue
                text = (await element.inner_text()).strip()
                if text:
                    return StepResult.success(text)
            except PlaywrightError:
                continue
        return StepResult.failure("No text found")

    async def cookies(self) -> StepResult[list[dict]]:
        try:
            return StepResult.success(await self._page.context.cookies())
        except PlaywrightError as e:
            return StepResult.failure(f"Reading cookies failed: {e}")

    async def add_cookies(self, cookies: list[dict]) -> StepResult[None]:
        try:
            await self._page.context.add_cookies(cookies)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Setting cookies failed: {e}")

    async def evaluate(self, script: str, arg: Any = None) -> StepResult[Any]:
        try:
            return StepResult.success(await self._page.evaluate(script, arg))
        except PlaywrightError as e:
            return StepResult.failure(f"Script evaluation failed: {e}")

    async def wait_for_function(self, script: str, timeout: float = 30.0) -> StepResult[None]:
        try:
            await self._page.wait_for_function(script, timeout=timeout * 1000)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Condition not met within {timeout:.0f}s: {e}")

    async def set_content(self, html: str) -> StepResult[None]:
        try:
            await self._page.set_content(html)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Setting page content failed: {e}")

    async def screenshot(self, path: str) -> StepResult[None]:
        try:
            await self._page.screenshot(path=path)
            return StepResult.success()
        except PlaywrightError as e:
            return StepResult.failure(f"Screenshot failed: {e}")


@asynccontextmanager
async def open_page(headless: bool = True) -> AsyncIterator[BrowserPage]:
    """Launch chromium and yield a fresh BrowserPage; closes everything on exit"""
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=headless, args=LAUNCH_ARGS)
        try:
            context = await browser.new_context(
                viewport={"width": 1280, "height": 800},
                user_agent=DEFAULT_USER_AGENT,
            )
            page = await context.new_page()
            logger.debug("Browser page opened", headless=headless)
            yield BrowserPage(page)
        finally:
            await browser.close()


def page_factory(headless: bool = True):
    """Build a zero-argument page factory for BrowserLogin / OracleAnalyzer"""
    def factory():
        return open_page(headless=headless)
    return factory
