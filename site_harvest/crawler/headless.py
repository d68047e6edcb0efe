"""
Headless rendering through Playwright Chromium.

Playwright is an optional extra (``pip install site_harvest[headless]``
followed by ``playwright install chromium``); it is imported when the
renderer starts so that plain HTTP traversals do not need it.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from site_harvest.crawler.models import PageEvent
from site_harvest.errors import EngineFailure, PageFetchError
from site_harvest.logger import get_logger

__all__ = ["HeadlessRenderer", "PlaywrightRenderer"]


class HeadlessRenderer(Protocol):
    async def start(self) -> None: ...

    async def close(self) -> None: ...

    async def render(self, url: str, wait_ms: int) -> PageEvent: ...


class PlaywrightRenderer:
    """Renders pages in one shared browser context with JavaScript enabled."""

    def __init__(
        self,
        user_agent: str,
        extra_headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
    ) -> None:
        self.user_agent = user_agent
        self.extra_headers = dict(extra_headers or {})
        self.timeout_ms = timeout * 1000
        self.logger = get_logger("headless")
        self._pw: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._error_cls: type[BaseException] = Exception

    async def start(self) -> None:
        try:
            from playwright.async_api import Error as PlaywrightError
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise EngineFailure(
                "Headless rendering is unavailable",
                "playwright is not installed; install the 'headless' extra",
            ) from exc

        self._error_cls = PlaywrightError
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(headless=True, args=["--no-sandbox"])
            self._context = await self._browser.new_context(
                user_agent=self.user_agent,
                extra_http_headers=self.extra_headers or None,
                java_script_enabled=True,
            )
        except PlaywrightError as exc:
            await self.close()
            raise EngineFailure("Failed to launch headless browser", str(exc)) from exc
        self.logger.debug("Headless browser launched")

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None

    async def render(self, url: str, wait_ms: int) -> PageEvent:
        if self._context is None:
            raise RuntimeError("Renderer not started")
        page = await self._context.new_page()
        try:
            response = await page.goto(url, wait_until="load", timeout=self.timeout_ms)
            if wait_ms:
                await page.wait_for_timeout(wait_ms)
            html = await page.content()
            headers: Dict[str, str] = await response.all_headers() if response is not None else {}
            return PageEvent(
                url=url,
                status=response.status if response is not None else None,
                content_type=headers.get("content-type", "text/html"),
                headers=headers,
                content=html,
            )
        except self._error_cls as exc:
            raise PageFetchError(url, str(exc)) from exc
        finally:
            await page.close()
