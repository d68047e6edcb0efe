# === FILE: site_harvest/crawler/engine.py ===
"""Асинхронный движок обхода: aiohttp + BeautifulSoup, опционально headless-рендер."""
from __future__ import annotations

import asyncio
import posixpath
import random
import re
import time
from typing import List, Optional, Pattern, Sequence, Set
from urllib.parse import parse_qsl, quote, urlencode, unquote, urljoin, urlparse, urlunparse

from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from site_harvest.crawler.headless import HeadlessRenderer, PlaywrightRenderer
from site_harvest.crawler.models import PageCallback, PageEvent
from site_harvest.errors import PageFetchError
from site_harvest.logger import get_logger
from site_harvest.models import TraversalConfig

__all__ = ("AsyncCrawler", "normalize_url")

_TEXT_MARKERS = ("text", "html", "json", "xml", "javascript")


def normalize_url(url: str) -> str:
    """Нижний регистр схемы/хоста, нормализованный путь, отсортированный query, без фрагмента."""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    path = unquote(parsed.path or "/")
    norm = posixpath.normpath(path)
    if parsed.path.endswith("/") and not norm.endswith("/"):
        norm += "/"
    if not norm.startswith("/"):
        norm = "/" + norm
    norm = quote(norm, safe="/")
    qs = parse_qsl(parsed.query, keep_blank_values=True)
    qs.sort()
    query = urlencode(qs, doseq=True)
    return urlunparse((scheme, netloc, norm, "", query, ""))


class AsyncCrawler:
    """Обход в ширину по одному хосту с бюджетом, чёрным списком, rate-limit и retry.

    Каждая посещённая страница даёт ровно одно событие; вызовы колбэка
    сериализованы, хотя загрузка идёт в несколько воркеров.
    """
    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(
        self,
        config: TraversalConfig,
        renderer: Optional[HeadlessRenderer] = None,
        backoff_base: float = 1.0,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.backoff_base = backoff_base
        self.session: Optional[ClientSession] = None
        self.logger = get_logger("crawler")
        self.visited: Set[str] = set()
        self._links: Set[str] = set()
        self._blacklist: List[Pattern[str]] = [re.compile(p) for p in sorted(config.blacklist)]
        self._queued = 0
        self._fetched = 0
        self._rate_lock = asyncio.Lock()
        self._callback_lock = asyncio.Lock()
        self._last_request_ts = 0.0
        self._renderer_started = False

    async def __aenter__(self) -> AsyncCrawler:
        headers = {"User-Agent": self.config.user_agent, **self.config.extra_headers}
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.config.timeout),
            headers=headers,
            raise_for_status=False,
        )
        if self.config.use_headless:
            if self.renderer is None:
                self.renderer = PlaywrightRenderer(
                    self.config.user_agent, self.config.extra_headers, self.config.timeout
                )
            try:
                await self.renderer.start()
            except BaseException:
                await self.session.close()
                raise
            self._renderer_started = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._renderer_started and self.renderer is not None:
            await self.renderer.close()
            self._renderer_started = False
        if self.session and not self.session.closed:
            await self.session.close()

    @property
    def links(self) -> Set[str]:
        return set(self._links)

    @property
    def pages_fetched(self) -> int:
        return self._fetched

    async def crawl(self, on_page: PageCallback) -> int:
        """Обходит сайт, вызывая *on_page* для каждой страницы; возвращает число страниц."""
        if self.session is None:
            raise RuntimeError("Session not initialized")
        root = self.config.target_url
        self.logger.info("Старт обхода: %s (бюджет %d)", root, self.config.max_pages)
        start = time.monotonic()

        queue: asyncio.Queue[str] = asyncio.Queue()
        self.visited.add(normalize_url(root))
        self._links.add(normalize_url(root))
        self._queued = 1
        await queue.put(root)

        workers = [
            asyncio.create_task(self._worker(queue, on_page)) for _ in range(self.config.concurrency)
        ]
        joiner = asyncio.create_task(queue.join())
        tasks = [joiner, *workers]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if task is not joiner and not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

        duration = time.monotonic() - start
        self.logger.info(
            "Завершено: %d страниц за %.2f с, найдено ссылок: %d", self._fetched, duration, len(self._links)
        )
        return self._fetched

    async def _worker(self, queue: asyncio.Queue[str], on_page: PageCallback) -> None:
        while True:
            url = await queue.get()
            try:
                if self._fetched >= self.config.max_pages:
                    continue
                self._fetched += 1
                event = await self._fetch(url)
                async with self._callback_lock:
                    await on_page(event)
                if event.error is None and self._is_html(event):
                    for link in self._extract(url, event.content):
                        await self._discover(link, queue)
            finally:
                queue.task_done()

    async def _discover(self, link: str, queue: asyncio.Queue[str]) -> None:
        if self._is_blacklisted(link):
            self.logger.debug("Blacklisted: %s", link)
            return
        self._links.add(link)
        if link in self.visited or self._queued >= self.config.max_pages:
            return
        self.visited.add(link)
        self._queued += 1
        await queue.put(link)

    async def _fetch(self, url: str) -> PageEvent:
        try:
            if self.config.use_headless and self.renderer is not None:
                await self._wait_for_rate_limit()
                return await self.renderer.render(url, self.config.headless_wait_ms or 0)
            return await self._download(url)
        except PageFetchError as exc:
            self.logger.warning("Failed %s: %s", url, exc.details)
            return PageEvent(url=url, error=exc.details)

    async def _download(self, url: str) -> PageEvent:
        if self.session is None:
            raise RuntimeError("Session not initialized")
        attempts = 0
        while True:
            await self._wait_for_rate_limit()
            try:
                async with self.session.get(url) as resp:
                    if resp.status not in self._RETRY_STATUS or attempts >= self.config.retry_times:
                        return await self._to_event(url, resp)
                    reason = f"retryable status {resp.status}"
            except (ClientError, asyncio.TimeoutError) as exc:
                reason = str(exc) or exc.__class__.__name__
                if attempts >= self.config.retry_times:
                    raise PageFetchError(url, reason) from exc
            attempts += 1
            backoff = self.backoff_base * min(60, 2**attempts + random.random())
            self.logger.debug(
                "Retry %d/%d for %s after %.2f s (%s)", attempts, self.config.retry_times, url, backoff, reason
            )
            await asyncio.sleep(backoff)

    @staticmethod
    async def _to_event(url: str, resp: ClientResponse) -> PageEvent:
        ctype = resp.headers.get("Content-Type", "")
        if not ctype or any(marker in ctype.lower() for marker in _TEXT_MARKERS):
            content: str | bytes = await resp.text(errors="replace")
        else:
            content = await resp.read()
        return PageEvent(
            url=url,
            status=resp.status,
            content_type=ctype,
            headers={k: v for k, v in resp.headers.items()},
            content=content,
        )

    @staticmethod
    def _is_html(event: PageEvent) -> bool:
        return (
            event.status is not None
            and 200 <= event.status < 300
            and isinstance(event.content, str)
            and "html" in (event.content_type or "").lower()
        )

    def _extract(self, page_url: str, content: str | bytes | None) -> List[str]:
        soup = BeautifulSoup(content or "", "html.parser")
        host = urlparse(page_url).netloc.lower()
        links: List[str] = []
        for a in soup.find_all("a", href=True):
            href = str(a["href"]).strip()
            if href.startswith(("mailto:", "javascript:", "tel:", "#")):
                continue
            full = normalize_url(urljoin(page_url, href))
            parsed = urlparse(full)
            if parsed.scheme in ("http", "https") and parsed.netloc == host:
                links.append(full)
        return links

    def _is_blacklisted(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in self._blacklist)

    async def _wait_for_rate_limit(self) -> None:
        interval = 1 / self.config.rate_limit
        async with self._rate_lock:
            now = time.monotonic()
            wait = interval - (now - self._last_request_ts)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_ts = time.monotonic()
