# File: tests/conftest.py
from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Sequence, Set, Union

import pytest

from site_harvest.config import HarvestSettings
from site_harvest.crawler.models import PageCallback, PageEvent
from site_harvest.models import TraversalConfig


class FakeEngine:
    """Engine double: replays prepared events through the page callback.

    An ``Exception`` in *events* is raised from ``crawl`` at that point
    (an engine crash); ``start_error`` is raised when the engine starts.
    """

    def __init__(
        self,
        config: TraversalConfig,
        events: Sequence[Union[PageEvent, Exception]] = (),
        links: Optional[Set[str]] = None,
        start_error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.config = config
        self.events = list(events)
        self._links = set(links or ())
        self.start_error = start_error
        self.delay = delay
        self.started = False
        self.closed = False
        self.delivered = 0

    @property
    def links(self) -> Set[str]:
        return set(self._links)

    async def __aenter__(self) -> FakeEngine:
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    async def crawl(self, on_page: PageCallback) -> int:
        for event in self.events:
            if self.delay:
                await asyncio.sleep(self.delay)
            if isinstance(event, Exception):
                raise event
            await on_page(event)
            self.delivered += 1
        return self.delivered


@pytest.fixture()
def settings() -> HarvestSettings:
    """Fast settings: no retries, no real rate limiting."""
    return HarvestSettings(
        user_agent="TestAgent/1.0",
        timeout=2.0,
        rate_limit=1000.0,
        retry_times=0,
        concurrency=2,
    )


@pytest.fixture()
def make_engine() -> Callable[..., Callable[[TraversalConfig], FakeEngine]]:
    """
    Return a builder of engine factories; every engine created is kept in
    ``factory.engines`` for assertions.
    """

    def builder(
        events: Sequence[Union[PageEvent, Exception]] = (),
        links: Optional[Set[str]] = None,
        start_error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        engines: List[FakeEngine] = []

        def factory(config: TraversalConfig) -> FakeEngine:
            engine = FakeEngine(config, events, links, start_error, delay)
            engines.append(engine)
            return engine

        factory.engines = engines  # type: ignore[attr-defined]
        return factory

    return builder


def html_page(url: str, body: str, status: int = 200, title: Optional[str] = None) -> PageEvent:
    """Build a successful HTML PageEvent."""
    head = f"<head><title>{title}</title></head>" if title else ""
    return PageEvent(
        url=url,
        status=status,
        content_type="text/html; charset=utf-8",
        headers={"Content-Type": "text/html; charset=utf-8", "Server": "fake"},
        content=f"<html>{head}<body>{body}</body></html>",
    )


@pytest.fixture()
def page_factory():
    return html_page
