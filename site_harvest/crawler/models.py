# site_harvest/crawler/models.py
"""
Page events and the engine contract used by the traversal driver.

Any engine works as long as it is an async context manager (entering it
starts the engine), runs a traversal with ``crawl(on_page)`` and exposes the
discovered links afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, Optional, Protocol, Set, Union

from site_harvest.models import TraversalConfig


@dataclass(slots=True)
class PageEvent:
    """One visited page as reported by the engine (raw, not normalized)."""

    url: str
    status: Optional[int] = None
    content_type: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    content: Union[str, bytes, None] = None
    error: Optional[str] = None


PageCallback = Callable[[PageEvent], Awaitable[None]]


class CrawlEngine(Protocol):
    """start = ``__aenter__``, run = ``crawl``, link discovery = ``links``."""

    @property
    def links(self) -> Set[str]: ...

    async def __aenter__(self) -> "CrawlEngine": ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def crawl(self, on_page: PageCallback) -> None: ...


EngineFactory = Callable[[TraversalConfig], CrawlEngine]
