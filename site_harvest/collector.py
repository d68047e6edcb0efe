# File: site_harvest/collector.py
"""site_harvest.collector: накопление событий движка в упорядоченный список PageResult."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from bs4 import BeautifulSoup

from site_harvest.crawler.models import PageEvent

__all__ = ["PageResult", "PageEventCollector", "page_title"]


def page_title(content: str, content_type: str = "") -> Optional[str]:
    """Текст <title> для HTML-страниц или None."""
    if not content or (content_type and "html" not in content_type):
        return None
    soup = BeautifulSoup(content, "html.parser")
    tag = soup.find("title")
    return tag.get_text(strip=True) if tag else None


def _decode(content: Union[str, bytes, None]) -> str:
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _as_bytes(content: Union[str, bytes, None]) -> bytes:
    if content is None:
        return b""
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


@dataclass(frozen=True, slots=True)
class PageResult:
    """Нормализованный результат одной посещённой страницы. Неизменяем."""

    url: str
    status_code: Optional[int]
    content_type: str
    headers: Dict[str, str] = field(default_factory=dict)
    raw_content: str = ""
    title: Optional[str] = None
    error: Optional[str] = None
    # тело ответа как пришло от движка; raw_content - его текстовая форма
    body: bytes = b""

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def from_event(cls, event: PageEvent) -> PageResult:
        content_type = (event.content_type or "").strip()
        headers = {str(k): str(v) for k, v in (event.headers or {}).items()}
        if event.error is not None:
            return cls(
                url=event.url,
                status_code=None,
                content_type=content_type,
                headers=headers,
                raw_content="",
                title=None,
                error=event.error,
            )
        raw = _decode(event.content)
        return cls(
            url=event.url,
            status_code=event.status,
            content_type=content_type,
            headers=headers,
            raw_content=raw,
            title=page_title(raw, content_type.lower()),
            body=_as_bytes(event.content),
        )

    def summary(self) -> Dict[str, Any]:
        """Краткое представление для crawl/scrape (без контента)."""
        data: Dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "statusCode": self.status_code,
            "contentType": self.content_type,
            "headers": dict(self.headers),
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Полное представление для render."""
        data = self.summary()
        data["content"] = self.raw_content
        return data


class PageEventCollector:
    """Владеет PageResult одного запроса; порядок - порядок прихода событий."""

    def __init__(self) -> None:
        self._pages: List[PageResult] = []

    def add(self, event: Union[PageEvent, Mapping[str, Any]]) -> PageResult:
        if not isinstance(event, PageEvent):
            event = PageEvent(**dict(event))
        page = PageResult.from_event(event)
        self._pages.append(page)
        return page

    @property
    def pages(self) -> Tuple[PageResult, ...]:
        return tuple(self._pages)

    @property
    def first(self) -> Optional[PageResult]:
        return self._pages[0] if self._pages else None

    @property
    def last(self) -> Optional[PageResult]:
        return self._pages[-1] if self._pages else None

    @property
    def failures(self) -> List[PageResult]:
        return [p for p in self._pages if p.failed]

    def __len__(self) -> int:
        return len(self._pages)

    def summaries(self) -> List[Dict[str, Any]]:
        return [p.summary() for p in self._pages]
