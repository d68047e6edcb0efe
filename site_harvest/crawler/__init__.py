"""site_harvest.crawler: движок обхода и контракт событий страниц."""

from site_harvest.crawler.engine import AsyncCrawler, normalize_url
from site_harvest.crawler.models import CrawlEngine, EngineFactory, PageCallback, PageEvent

__all__ = ["AsyncCrawler", "normalize_url", "CrawlEngine", "EngineFactory", "PageCallback", "PageEvent"]
