# File: site_harvest/driver.py
"""site_harvest.driver: orchestration layer for one traversal.

The driver starts the engine with a single page callback and routes each
page event according to the requested mode:

* crawl        – every page is collected; the engine's link set is kept.
* scrape       – every page is collected; extraction runs on the first one.
* render       – the first page is returned verbatim (headless is forced on).
* extract-text – single-page budget; the last successful page wins.
* monitor      – the first page is checked against the content hash store;
                 if it failed, the outcome carries its error and the store
                 is left as it was.

Per-page failures are recorded on the page and never abort the traversal.
An engine that cannot start, or crashes mid-run, fails the request with
:class:`EngineFailure`. When a timeout expires the pages gathered so far are
returned with ``truncated=True``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Tuple

from site_harvest.collector import PageEventCollector, PageResult
from site_harvest.crawler.engine import AsyncCrawler
from site_harvest.crawler.models import EngineFactory, PageEvent
from site_harvest.errors import EngineFailure, HarvestError, TraversalError
from site_harvest.extraction import ExtractionOutcome, extract
from site_harvest.logger import for_traversal, get_logger
from site_harvest.models import Mode, TraversalConfig
from site_harvest.monitor import ChangeMonitor, MonitorOutcome
from site_harvest.schedule import next_run_after
from site_harvest.text import normalize_text

__all__ = ["TraversalOutcome", "TraversalDriver", "default_engine_factory"]

log = get_logger("driver")


def default_engine_factory(config: TraversalConfig) -> AsyncCrawler:
    return AsyncCrawler(config)


@dataclass(slots=True)
class TraversalOutcome:
    """Everything one traversal produced; which fields are set depends on the mode."""

    mode: Mode
    target_url: str
    pages: Tuple[PageResult, ...] = ()
    links: FrozenSet[str] = frozenset()
    extracted: ExtractionOutcome = field(default_factory=dict)
    text: Optional[str] = None
    page: Optional[PageResult] = None
    monitor: Optional[MonitorOutcome] = None
    next_run_at: Optional[datetime] = None
    events_seen: int = 0
    truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for the mode, in the HTTP API's field names."""
        body: Dict[str, Any] = {"success": True}
        if self.mode is Mode.CRAWL:
            body["pages"] = [p.summary() for p in self.pages]
            body["links"] = sorted(self.links)
        elif self.mode is Mode.SCRAPE:
            body["url"] = self.target_url
            body["pages"] = [p.summary() for p in self.pages]
            body["extractedData"] = self.extracted
        elif self.mode is Mode.RENDER:
            body["page"] = self.page.to_dict() if self.page else None
        elif self.mode is Mode.EXTRACT_TEXT:
            body["url"] = self.target_url
            body["text"] = self.text or ""
        elif self.mode is Mode.MONITOR and self.monitor is not None:
            body.update(self.monitor.to_dict())
            body["url"] = self.target_url
            if self.next_run_at is not None:
                body["nextRunAt"] = self.next_run_at.isoformat()
        if self.truncated:
            body["truncated"] = True
        return body


class TraversalDriver:
    """Owns one traversal's lifecycle. Not re-entrant: use one instance per request."""

    def __init__(
        self,
        engine_factory: Optional[EngineFactory] = None,
        monitor: Optional[ChangeMonitor] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.engine_factory = engine_factory or default_engine_factory
        self.monitor = monitor
        self.timeout = timeout
        self._running = False

    async def run(self, config: TraversalConfig, mode: Optional[Mode] = None) -> TraversalOutcome:
        if self._running:
            raise RuntimeError("TraversalDriver is already running a traversal")
        self._running = True
        try:
            return await self._run(config, mode or config.mode)
        finally:
            self._running = False

    async def _run(self, config: TraversalConfig, mode: Mode) -> TraversalOutcome:
        if mode is Mode.MONITOR and self.monitor is None:
            self.monitor = ChangeMonitor()

        collector = PageEventCollector()
        outcome = TraversalOutcome(mode=mode, target_url=config.target_url)
        tlog = for_traversal(log, mode.value, config.target_url)

        async def on_page(event: PageEvent) -> None:
            outcome.events_seen += 1
            page = collector.add(event)
            if page.failed:
                tlog.warning("page failed %s: %s", page.url, page.error)
            first = outcome.events_seen == 1
            if mode is Mode.SCRAPE and first:
                outcome.extracted = extract(page.raw_content, config.extraction_rules)
            elif mode is Mode.RENDER and first:
                outcome.page = page
            elif mode is Mode.EXTRACT_TEXT and not page.failed:
                outcome.text = normalize_text(page.raw_content)
            elif mode is Mode.MONITOR and first:
                if self.monitor is None:
                    raise RuntimeError("Change monitor not initialized")
                if page.failed:
                    outcome.monitor = await self.monitor.unreachable(config.target_url, page.error or "")
                else:
                    outcome.monitor = await self.monitor.check(config.target_url, page.body)

        tlog.info("started (budget %d)", config.max_pages)
        try:
            engine = self.engine_factory(config)
            async with engine:
                try:
                    await asyncio.wait_for(engine.crawl(on_page), timeout=self.timeout)
                except asyncio.TimeoutError:
                    outcome.truncated = True
                    tlog.warning(
                        "timed out after %s s; returning %d collected page(s)",
                        self.timeout,
                        len(collector),
                    )
                outcome.links = frozenset(engine.links)
        except HarvestError:
            raise
        except Exception as exc:
            tlog.error("engine failure: %s", exc)
            raise EngineFailure("Engine failure", str(exc) or exc.__class__.__name__) from exc

        outcome.pages = collector.pages
        if mode is Mode.MONITOR:
            if outcome.monitor is None:
                raise TraversalError("Failed to monitor website", "no page was received")
            if config.schedule_expression:
                outcome.next_run_at = next_run_after(config.schedule_expression, outcome.monitor.checked_at)

        tlog.info(
            "finished: %d page(s), %d failed%s",
            len(collector),
            len(collector.failures),
            " (truncated)" if outcome.truncated else "",
        )
        return outcome
