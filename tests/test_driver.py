# Tests for the traversal driver with an engine double
from __future__ import annotations

import asyncio

import pytest

from site_harvest.builder import build
from site_harvest.crawler.models import PageEvent
from site_harvest.driver import TraversalDriver
from site_harvest.errors import EngineFailure, TraversalError
from site_harvest.models import AcquisitionRequest, Mode
from site_harvest.monitor import ChangeMonitor, content_digest

ROOT = "https://example.com"


def config_for(mode: Mode, settings, **kwargs):
    return build(AcquisitionRequest(url=ROOT, mode=mode, **kwargs), settings)


@pytest.mark.asyncio()
async def test_crawl_single_page(settings, make_engine, page_factory):
    factory = make_engine([page_factory(ROOT, "<a href='/a'>a</a>")], links={ROOT + "/", ROOT + "/a"})
    outcome = await TraversalDriver(factory).run(config_for(Mode.CRAWL, settings, maxPages=1))

    body = outcome.to_dict()
    assert body["pages"][0]["url"] == ROOT
    assert body["pages"][0]["statusCode"] == 200
    assert body["links"] == [ROOT + "/", ROOT + "/a"]
    assert factory.engines[0].started and factory.engines[0].closed
    assert factory.engines[0].config.max_pages == 1


@pytest.mark.asyncio()
async def test_crawl_keeps_page_failures(settings, make_engine, page_factory):
    events = [
        page_factory(ROOT, "root"),
        PageEvent(url=ROOT + "/broken", error="timeout"),
        page_factory(ROOT + "/ok", "ok"),
    ]
    outcome = await TraversalDriver(make_engine(events)).run(config_for(Mode.CRAWL, settings))
    assert [p.url for p in outcome.pages] == [ROOT, ROOT + "/broken", ROOT + "/ok"]
    broken = outcome.pages[1]
    assert broken.status_code is None and broken.error == "timeout"


@pytest.mark.asyncio()
async def test_scrape_uses_first_page_only(settings, make_engine, page_factory):
    events = [
        page_factory(ROOT, "", title="Hello"),
        page_factory(ROOT + "/2", "", title="Second"),
    ]
    config = config_for(Mode.SCRAPE, settings, selectors={"title": "<title>(.*?)</title>", "bad": "("})
    outcome = await TraversalDriver(make_engine(events)).run(config)
    assert outcome.extracted["title"] == ["Hello"]
    assert outcome.extracted["bad"].startswith("Error extracting:")
    assert len(outcome.pages) == 2
    assert outcome.events_seen == 2


@pytest.mark.asyncio()
async def test_render_returns_first_page_verbatim(settings, make_engine, page_factory):
    event = page_factory(ROOT, "<div id='app'>rendered</div>")
    factory = make_engine([event])
    outcome = await TraversalDriver(factory).run(config_for(Mode.RENDER, settings))
    page = outcome.to_dict()["page"]
    assert page["url"] == ROOT
    assert page["statusCode"] == 200
    assert page["contentType"].startswith("text/html")
    assert page["content"] == event.content
    assert factory.engines[0].config.use_headless is True


@pytest.mark.asyncio()
async def test_render_without_pages(settings, make_engine):
    outcome = await TraversalDriver(make_engine([])).run(config_for(Mode.RENDER, settings))
    assert outcome.to_dict()["page"] is None


@pytest.mark.asyncio()
async def test_extract_text_scenario(settings, make_engine):
    event = PageEvent(url=ROOT, status=200, content_type="text/html", content="<script>bad()</script><p>Hi&nbsp;there</p>")
    outcome = await TraversalDriver(make_engine([event])).run(config_for(Mode.EXTRACT_TEXT, settings))
    assert outcome.to_dict() == {"success": True, "url": ROOT, "text": "Hi there"}


@pytest.mark.asyncio()
async def test_extract_text_last_page_wins(settings, make_engine, page_factory):
    events = [page_factory(ROOT, "first"), page_factory(ROOT + "/2", "second"), PageEvent(url=ROOT + "/3", error="boom")]
    outcome = await TraversalDriver(make_engine(events)).run(config_for(Mode.EXTRACT_TEXT, settings))
    assert outcome.text == "second"


@pytest.mark.asyncio()
async def test_monitor_first_then_changed(settings, make_engine):
    monitor = ChangeMonitor()
    config = config_for(Mode.MONITOR, settings)

    first = await TraversalDriver(make_engine([PageEvent(url=ROOT, status=200, content="A")]), monitor).run(config)
    second = await TraversalDriver(make_engine([PageEvent(url=ROOT, status=200, content="B")]), monitor).run(config)

    assert first.to_dict()["isFirstCheck"] is True
    assert first.to_dict()["hasChanged"] is False
    body = second.to_dict()
    assert body["isFirstCheck"] is False
    assert body["hasChanged"] is True
    assert body["previousHash"] == content_digest("A")
    assert body["currentHash"] == content_digest("B")


@pytest.mark.asyncio()
async def test_monitor_ignores_later_pages(settings, make_engine):
    monitor = ChangeMonitor()
    events = [PageEvent(url=ROOT, status=200, content="A"), PageEvent(url=ROOT + "/x", status=200, content="Z")]
    outcome = await TraversalDriver(make_engine(events), monitor).run(config_for(Mode.MONITOR, settings))
    assert outcome.monitor.current_digest == content_digest("A")
    assert outcome.events_seen == 2
    assert list(monitor.store) == [ROOT]


@pytest.mark.asyncio()
async def test_monitor_next_run(settings, make_engine):
    config = config_for(Mode.MONITOR, settings, cronExpression="0 * * * *")
    outcome = await TraversalDriver(make_engine([PageEvent(url=ROOT, status=200, content="A")])).run(config)
    assert outcome.next_run_at is not None
    assert outcome.next_run_at.minute == 0
    assert outcome.next_run_at > outcome.monitor.checked_at
    assert "nextRunAt" in outcome.to_dict()


@pytest.mark.asyncio()
async def test_monitor_failed_page_leaves_store_untouched(settings, make_engine, page_factory):
    monitor = ChangeMonitor()
    events = [PageEvent(url=ROOT, error="dns failure"), page_factory(ROOT + "/a", "later")]
    factory = make_engine(events)
    outcome = await TraversalDriver(factory, monitor).run(config_for(Mode.MONITOR, settings))

    assert factory.engines[0].delivered == 2
    assert len(monitor.store) == 0
    body = outcome.to_dict()
    assert body["isFirstCheck"] is True
    assert body["hasChanged"] is False
    assert body["currentHash"] is None
    assert body["error"] == "dns failure"


@pytest.mark.asyncio()
async def test_monitor_failed_recheck_keeps_stored_digest(settings, make_engine):
    monitor = ChangeMonitor()
    config = config_for(Mode.MONITOR, settings)
    await TraversalDriver(make_engine([PageEvent(url=ROOT, status=200, content="A")]), monitor).run(config)
    failed = await TraversalDriver(make_engine([PageEvent(url=ROOT, error="timeout")]), monitor).run(config)

    assert failed.monitor.is_first_check is False
    assert failed.monitor.previous_digest == content_digest("A")
    assert monitor.store.get(ROOT).digest == content_digest("A")


@pytest.mark.asyncio()
async def test_monitor_binary_bodies_differ(settings, make_engine):
    monitor = ChangeMonitor()
    config = config_for(Mode.MONITOR, settings)

    def pdf(body: bytes) -> PageEvent:
        return PageEvent(url=ROOT, status=200, content_type="application/pdf", content=body)

    await TraversalDriver(make_engine([pdf(b"%PDF\xff")]), monitor).run(config)
    second = await TraversalDriver(make_engine([pdf(b"%PDF\xfe")]), monitor).run(config)

    assert second.monitor.has_changed is True
    assert second.monitor.current_digest == content_digest(b"%PDF\xfe")
    assert second.monitor.previous_digest == content_digest(b"%PDF\xff")


@pytest.mark.asyncio()
async def test_monitor_without_pages(settings, make_engine):
    with pytest.raises(TraversalError):
        await TraversalDriver(make_engine([])).run(config_for(Mode.MONITOR, settings))


@pytest.mark.asyncio()
async def test_engine_start_failure(settings, make_engine):
    factory = make_engine(start_error=OSError("cannot connect"))
    with pytest.raises(EngineFailure) as exc_info:
        await TraversalDriver(factory).run(config_for(Mode.CRAWL, settings))
    assert exc_info.value.details == "cannot connect"
    assert exc_info.value.status == 500


@pytest.mark.asyncio()
async def test_engine_crash(settings, make_engine, page_factory):
    factory = make_engine([page_factory(ROOT, "x"), RuntimeError("engine crashed")])
    with pytest.raises(EngineFailure):
        await TraversalDriver(factory).run(config_for(Mode.CRAWL, settings))
    assert factory.engines[0].closed


@pytest.mark.asyncio()
async def test_timeout_returns_partial_pages(settings, make_engine, page_factory):
    events = [page_factory(ROOT + f"/{i}", str(i)) for i in range(10)]
    driver = TraversalDriver(make_engine(events, delay=0.05), timeout=0.18)
    outcome = await driver.run(config_for(Mode.CRAWL, settings))
    assert outcome.truncated is True
    assert 1 <= len(outcome.pages) < 10
    assert outcome.to_dict()["truncated"] is True


@pytest.mark.asyncio()
async def test_driver_is_not_reentrant(settings, make_engine, page_factory):
    driver = TraversalDriver(make_engine([page_factory(ROOT, "x")], delay=0.05))
    config = config_for(Mode.CRAWL, settings)
    first = asyncio.create_task(driver.run(config))
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError):
        await driver.run(config)
    await first
    # reusable once the previous traversal finished
    await driver.run(config)
