# File: tests/test_report.py
import json

from site_harvest.collector import PageResult
from site_harvest.crawler.models import PageEvent
from site_harvest.driver import TraversalOutcome
from site_harvest.models import Mode
from site_harvest.report import render_html, render_json


def _outcome() -> TraversalOutcome:
    ok = PageResult.from_event(
        PageEvent(url="https://example.com", status=200, content_type="text/html",
                  content="<title>Home &amp; more</title>")
    )
    broken = PageResult.from_event(PageEvent(url="https://example.com/x", error="timed out"))
    return TraversalOutcome(
        mode=Mode.SCRAPE,
        target_url="https://example.com",
        pages=(ok, broken),
        extracted={"price": ["$1", "$2"], "bad": "Error extracting: missing )"},
        truncated=True,
    )


def test_render_json(tmp_path):
    path = render_json(_outcome(), tmp_path / "out" / "report.json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["success"] is True
    assert data["extractedData"]["price"] == ["$1", "$2"]
    assert data["pages"][1]["error"] == "timed out"
    assert data["truncated"] is True


def test_render_html_default_template(tmp_path):
    path = render_html(_outcome(), None, tmp_path / "report.html")
    html = path.read_text(encoding="utf-8")
    assert "Pages (2)" in html
    assert "Home &amp; more" in html
    assert "timed out" in html
    assert "$1, $2" in html
    assert "partial" in html


def test_render_html_custom_template(tmp_path):
    tpl_dir = tmp_path / "tpl"
    tpl_dir.mkdir()
    (tpl_dir / "report.html.j2").write_text("{{ pages|length }} pages", encoding="utf-8")
    path = render_html({"pages": [{"url": "u"}]}, tpl_dir, tmp_path / "r.html")
    assert path.read_text(encoding="utf-8") == "1 pages"
