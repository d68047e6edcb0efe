"""site_harvest.report: JSON- и HTML-отчёты, используемые CLI."""

from site_harvest.report.html_report import render_html
from site_harvest.report.json_report import dumps, render_json

__all__ = ["render_json", "render_html", "dumps"]
