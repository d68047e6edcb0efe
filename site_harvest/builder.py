"""
Acquisition config builder: request payload → validated TraversalConfig.

Pure: no I/O, no side effects. Defaults (page budget, headless wait) come
from the HarvestSettings passed in.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import FrozenSet, Iterable, Optional
from urllib.parse import urlparse

from site_harvest.config import HarvestSettings
from site_harvest.errors import ConfigError, ConfigErrorKind, ScheduleError
from site_harvest.models import AcquisitionRequest, Mode, TraversalConfig
from site_harvest.schedule import next_run_after

__all__ = ["build", "is_absolute_url", "normalize_blacklist"]

_REFERENCE_TIME = datetime(2000, 1, 1)


def is_absolute_url(url: Optional[str]) -> bool:
    """http(s) URL со схемой и хостом."""
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_blacklist(patterns: Iterable[str]) -> FrozenSet[str]:
    """Strip and deduplicate patterns; each must compile as a regular expression."""
    cleaned = frozenset(p.strip() for p in patterns if p and p.strip())
    for pattern in cleaned:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ConfigError(
                ConfigErrorKind.INVALID_BLACKLIST,
                "Invalid crawl configuration",
                f"blacklist pattern {pattern!r}: {exc}",
            ) from exc
    return cleaned


def build(request: AcquisitionRequest, settings: Optional[HarvestSettings] = None) -> TraversalConfig:
    """
    Validate *request* and assemble the traversal configuration.

    Raises ConfigError(MISSING_URL) when the target URL is absent or not an
    absolute http(s) URL. ``maxPages`` is clamped to at least one; render
    mode forces headless rendering and a single-page budget, extract-text
    a single-page budget.
    """
    settings = settings or HarvestSettings()

    if not is_absolute_url(request.target_url):
        raise ConfigError(
            ConfigErrorKind.MISSING_URL,
            "URL is required",
            None if not request.target_url else f"not an absolute http(s) URL: {request.target_url!r}",
        )
    target_url = request.target_url.strip()  # type: ignore[union-attr]

    max_pages = request.max_pages if request.max_pages is not None else settings.default_max_pages
    max_pages = max(1, max_pages)

    use_headless = request.use_headless
    if request.mode is Mode.RENDER:
        use_headless = True
        max_pages = 1
    elif request.mode is Mode.EXTRACT_TEXT:
        max_pages = 1

    wait_ms: Optional[int] = None
    if use_headless:
        wait_ms = request.headless_wait_ms if request.headless_wait_ms is not None else settings.default_wait_ms

    schedule = request.schedule_expression.strip() if request.schedule_expression else None
    if schedule:
        try:
            # also rejects expressions that never fire (e.g. Feb 30)
            next_run_after(schedule, _REFERENCE_TIME)
        except ScheduleError as exc:
            raise ConfigError(ConfigErrorKind.INVALID_SCHEDULE, exc.message, exc.details) from exc

    return TraversalConfig(
        target_url=target_url,
        mode=request.mode,
        max_pages=max_pages,
        blacklist=normalize_blacklist(request.blacklist),
        use_headless=use_headless,
        headless_wait_ms=wait_ms,
        extra_headers=dict(request.extra_headers),
        extraction_rules=dict(request.extraction_rules),
        schedule_expression=schedule or None,
        user_agent=settings.user_agent,
        timeout=settings.timeout,
        rate_limit=settings.rate_limit,
        retry_times=settings.retry_times,
        concurrency=settings.concurrency,
    )
