"""Logging setup for **SiteHarvest**.

All modules log through children of one project logger (``SiteHarvest.driver``,
``SiteHarvest.crawler`` ...), so a single :func:`configure` call controls the
whole service. Console output goes to stderr; stdout belongs to CLI commands.
Traversal-scoped messages carry the mode and target URL via
:class:`TraversalLogAdapter`::

    log = for_traversal(get_logger("driver"), "crawl", "https://example.com")
    log.info("started")   # -> [crawl https://example.com] started
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Final, Iterable, MutableMapping, Tuple, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteHarvest"

# aiohttp's own loggers share the project handlers when the server runs
_LIBRARY_LOGGERS: Final[Tuple[str, ...]] = ("aiohttp.access", "aiohttp.server")

_LevelT = Union[int, str]


def _handlers(log_file: str | Path | None, fmt: str) -> Iterable[logging.Handler]:
    formatter = logging.Formatter(fmt)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    yield console
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        rotating.setFormatter(formatter)
        yield rotating


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the project logger and the aiohttp server loggers.

    Parameters
    ----------
    level
        Numeric or textual level (``"DEBUG"``, ``logging.INFO`` ...).
    log_file
        Optional logfile, rotated at 5 MiB with three backups.
    log_format
        Format string for :class:`logging.Formatter`.
    replace_handlers
        Drop handlers installed by an earlier call before adding new ones.
    """
    handlers = list(_handlers(log_file, log_format))
    for name in (LOGGER_NAME, *_LIBRARY_LOGGERS):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if replace_handlers:
            for old in list(lg.handlers):
                lg.removeHandler(old)
                old.close()
        for handler in handlers:
            lg.addHandler(handler)
        lg.propagate = False
    return logging.getLogger(LOGGER_NAME)


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Used by the CLI group: fresh handlers at *level*."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


def get_logger(name: str | None = None) -> logging.Logger:
    """``SiteHarvest`` or its child ``SiteHarvest.<name>``."""
    return logging.getLogger(LOGGER_NAME if not name else f"{LOGGER_NAME}.{name}")


class TraversalLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with ``[<mode> <url>]``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        return f"[{extra.get('mode')} {extra.get('url')}] {msg}", kwargs


def for_traversal(base: logging.Logger, mode: str, url: str) -> TraversalLogAdapter:
    return TraversalLogAdapter(base, {"mode": mode, "url": url})


logger: logging.Logger = init_logging()

__all__ = [
    "logger",
    "configure",
    "init_logging",
    "get_logger",
    "for_traversal",
    "TraversalLogAdapter",
    "LOGGER_NAME",
    "DEFAULT_FORMAT",
]
