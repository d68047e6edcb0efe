# === FILE: site_harvest/server.py ===
"""
HTTP-интерфейс SiteHarvest на aiohttp.web: один POST-маршрут на режим.

Хранилище хешей создаётся на уровне приложения (или передаётся явно) и
живёт столько же, сколько приложение. На каждый запрос создаётся свой
TraversalDriver.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from aiohttp import web
from pydantic import ValidationError

from site_harvest import __version__
from site_harvest.acquire import acquire
from site_harvest.config import HarvestSettings
from site_harvest.crawler.models import EngineFactory
from site_harvest.driver import default_engine_factory
from site_harvest.errors import (
    ConfigError,
    ConfigErrorKind,
    HarvestError,
    RequestValidationError,
    ScheduleError,
)
from site_harvest.logger import get_logger
from site_harvest.models import AcquisitionRequest, Mode
from site_harvest.monitor import ChangeMonitor, ContentHashStore

__all__ = ["create_app", "run_server", "ROUTES", "FAILURE_MESSAGES"]

log = get_logger("server")

SETTINGS_KEY = web.AppKey("settings", HarvestSettings)
STORE_KEY = web.AppKey("store", ContentHashStore)
ENGINE_KEY = web.AppKey("engine_factory", object)

ROUTES: Dict[Mode, str] = {
    Mode.CRAWL: "/api/crawler",
    Mode.SCRAPE: "/api/crawler/scrape",
    Mode.RENDER: "/api/crawler/render",
    Mode.EXTRACT_TEXT: "/api/crawler/extract-text",
    Mode.MONITOR: "/api/crawler/monitor",
}

FAILURE_MESSAGES: Dict[Mode, str] = {
    Mode.CRAWL: "Failed to crawl website",
    Mode.SCRAPE: "Failed to scrape website",
    Mode.RENDER: "Failed to render website",
    Mode.EXTRACT_TEXT: "Failed to extract text",
    Mode.MONITOR: "Failed to monitor website",
}


def _error_response(status: int, error: str, details: Optional[str] = None) -> web.Response:
    body: Dict[str, Any] = {"error": error}
    if details:
        body["details"] = details
    return web.json_response(body, status=status)


async def _read_request(request: web.Request, mode: Mode) -> AcquisitionRequest:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestValidationError("Invalid JSON body", str(exc)) from exc
    if not isinstance(payload, dict):
        raise RequestValidationError("Invalid JSON body", "expected a JSON object")
    if not payload.get("url"):
        raise RequestValidationError("URL is required")
    payload.pop("mode", None)
    try:
        return AcquisitionRequest(mode=mode, **payload)
    except ValidationError as exc:
        raise RequestValidationError("Invalid request", str(exc)) from exc


def _handler(mode: Mode):
    async def handle(request: web.Request) -> web.Response:
        app = request.app
        settings = app[SETTINGS_KEY]
        try:
            acquisition = await _read_request(request, mode)
            outcome = await acquire(
                acquisition,
                settings,
                engine_factory=app[ENGINE_KEY],  # type: ignore[arg-type]
                monitor=ChangeMonitor(app[STORE_KEY]),
            )
        except (RequestValidationError, ConfigError, ScheduleError) as exc:
            if isinstance(exc, ConfigError) and exc.kind is not ConfigErrorKind.MISSING_URL:
                return _error_response(exc.status, "Invalid crawl configuration", str(exc))
            return _error_response(exc.status, exc.message, exc.details)
        except HarvestError as exc:
            log.error("%s: %s", FAILURE_MESSAGES[mode], exc)
            return _error_response(exc.status, FAILURE_MESSAGES[mode], exc.details or exc.message)
        except Exception as exc:
            log.exception("%s", FAILURE_MESSAGES[mode])
            return _error_response(500, FAILURE_MESSAGES[mode], str(exc))
        return web.json_response(outcome.to_dict())

    handle.__name__ = f"handle_{mode.name.lower()}"
    return handle


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "version": __version__})


def create_app(
    settings: Optional[HarvestSettings] = None,
    engine_factory: Optional[EngineFactory] = None,
    store: Optional[ContentHashStore] = None,
) -> web.Application:
    """Собирает приложение; все зависимости можно подменить в тестах."""
    app = web.Application()
    app[SETTINGS_KEY] = settings or HarvestSettings()
    app[STORE_KEY] = store if store is not None else ContentHashStore()
    app[ENGINE_KEY] = engine_factory or default_engine_factory
    for mode, path in ROUTES.items():
        app.router.add_post(path, _handler(mode))
    app.router.add_get("/health", health)
    return app


def run_server(settings: HarvestSettings, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Запускает сервер до прерывания (Ctrl+C)."""
    app = create_app(settings)
    host = host or settings.host
    port = port or settings.port
    log.info("SiteHarvest listening on http://%s:%d", host, port)
    web.run_app(app, host=host, port=port, print=None)
