# === FILE: site_harvest/acquire.py ===
"""
Модуль-обёртка: запрос → конфигурация → обход.
"""
from typing import Optional

from site_harvest.builder import build
from site_harvest.config import HarvestSettings
from site_harvest.crawler.models import EngineFactory
from site_harvest.driver import TraversalDriver, TraversalOutcome
from site_harvest.models import AcquisitionRequest
from site_harvest.monitor import ChangeMonitor


async def acquire(
    request: AcquisitionRequest,
    settings: Optional[HarvestSettings] = None,
    *,
    engine_factory: Optional[EngineFactory] = None,
    monitor: Optional[ChangeMonitor] = None,
) -> TraversalOutcome:
    """
    Строит TraversalConfig и выполняет один обход новым TraversalDriver.

    Parameters
    ----------
    request : AcquisitionRequest
        Запрос с режимом и параметрами.
    settings : HarvestSettings, optional
        Настройки сервиса (значения по умолчанию, таймауты движка).
    engine_factory : callable, optional
        Фабрика движка; по умолчанию AsyncCrawler.
    monitor : ChangeMonitor, optional
        Детектор изменений со своим хранилищем хешей (режим monitor).

    Returns
    -------
    TraversalOutcome
    """
    settings = settings or HarvestSettings()
    config = build(request, settings)
    driver = TraversalDriver(
        engine_factory=engine_factory,
        monitor=monitor,
        timeout=settings.traversal_timeout,
    )
    return await driver.run(config, request.mode)


__all__ = ["acquire"]
