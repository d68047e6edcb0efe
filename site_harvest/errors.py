"""site_harvest.errors: таксономия ошибок SiteHarvest.

Каждая ошибка несёт HTTP-статус, под которым её отдаёт HTTP-слой, короткое
сообщение (``error``) и, при наличии, исходный текст (``details``).
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "HarvestError",
    "RequestValidationError",
    "ConfigErrorKind",
    "ConfigError",
    "TraversalError",
    "EngineFailure",
    "ScheduleErrorKind",
    "ScheduleError",
    "PageFetchError",
    "ExtractionError",
]


class HarvestError(Exception):
    """Базовая ошибка проекта."""

    status: int = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"{self.message}: {self.details}" if self.details else self.message


class RequestValidationError(HarvestError):
    """Отсутствующие или некорректные поля запроса."""

    status = 400


class ConfigErrorKind(str, Enum):
    MISSING_URL = "MissingUrl"
    INVALID_BLACKLIST = "InvalidBlacklist"
    INVALID_SCHEDULE = "InvalidSchedule"


class ConfigError(HarvestError):
    """Builder отклонил конфигурацию обхода."""

    status = 400

    def __init__(self, kind: ConfigErrorKind, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, details)
        self.kind = kind


class TraversalError(HarvestError):
    """Обход не может вернуть результат."""

    status = 500


class EngineFailure(TraversalError):
    """Внешний движок не запустился или упал во время обхода."""


class ScheduleErrorKind(str, Enum):
    INVALID_EXPRESSION = "InvalidExpression"


class ScheduleError(HarvestError):
    """Некорректное cron-выражение."""

    status = 400

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, details)
        self.kind = ScheduleErrorKind.INVALID_EXPRESSION


class PageFetchError(HarvestError):
    """Ошибка загрузки одной страницы; встраивается в результат страницы."""

    def __init__(self, url: str, details: str) -> None:
        super().__init__(f"Failed to fetch {url}", details)
        self.url = url


class ExtractionError(HarvestError):
    """Ошибка одного правила извлечения; встраивается в ExtractionOutcome."""

    def __init__(self, rule: str, details: str) -> None:
        super().__init__(f"Error extracting: {details}")
        self.rule = rule
