# === FILE: site_harvest/config.py ===
"""
Модуль для загрузки и валидации настроек сервиса SiteHarvest.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class HarvestSettings(BaseModel):
    """Настройки сервиса и движка обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field("127.0.0.1", min_length=1, description="Адрес HTTP-сервера.")
    port: int = Field(8080, ge=1, le=65535, description="Порт HTTP-сервера.")
    user_agent: str = Field("SiteHarvestBot/1.0", min_length=1, description="Заголовок User-Agent.")
    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    rate_limit: float = Field(5.0, gt=0, description="Лимит запросов в секунду.")
    retry_times: int = Field(2, ge=0, description="Число повторных попыток при 5xx/429 и сетевых ошибках.")
    concurrency: int = Field(4, ge=1, description="Число параллельных воркеров движка.")
    default_max_pages: int = Field(20, ge=1, description="Бюджет страниц, если он не задан в запросе.")
    default_wait_ms: int = Field(5000, ge=0, description="Ожидание headless-рендера (мс) по умолчанию.")
    traversal_timeout: Optional[float] = Field(
        None, gt=0, description="Таймаут всего обхода (секунд); None - без ограничения."
    )
    log_level: str = Field("INFO", description="Уровень логирования.")
    log_file: Optional[str] = Field(None, description="Файл для логов (stderr, если не указан).")

    @field_validator("log_level", mode="before")
    def _upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


DEFAULT_CFG = Path("configs/default.yaml")
ENV_PREFIX = "SITE_HARVEST_"

# suffix -> (название формата, функция разбора, ошибка разбора)
_PARSERS: Dict[str, Tuple[str, Callable[[str], Any], Type[Exception]]] = {
    ".yaml": ("YAML", yaml.safe_load, yaml.YAMLError),
    ".yml": ("YAML", yaml.safe_load, yaml.YAMLError),
    ".json": ("JSON", json.loads, json.JSONDecodeError),
}


def _read_mapping(path: Path) -> dict[str, Any]:
    """Разбирает файл по расширению; верхний уровень обязан быть mapping."""
    try:
        kind, parse, parse_error = _PARSERS[path.suffix.lower()]
    except KeyError:
        raise ValueError(f"Неподдерживаемый формат конфига: {path.suffix}") from None
    try:
        data = parse(path.read_text(encoding="utf-8")) or {}
    except parse_error as exc:
        raise ValueError(f"Неправильный {kind} в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень {kind} должен быть mapping, получено {type(data).__name__}")
    return data


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """
    Значения из переменных окружения SITE_HARVEST_<ПОЛЕ> (например,
    SITE_HARVEST_PORT=9000). Преобразование типов выполняет pydantic.
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, str] = {}
    for name in HarvestSettings.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def load_config(
    path: Union[str, Path, None],
    environ: Optional[Mapping[str, str]] = None,
) -> HarvestSettings:
    """
    Читает YAML или JSON и возвращает проверенный объект HarvestSettings.

    Без явного пути читает configs/default.yaml, а при его отсутствии
    берёт значения по умолчанию. Явно указанный, но отсутствующий файл -
    FileNotFoundError. Переменные окружения SITE_HARVEST_* перекрывают файл.
    """
    data: dict[str, Any] = {}
    if path is None:
        if DEFAULT_CFG.exists():
            data = _read_mapping(DEFAULT_CFG)
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))
        data = _read_mapping(path_obj)

    data.update(env_overrides(environ))
    return HarvestSettings(**data)


__all__ = ["HarvestSettings", "load_config", "env_overrides", "DEFAULT_CFG", "ENV_PREFIX", "ValidationError"]
