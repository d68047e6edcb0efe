# File: site_harvest/models.py
"""site_harvest.models: запросы на обход и итоговая конфигурация обхода."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["Mode", "AcquisitionRequest", "TraversalConfig"]


class Mode(str, Enum):
    """Режим обработки запроса."""

    CRAWL = "crawl"
    SCRAPE = "scrape"
    RENDER = "render"
    EXTRACT_TEXT = "extract-text"
    MONITOR = "monitor"


class AcquisitionRequest(BaseModel):
    """Входной запрос. Имена полей JSON совпадают с HTTP-API (``url``, ``maxPages`` …)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    target_url: Optional[str] = Field(None, alias="url")
    mode: Mode = Mode.CRAWL
    max_pages: Optional[int] = Field(None, alias="maxPages")
    blacklist: List[str] = Field(default_factory=list, alias="blacklistUrls")
    use_headless: bool = Field(False, alias="useHeadless")
    headless_wait_ms: Optional[int] = Field(None, ge=0, alias="waitTime")
    extra_headers: Dict[str, str] = Field(default_factory=dict, alias="headers")
    extraction_rules: Dict[str, str] = Field(default_factory=dict, alias="selectors")
    schedule_expression: Optional[str] = Field(None, alias="cronExpression")


class TraversalConfig(BaseModel):
    """Проверенная конфигурация одного обхода. Строится только через ``builder.build``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    target_url: str
    mode: Mode
    max_pages: int = Field(..., ge=1)
    blacklist: FrozenSet[str] = frozenset()
    use_headless: bool = False
    headless_wait_ms: Optional[int] = Field(None, ge=0)
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    extraction_rules: Dict[str, str] = Field(default_factory=dict)
    schedule_expression: Optional[str] = None

    # engine tuning, copied from HarvestSettings
    user_agent: str = "SiteHarvestBot/1.0"
    timeout: float = Field(10.0, gt=0)
    rate_limit: float = Field(5.0, gt=0)
    retry_times: int = Field(2, ge=0)
    concurrency: int = Field(4, ge=1)
