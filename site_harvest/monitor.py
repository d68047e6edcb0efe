# File: site_harvest/monitor.py
"""site_harvest.monitor: хранилище хешей контента и детектор изменений страниц.

Состояние URL: ``Unseen`` (записи нет) → ``Seen`` (запись есть). Запись
создаётся при первой проверке и обновляется при каждой следующей; удаления нет.
Проверки одного URL сериализуются через отдельный ``asyncio.Lock`` на ключ,
проверки разных URL не блокируют друг друга.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Union

from site_harvest.logger import get_logger

__all__ = [
    "content_digest",
    "ContentHashRecord",
    "ContentHashStore",
    "MonitorOutcome",
    "ChangeMonitor",
]

log = get_logger("monitor")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def content_digest(content: Union[str, bytes]) -> str:
    """SHA-256 (hex) от байтов контента; не зависит от процесса и запуска."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


@dataclass(slots=True)
class ContentHashRecord:
    """Последний наблюдаемый хеш для URL."""

    url: str
    digest: str
    last_checked_at: datetime


class ContentHashStore:
    """Отображение URL → ContentHashRecord, передаваемое явно (не глобальное)."""

    def __init__(self) -> None:
        self._records: Dict[str, ContentHashRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, url: str) -> asyncio.Lock:
        lock = self._locks.get(url)
        if lock is None:
            lock = self._locks[url] = asyncio.Lock()
        return lock

    def get(self, url: str) -> Optional[ContentHashRecord]:
        return self._records.get(url)

    def put(self, record: ContentHashRecord) -> None:
        self._records[record.url] = record

    def __contains__(self, url: object) -> bool:
        return url in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))

    # Persistence between CLI runs ------------------------------------------

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            url: {"digest": rec.digest, "lastCheckedAt": rec.last_checked_at.isoformat()}
            for url, rec in self._records.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ContentHashStore:
        store = cls()
        for url, raw in data.items():
            store.put(
                ContentHashRecord(
                    url=url,
                    digest=str(raw["digest"]),
                    last_checked_at=datetime.fromisoformat(raw["lastCheckedAt"]),
                )
            )
        return store

    @classmethod
    def load(cls, path: Union[str, Path]) -> ContentHashStore:
        """Читает JSON-снимок; отсутствующий файл даёт пустое хранилище."""
        p = Path(path)
        if not p.exists():
            return cls()
        data = json.loads(p.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise TypeError(f"Снимок хранилища должен быть mapping, получено {type(data).__name__}")
        return cls.from_dict(data)

    def dump(self, path: Union[str, Path]) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        return p


@dataclass(frozen=True, slots=True)
class MonitorOutcome:
    """Результат одной проверки; не сохраняется дальше ответа."""

    url: str
    is_first_check: bool
    has_changed: bool
    current_digest: Optional[str]
    previous_digest: Optional[str]
    checked_at: datetime
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "url": self.url,
            "isFirstCheck": self.is_first_check,
            "hasChanged": self.has_changed,
            "currentHash": self.current_digest,
            "previousHash": self.previous_digest,
        }
        if self.error is not None:
            body["error"] = self.error
        return body


class ChangeMonitor:
    """Сравнивает хеш текущего контента с хранилищем и обновляет его."""

    def __init__(self, store: Optional[ContentHashStore] = None, clock: Clock = _utcnow) -> None:
        self.store = store if store is not None else ContentHashStore()
        self._clock = clock

    async def check(self, url: str, content: Union[str, bytes]) -> MonitorOutcome:
        digest = content_digest(content)
        async with self.store.lock_for(url):
            return self._apply(url, digest)

    async def unreachable(self, url: str, error: str) -> MonitorOutcome:
        """Проверка без контента (страница не получена): хранилище не меняется."""
        async with self.store.lock_for(url):
            record = self.store.get(url)
        log.warning("Check skipped for %s: %s", url, error)
        return MonitorOutcome(
            url,
            record is None,
            False,
            None,
            record.digest if record is not None else None,
            self._clock(),
            error,
        )

    def _apply(self, url: str, digest: str) -> MonitorOutcome:
        now = self._clock()
        record = self.store.get(url)

        if record is None:
            self.store.put(ContentHashRecord(url=url, digest=digest, last_checked_at=now))
            log.info("First check for %s (%s)", url, digest[:12])
            return MonitorOutcome(url, True, False, digest, None, now)

        previous = record.digest
        changed = previous != digest
        if changed:
            record.digest = digest
            log.info("Content changed for %s: %s -> %s", url, previous[:12], digest[:12])
        else:
            log.debug("No change for %s", url)
        record.last_checked_at = now
        return MonitorOutcome(url, False, changed, digest, previous, now)
