"""site_harvest.text: превращение HTML страницы в плоский текст (режим extract-text)."""

from __future__ import annotations

import re
from typing import Dict, Final

__all__ = ["normalize_text"]

_SCRIPT_RE: Final = re.compile(r"<script\b.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_RE: Final = re.compile(r"<style\b.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE: Final = re.compile(r"<[^>]*>")
_WS_RE: Final = re.compile(r"\s+")

# Только эти пять сущностей (плюс &nbsp;). Остальные остаются как есть.
_ENTITIES: Final[Dict[str, str]] = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}
_ENTITY_RE: Final = re.compile("|".join(re.escape(e) for e in _ENTITIES))


def _pass(html: str) -> str:
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(0)], text)
    return _WS_RE.sub(" ", text).strip()


def normalize_text(html: str) -> str:
    """Удаляет script/style и теги, декодирует базовые сущности, схлопывает пробелы.

    Проход повторяется, пока текст не перестанет меняться: декодированные
    ``&lt;b&gt;`` иначе превратились бы в тег при повторной нормализации.
    Каждый проход только укорачивает строку, поэтому цикл конечен.
    """
    current = _pass(html or "")
    while True:
        following = _pass(current)
        if following == current:
            return current
        current = following
