# site_harvest/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteHarvest.

Сериализация результата обхода (TraversalOutcome или готового dict) в файл.
"""
import json
from pathlib import Path
from typing import Any, Dict, Union

from site_harvest.driver import TraversalOutcome


def as_payload(result: Union[TraversalOutcome, Dict[str, Any]]) -> Dict[str, Any]:
    """Приводит результат к JSON-совместимому dict."""
    if isinstance(result, TraversalOutcome):
        return result.to_dict()
    return dict(result)


def dumps(result: Union[TraversalOutcome, Dict[str, Any]], *, pretty: bool = False) -> str:
    return json.dumps(as_payload(result), ensure_ascii=False, indent=2 if pretty else None)


def render_json(result: Union[TraversalOutcome, Dict[str, Any]], output_path: Path | str) -> Path:
    """
    Сохраняет результат в формате JSON по указанному пути.

    :param result: TraversalOutcome или dict
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_harvest.report.json_report import render_json
    report_path = render_json(outcome, 'reports/crawl.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(as_payload(result), f, ensure_ascii=False, indent=2)

    return output
