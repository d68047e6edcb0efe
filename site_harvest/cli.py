# === FILE: site_harvest/cli.py ===
#!/usr/bin/env python3
"""
Точка входа SiteHarvest через командную строку.

Команды:
  serve         Запустить HTTP-сервер (POST /api/crawler/...)
  crawl         Обойти сайт и вывести/сохранить страницы и ссылки
  scrape        Извлечь данные regex-правилами с первой страницы
  render        Отрендерить страницу в headless-браузере
  extract-text  Получить текст страницы без разметки
  monitor       Проверить изменения страницы (хеш контента)
  next-run      Посчитать следующий запуск по cron-выражению
  config        Показать текущие настройки

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Пример:
  site_harvest crawl https://example.com --max-pages 10 --json crawl.json --pretty
"""
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional

import click

from site_harvest import __version__
from site_harvest.acquire import acquire
from site_harvest.config import load_config
from site_harvest.errors import HarvestError
from site_harvest.logger import DEFAULT_FORMAT, init_logging
from site_harvest.models import AcquisitionRequest, Mode
from site_harvest.monitor import ChangeMonitor, ContentHashStore
from site_harvest.report.html_report import render_html
from site_harvest.report.json_report import dumps, render_json
from site_harvest.schedule import next_run_after
from site_harvest.server import run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _pairs(values: Iterable[str], sep: str, what: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for raw in values:
        key, found, value = raw.partition(sep)
        if not found or not key.strip():
            raise click.BadParameter(f"{what} должен иметь вид KEY{sep}VALUE: {raw!r}")
        result[key.strip()] = value.strip()
    return result


def _execute(ctx, request: AcquisitionRequest, monitor: Optional[ChangeMonitor] = None):
    settings = ctx.obj['settings']
    try:
        return asyncio.run(acquire(request, settings, monitor=monitor))
    except HarvestError as e:
        print_error(f'Ошибка: {e}')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')


def _emit(outcome, pretty: bool):
    click.echo(dumps(outcome, pretty=pretty))


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteHarvest, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default=None,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования (по умолчанию из конфига)'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteHarvest CLI."""
    try:
        settings = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    log_target = log_file or settings.log_file
    init_logging(
        level=log_level or settings.log_level,
        log_file=str(log_target) if log_target else None,
        log_format=log_format,
    )
    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default=None, help='Адрес (override host)')
@click.option('--port', type=int, default=None, help='Порт (override port)')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервер."""
    run_server(ctx.obj['settings'], host=host, port=port)


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--max-pages', '-l', 'max_pages', type=int, default=None, help='Бюджет страниц')
@click.option('--blacklist', '-b', multiple=True, help='Regex URL, которые не обходить (можно несколько)')
@click.option('--header', '-H', 'headers', multiple=True, help='Доп. заголовок KEY:VALUE (можно несколько)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с Jinja2-шаблонами (по умолчанию шаблон пакета)'
)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def crawl(ctx, url, max_pages, blacklist, headers, json_output, html_output, template_dir, pretty):
    """Обойти сайт и сгенерировать отчёты."""
    request = AcquisitionRequest(
        url=url,
        mode=Mode.CRAWL,
        maxPages=max_pages,
        blacklistUrls=list(blacklist),
        headers=_pairs(headers, ':', 'Заголовок'),
    )
    outcome = _execute(ctx, request)

    # Без файлов отчётов печатаем в stdout
    if not json_output and not html_output:
        _emit(outcome, pretty)
        return

    if json_output:
        try:
            saved_json = render_json(outcome, json_output)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(outcome, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('scrape', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--rule', '-r', 'rules', multiple=True, help='Правило NAME=REGEX (можно несколько)')
@click.option('--max-pages', '-l', 'max_pages', type=int, default=None, help='Бюджет страниц')
@click.option('--headless', is_flag=True, help='Рендерить через headless-браузер')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def scrape(ctx, url, rules, max_pages, headless, pretty):
    """Извлечь данные с первой страницы по regex-правилам."""
    request = AcquisitionRequest(
        url=url,
        mode=Mode.SCRAPE,
        maxPages=max_pages,
        selectors=_pairs(rules, '=', 'Правило'),
        useHeadless=headless,
    )
    _emit(_execute(ctx, request), pretty)


@cli.command('render', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--wait-time', 'wait_time', type=click.IntRange(min=0), default=None, help='Ожидание JS (мс)')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def render(ctx, url, wait_time, pretty):
    """Отрендерить страницу в headless-браузере."""
    request = AcquisitionRequest(url=url, mode=Mode.RENDER, waitTime=wait_time)
    _emit(_execute(ctx, request), pretty)


@cli.command('extract-text', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--headless', is_flag=True, help='Рендерить через headless-браузер')
@click.option('--raw', is_flag=True, help='Вывести только текст, без JSON')
@click.pass_context
def extract_text(ctx, url, headless, raw):
    """Получить плоский текст страницы."""
    request = AcquisitionRequest(url=url, mode=Mode.EXTRACT_TEXT, useHeadless=headless, maxPages=1)
    outcome = _execute(ctx, request)
    if raw:
        click.echo(outcome.text or '')
    else:
        _emit(outcome, False)


@cli.command('monitor', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--cron', 'cron_expression', default=None, help='Cron-выражение для повторных проверок')
@click.option('--headless', is_flag=True, help='Рендерить через headless-браузер')
@click.option(
    '--state', 'state_path',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='JSON-файл с хешами между запусками'
)
@click.pass_context
def monitor(ctx, url, cron_expression, headless, state_path):
    """Проверить, изменилась ли страница с прошлой проверки."""
    try:
        store = ContentHashStore.load(state_path) if state_path else ContentHashStore()
    except Exception as e:
        print_error(f'Ошибка чтения состояния: {e}')
    request = AcquisitionRequest(
        url=url, mode=Mode.MONITOR, cronExpression=cron_expression, useHeadless=headless
    )
    outcome = _execute(ctx, request, monitor=ChangeMonitor(store))
    if state_path:
        store.dump(state_path)
    _emit(outcome, False)


@cli.command('next-run', context_settings=CONTEXT_SETTINGS)
@click.argument('expression')
@click.option('--after', 'after', default=None, help='ISO-время отсчёта (по умолчанию сейчас, UTC)')
def next_run(expression, after):
    """Показать время следующего запуска по cron-выражению."""
    try:
        now = datetime.fromisoformat(after) if after else datetime.now(timezone.utc)
    except ValueError as e:
        print_error(f'Некорректное время: {e}')
    try:
        click.echo(next_run_after(expression, now).isoformat())
    except HarvestError as e:
        print_error(f'Ошибка: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущие настройки в JSON."""
    click.echo(ctx.obj['settings'].model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
