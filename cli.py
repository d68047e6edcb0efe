# cli.py

"""
Точка входа для запуска SiteHarvest из корня репозитория.

Пример запуска:
    python cli.py crawl https://example.com --max-pages 5 --pretty
    python cli.py --config configs/default.yaml serve
"""
from site_harvest.cli import cli

if __name__ == "__main__":
    cli()
