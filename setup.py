# setup.py
from setuptools import setup, find_packages

setup(
    name="site_harvest",
    version="0.2.0",
    description="Асинхронный сервис обхода, скрапинга и мониторинга сайтов SiteHarvest",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"site_harvest": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "jinja2>=3.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "headless": ["playwright>=1.40"],
        "test": ["pytest>=7.4", "pytest-asyncio>=0.23"],
    },
    entry_points={
        "console_scripts": [
            "site_harvest=site_harvest.cli:cli",
        ]
    },
    python_requires=">=3.11",
)
