# setup.py
from setuptools import setup, find_packages

setup(
    name="site_intel",
    version="0.1.0",
    description="Адаптивный многофазный конвейер извлечения данных о компании с сайта SiteIntel",
    packages=find_packages(include=["site_intel", "site_intel.*"]),
    package_data={"site_intel": ["templates/*.j2"]},
    include_package_data=True,
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "lxml>=5.0",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "click>=8.1",
        "Jinja2>=3.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-intel=site_intel.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
