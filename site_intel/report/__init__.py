# File: site_intel/report/__init__.py
"""site_intel.report: Генерация отчётов (JSON и HTML) по результату прогона, используется CLI и тестами."""

from .html_report import render_html
from .json_report import render_json

__all__ = ["render_json", "render_html"]
