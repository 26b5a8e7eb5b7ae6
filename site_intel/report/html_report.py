# File: site_intel/report/html_report.py
"""site_intel.report.html_report: Генерация HTML-отчёта с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_intel.models import PipelineResult

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def render_html(
    result: PipelineResult,
    output_path: Union[Path, str],
    template_dir: Optional[Union[Path, str]] = None,
) -> Path:
    """Рендерит HTML-отчёт из шаблона и сохраняет его по указанному пути.

    Args:
        result: объект PipelineResult.
        output_path: путь к итоговому HTML-файлу.
        template_dir: директория с шаблоном ``report.html.j2``
            (по умолчанию встроенный шаблон пакета).

    Returns:
        Path до сохранённого HTML-файла.
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    dataset = result.dataset
    context: dict[str, Any] = {
        "correlation_id": result.correlation_id,
        "summary": result.summary.to_dict(),
        "discovered": result.discovered,
        "dataset": dataset,
        "brand": dataset.brand_assets,
        "contact": dataset.contact_info,
        "metadata": dataset.metadata,
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
