# site_intel/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteIntel.

Сериализация PipelineResult (сводка, найденные URL, датасет) в файл.
"""
import json
from pathlib import Path

from site_intel.models import PipelineResult


def render_json(result: PipelineResult, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Сохраняет результат прогона в формате JSON по указанному пути.

    :param result: объект PipelineResult
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 (по умолчанию) или компактная запись
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None, default=str)

    return output
