# === FILE: site_intel/config.py ===
"""
Модуль для загрузки и валидации конфигурации конвейера SiteIntel.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from site_intel.events.types import Phase


class RunMode(str, Enum):
    INITIAL = "initial"
    DYNAMIC = "dynamic"
    INCREMENTAL = "incremental"


class PipelineConfig(BaseModel):
    """Конфигурация конвейера: лимиты, таймауты, пороги и окна дедупликации."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    # discovery
    max_pages: int = Field(200, ge=1, description="Максимальное число URL после discovery.")
    validate_urls: bool = Field(True, description="Проверять доступность кандидатов по HTTP.")
    validation_concurrency: int = Field(10, ge=1, description="Параллельных проверок доступности.")
    pattern_discovery: bool = Field(False, description="Перебор типовых путей (по умолчанию выключен).")
    blog_section_limit: int = Field(3, ge=0, description="Сколько разделов blog/news/insights обходить.")
    sitemap_depth: int = Field(3, ge=1, description="Глубина вложенных sitemap index.")
    respect_robots: bool = Field(True, description="Отбрасывать URL, запрещённые robots.txt.")

    # fetching
    timeout: float = Field(30.0, gt=0, description="Таймаут на одну загрузку (секунд).")
    batch_size: int = Field(5, ge=1, description="Размер батча быстрой загрузки.")
    enhancement_batch_size: int = Field(2, ge=1, description="Размер батча тяжёлой стратегии.")
    batch_delay: float = Field(0.5, ge=0, description="Пауза между батчами (секунд).")
    max_duration: float = Field(600.0, gt=0, description="Общий бюджет времени прогона (секунд).")
    user_agent: str = Field("SiteIntelBot/1.0", min_length=1, description="Заголовок User-Agent.")
    retry_times: int = Field(2, ge=0, description="Повторы только при HTTP 5xx/429.")
    max_failures: Optional[int] = Field(None, ge=0, description="Допустимо ошибок на фазу (None: без лимита).")

    # validation
    min_content_length: int = Field(500, ge=0, description="Минимальная длина текста страницы.")
    acceptance_threshold: float = Field(0.6, ge=0, le=1, description="Порог оценки для принятия страницы.")

    # aggregation caps
    max_colors: int = Field(10, ge=0)
    max_fonts: int = Field(5, ge=0)
    max_gradients: int = Field(5, ge=0)
    max_emails: int = Field(10, ge=0)
    max_phones: int = Field(5, ge=0)
    max_addresses: int = Field(5, ge=0)
    max_team_members: int = Field(20, ge=0)
    max_products: int = Field(50, ge=0)
    max_testimonials: int = Field(20, ge=0)
    max_images: int = Field(100, ge=0)

    # events
    dedup_ttl: float = Field(10.0, gt=0, description="Окно подавления повторных событий (секунд).")
    sweep_interval: float = Field(60.0, gt=0, description="Период очистки таблицы дедупликации.")
    notification_window: float = Field(2.0, gt=0, description="Окно подавления одинаковых уведомлений.")


class RunOptions(BaseModel):
    """Параметры одного запуска (вход конвейера помимо домена)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pages: Optional[int] = Field(None, ge=1, description="Переопределяет config.max_pages.")
    timeout: Optional[float] = Field(None, gt=0, description="Переопределяет config.timeout.")
    mode: RunMode = RunMode.INITIAL
    skip_phases: Optional[List[Phase]] = Field(None, description="Фазы, которые нужно пропустить.")
    stream: bool = Field(False, description="CLI печатает события конвейера в stdout (data: {...}).")
    session_id: Optional[str] = None
    urls: Optional[List[str]] = Field(None, description="Явный список URL; discovery не запускается.")

    @field_validator("skip_phases")
    def _no_terminal_skip(cls, v: Optional[List[Phase]]) -> Optional[List[Phase]]:
        if v and Phase.COMPLETE in v:
            raise ValueError("the terminal 'complete' phase cannot be skipped")
        return v

    def effective_skips(self) -> List[Phase]:
        """Явный skip_phases побеждает; иначе режим initial пропускает проверку и улучшение."""
        if self.skip_phases is not None:
            return list(self.skip_phases)
        if self.mode is RunMode.INITIAL:
            return [Phase.VALIDATION, Phase.ENHANCEMENT]
        return []


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> PipelineConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект PipelineConfig.
    Без пути берёт configs/default.yaml, а если его нет, значения по умолчанию.
    Явно указанный, но отсутствующий файл даёт FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return PipelineConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return PipelineConfig(**data)


__all__ = ["PipelineConfig", "RunOptions", "RunMode", "load_config", "ValidationError"]
