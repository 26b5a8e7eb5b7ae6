# File: site_intel/utils.py
"""site_intel.utils: Утилиты для нормализации URL, проверки принадлежности сайту и разбиения на батчи."""

from __future__ import annotations

import posixpath
from typing import Collection, Iterator, List, Sequence, TypeVar
from urllib.parse import unquote, quote, urljoin, urlparse, urlunparse

from site_intel.logger import logger

__all__: Sequence[str] = (
    "base_url_for",
    "normalize_url",
    "same_site",
    "extract_domain",
    "resolve_url",
    "remove_duplicates",
    "chunked",
)

T = TypeVar("T")

_DEFAULT_PORTS = {"http": "80", "https": "443"}


def base_url_for(domain: str) -> str:
    """Превращает домен (или URL) в корневой URL вида ``https://host/``."""
    raw = domain.strip()
    if "://" not in raw:
        raw = f"https://{raw}"
    parsed = urlparse(raw)
    return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), "/", "", "", ""))


def normalize_url(url: str) -> str:
    """Каноническая форма URL, используемая как ключ дедупликации.

    Схема и хост в нижнем регистре, порт по умолчанию убран, путь схлопнут,
    запрос и фрагмент отброшены. Завершающий слеш убирается у всех путей,
    кроме корня (корень всегда ``/``).
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    host, _, port = netloc.partition(":")
    if port and _DEFAULT_PORTS.get(scheme) == port:
        netloc = host

    path = unquote(parsed.path or "/")
    path = posixpath.normpath(path) if path not in ("", "/") else "/"
    if not path.startswith("/"):
        path = "/" + path
    # normpath keeps a leading '//' intact
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    if path != "/":
        path = path.rstrip("/") or "/"
    path = quote(path, safe="/:@!$&'()*+,;=-._~%")
    return urlunparse((scheme, netloc, path, "", "", ""))


def _bare_host(netloc: str) -> str:
    host = netloc.lower().split(":", 1)[0]
    return host[4:] if host.startswith("www.") else host


def same_site(url: str, base_url: str) -> bool:
    """Проверяет, что URL использует http(s) и принадлежит тому же хосту (``www.`` игнорируется)."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    return _bare_host(parsed.netloc) == _bare_host(urlparse(base_url).netloc)


def extract_domain(url: str) -> str:
    """Возвращает домен из URL без дополнительных проверок."""
    return urlparse(url).netloc


def resolve_url(href: str, page_url: str) -> str:
    """Делает ссылку абсолютной относительно origin страницы (а не её пути)."""
    if href.startswith(("http://", "https://")):
        return href
    parsed = urlparse(page_url)
    origin = urlunparse((parsed.scheme, parsed.netloc, "/", "", "", ""))
    return urljoin(origin, href)


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Удаляет дубликаты из списка URL, сохраняя порядок."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Режет последовательность на куски фиксированного размера (последний может быть короче)."""
    if size < 1:
        raise ValueError("size must be >= 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]
