# site_intel/persistence.py
"""
Session checkpoint stores.

A store keeps one mapping of checkpoint name → JSON-compatible value per
session id.  The pipeline writes ``discovered_urls`` after discovery and
``dataset`` after aggregation; incremental runs read ``dataset`` back.
"""
from __future__ import annotations

import abc
import asyncio
import json
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Union

from site_intel.errors import PersistenceError
from site_intel.logger import logger

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class SessionStore(abc.ABC):
    """Upsert-capable checkpoint store keyed by session id."""

    @abc.abstractmethod
    async def upsert(self, session_id: str, key: str, value: Any) -> None:
        """Create or replace checkpoint *key* of *session_id*."""

    @abc.abstractmethod
    async def get(self, session_id: str) -> Dict[str, Any]:
        """All checkpoints of *session_id* (empty dict if unknown)."""


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, session_id: str, key: str, value: Any) -> None:
        async with self._lock:
            self._data.setdefault(session_id, {})[key] = deepcopy(value)

    async def get(self, session_id: str) -> Dict[str, Any]:
        async with self._lock:
            return deepcopy(self._data.get(session_id, {}))


class JsonFileSessionStore(SessionStore):
    """One ``<session_id>.json`` file per session under *root*."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self._lock = asyncio.Lock()

    def _path(self, session_id: str) -> Path:
        if not _SAFE_ID.match(session_id):
            raise PersistenceError(f"invalid session id: {session_id!r}")
        return self.root / f"{session_id}.json"

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"cannot read session file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"session file {path} does not hold an object")
        return data

    async def upsert(self, session_id: str, key: str, value: Any) -> None:
        path = self._path(session_id)
        async with self._lock:
            data = self._read(path)
            data[key] = value
            try:
                self.root.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(".json.tmp")
                tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
                tmp.replace(path)
            except (OSError, TypeError, ValueError) as exc:
                raise PersistenceError(f"cannot write checkpoint '{key}' to {path}: {exc}") from exc
        logger.debug("Checkpoint %s/%s saved to %s", session_id, key, path)

    async def get(self, session_id: str) -> Dict[str, Any]:
        path = self._path(session_id)
        async with self._lock:
            return self._read(path)


__all__ = ["SessionStore", "InMemorySessionStore", "JsonFileSessionStore"]
