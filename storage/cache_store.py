# storage/cache_store.py
"""Project-scoped stores for completed review sections and other artifacts.

The pipeline only reads and writes single keys through ``get``/``set``.
A written value must be visible to the next ``get`` in the same process.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryCacheStore:
    """Dictionary-backed store, useful for tests and one-off runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileCacheStore(InMemoryCacheStore):
    """Store persisted to a JSON file, rewritten atomically on every change."""

    def __init__(self, path: str) -> None:
        super().__init__(self._load(path))
        self.path = path

    @staticmethod
    def _load(path: str) -> dict[str, str]:
        if not os.path.exists(path):
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.error(
                "Cache file is not valid JSON. Starting with an empty cache.",
                path=path,
                exc_info=True,
            )
            return {}
        if not isinstance(data, dict):
            logger.warning("Cache file does not hold an object. Ignoring.", path=path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _persist(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix=".cache-", suffix=".json.tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._persist()

    def delete(self, key: str) -> bool:
        removed = super().delete(key)
        if removed:
            self._persist()
        return removed

    def clear(self) -> None:
        super().clear()
        self._persist()
        logger.info("Cache cleared.", path=self.path)
