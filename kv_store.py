"""
Key-value persistence for the registry and monthly snapshots.

Values are strings (JSON documents written by the callers). Two backends:
  - MemoryStore: dict-backed, for tests and one-shot runs
  - JsonFileStore: one JSON object on disk, rewritten on every set/remove
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional


class StoreFormatError(ValueError):
    """The store file exists but is not a JSON object."""


class MemoryStore:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"store values must be str, got {type(value).__name__}")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore(MemoryStore):
    """
    File-backed store. The whole mapping is rewritten atomically
    (temp file + os.replace) so a crash never leaves a half-written file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._read())

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreFormatError(f"{self.path}: not valid JSON ({e})") from e
        if not isinstance(obj, dict):
            raise StoreFormatError(f"{self.path}: expected a JSON object at top level")
        return {str(k): v for k, v in obj.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name, dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            super().remove(key)
            self._flush()
