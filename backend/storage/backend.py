"""
Key/value persistence backends.

Values are opaque strings (the store JSON-encodes its records).
Backends raise on I/O failure; SessionStore decides how to survive it.
"""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path


class StorageBackend(ABC):
    """Minimal keyed record storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryBackend(StorageBackend):
    """Process-local storage. Used by tests and ephemeral runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileBackend(StorageBackend):
    """
    One file per key under a directory.

    Writes go to a temp file in the same directory and are moved into
    place with os.replace, so a crash never leaves a half-written record.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.directory,
            prefix=f".{key}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp.write(value)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = tmp.name
        try:
            os.replace(tmp_path, self._path(key))
        except OSError:
            os.unlink(tmp_path)
            raise

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
