"""Key-value persistence medium shared by the record store and accounts."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from birthday_agenda.errors import StorageError

LOGGER = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStorage:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileStorage:
    """All keys live in one JSON object on disk, rewritten atomically on each change."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._values = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            with self._path.open("r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, ValueError) as exc:
            LOGGER.error("Could not read storage file %s: %s", self._path, exc)
            raise StorageError(f"Could not read storage file {self._path}") from exc

        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self._path} must contain a JSON object")
        return {str(key): str(value) for key, value in data.items()}

    def _save_atomic(self, values: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                delete=False,
            ) as temp_file:
                json.dump(values, temp_file, indent=2, sort_keys=True)
                temp_file.write("\n")
                temp_name = temp_file.name

            os.replace(temp_name, self._path)
        except OSError as exc:
            LOGGER.error("Could not write storage file %s: %s", self._path, exc)
            raise StorageError(f"Could not write storage file {self._path}") from exc

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        updated = {**self._values, key: value}
        self._save_atomic(updated)
        self._values = updated

    def remove(self, key: str) -> None:
        if key not in self._values:
            return
        updated = {k: v for k, v in self._values.items() if k != key}
        self._save_atomic(updated)
        self._values = updated
