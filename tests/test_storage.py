from pathlib import Path

import pytest

from birthday_agenda.errors import StorageError
from birthday_agenda.storage import JsonFileStorage


def test_json_file_storage_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "data" / "agenda.json"
    storage = JsonFileStorage(path)
    storage.set("theme", "dark")
    storage.set("logado", "me@example.com")
    storage.remove("logado")

    reopened = JsonFileStorage(path)

    assert reopened.get("theme") == "dark"
    assert reopened.get("logado") is None


def test_json_file_storage_rejects_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "agenda.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        JsonFileStorage(path)


def test_failed_write_keeps_previous_values(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    storage = JsonFileStorage(blocker / "agenda.json")

    with pytest.raises(StorageError):
        storage.set("theme", "dark")

    assert storage.get("theme") is None
