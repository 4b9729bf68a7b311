import json
from datetime import date
from itertools import count

import pytest

from birthday_agenda.errors import NotFoundError, StorageError, ValidationError
from birthday_agenda.models import RECORDS_KEY
from birthday_agenda.record_store import RecordStore, generate_record_id
from birthday_agenda.storage import InMemoryStorage


class FailingStorage(InMemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def set(self, key: str, value: str) -> None:
        if self.fail:
            raise StorageError("quota exceeded")
        super().set(key, value)


def _store(storage: InMemoryStorage | None = None) -> RecordStore:
    ids = count(1)
    return RecordStore(storage or InMemoryStorage(), id_factory=lambda: f"id-{next(ids)}")


def test_create_appends_record_with_new_id() -> None:
    store = _store()
    first = store.create("Alice", "alice@example.com", "pw", "1990-06-15")
    second = store.create("Bob", "bob@example.com", "", date(1985, 1, 2))

    assert len(store.list()) == 2
    assert first.id != second.id
    assert second.birthdate == date(1985, 1, 2)


def test_create_regenerates_colliding_ids() -> None:
    ids = iter(["dup", "dup", "fresh"])
    store = RecordStore(InMemoryStorage(), id_factory=lambda: next(ids))

    store.create("Alice", "alice@example.com", "", "1990-06-15")
    record = store.create("Bob", "bob@example.com", "", "1990-06-16")

    assert record.id == "fresh"


def test_generated_ids_are_timestamp_digits() -> None:
    record_id = generate_record_id()
    assert record_id.isdigit()
    assert len(record_id) > 3


@pytest.mark.parametrize(
    "name,email,birthdate",
    [("", "a@example.com", "1990-01-01"), ("A", "  ", "1990-01-01"), ("A", "a@example.com", "")],
)
def test_create_requires_name_email_and_birthdate(name: str, email: str, birthdate: str) -> None:
    store = _store()
    with pytest.raises(ValidationError):
        store.create(name, email, "", birthdate)
    assert store.list() == []


def test_update_replaces_only_supplied_fields() -> None:
    store = _store()
    record = store.create("Alice", "alice@example.com", "pw", "1990-06-15")

    updated = store.update(record.id, name="Alicia", birthdate="1990-07-01")

    assert updated.id == record.id
    assert updated.name == "Alicia"
    assert updated.email == "alice@example.com"
    assert updated.password == "pw"
    assert updated.birthdate == date(1990, 7, 1)
    assert store.get(record.id) == updated


def test_update_unknown_id_leaves_list_unchanged() -> None:
    store = _store()
    store.create("Alice", "alice@example.com", "", "1990-06-15")
    before = store.list()

    with pytest.raises(NotFoundError):
        store.update("missing", name="Nobody")

    assert store.list() == before


def test_update_rejects_id_change_and_empty_name() -> None:
    store = _store()
    record = store.create("Alice", "alice@example.com", "", "1990-06-15")

    with pytest.raises(ValidationError):
        store.update(record.id, id="other")
    with pytest.raises(ValidationError):
        store.update(record.id, name=" ")
    with pytest.raises(ValidationError):
        store.update(record.id, nickname="Al")

    assert store.get(record.id).name == "Alice"


def test_delete_removes_record() -> None:
    store = _store()
    alice = store.create("Alice", "alice@example.com", "", "1990-06-15")
    store.create("Bob", "bob@example.com", "", "1990-06-16")

    store.delete(alice.id)

    assert alice.id not in [record.id for record in store.list()]
    with pytest.raises(NotFoundError):
        store.delete(alice.id)


def test_list_returns_a_snapshot() -> None:
    store = _store()
    store.create("Alice", "alice@example.com", "", "1990-06-15")

    snapshot = store.list()
    snapshot.clear()

    assert len(store.list()) == 1


def test_reload_reproduces_records_field_for_field() -> None:
    storage = InMemoryStorage()
    store = _store(storage)
    record = store.create("Alice", "alice@example.com", "secret", "1990-06-15")

    reloaded = RecordStore(storage)

    assert reloaded.list() == [record]


def test_persisted_layout_matches_browser_format() -> None:
    storage = InMemoryStorage()
    store = _store(storage)
    store.create("Alice", "alice@example.com", "secret", "1990-06-15")

    rows = json.loads(storage.get(RECORDS_KEY))

    assert rows == [
        {
            "id": "id-1",
            "name": "Alice",
            "email": "alice@example.com",
            "password": "secret",
            "birthdate": "1990-06-15",
        }
    ]


def test_loads_numeric_ids_from_browser_data() -> None:
    storage = InMemoryStorage(
        {
            RECORDS_KEY: json.dumps(
                [{"id": 1718000000123, "name": "Alice", "email": "a@x.com", "password": "", "birthdate": "1990-06-15"}]
            )
        }
    )

    store = RecordStore(storage)

    assert store.get("1718000000123").name == "Alice"


def test_corrupt_payload_raises_storage_error() -> None:
    with pytest.raises(StorageError):
        RecordStore(InMemoryStorage({RECORDS_KEY: "[{"}))
    with pytest.raises(StorageError):
        RecordStore(InMemoryStorage({RECORDS_KEY: json.dumps([{"id": "1", "name": "", "birthdate": "1990-01-01"}])}))


def test_failed_write_leaves_memory_and_storage_consistent() -> None:
    storage = FailingStorage()
    store = _store(storage)
    record = store.create("Alice", "alice@example.com", "", "1990-06-15")
    persisted = storage.get(RECORDS_KEY)

    storage.fail = True
    with pytest.raises(StorageError):
        store.create("Bob", "bob@example.com", "", "1990-06-16")
    with pytest.raises(StorageError):
        store.update(record.id, name="Alicia")
    with pytest.raises(StorageError):
        store.delete(record.id)

    assert store.list() == [record]
    assert storage.get(RECORDS_KEY) == persisted
