from __future__ import annotations

import pytest

from adapters.sqlite_storage import SQLiteEntityStore
from app import seed_entities
from core.errors import FatalStartupError, PersistenceError


def _definition(external_id: int, name: str = "Example Corp", excluded=None) -> dict:
    return {
        "external_id": external_id,
        "name": name,
        "kill_template": "{killername} killed {victimname}",
        "loss_template": "{victimname} lost a {victimshipname}",
        "excluded_locations": excluded or [],
    }


@pytest.fixture
def store(tmp_path) -> SQLiteEntityStore:
    store = SQLiteEntityStore(str(tmp_path / "killwatch.db"))
    store.init_db()
    return store


def test_new_entities_start_at_zero(store: SQLiteEntityStore) -> None:
    tracked = seed_entities(store, [_definition(98000001, excluded=[10000002])])

    assert len(tracked) == 1
    assert tracked[0].last_kill_id == 0
    assert tracked[0].excluded_locations == frozenset({10000002})


def test_existing_entities_keep_watermarks(store: SQLiteEntityStore) -> None:
    entity = seed_entities(store, [_definition(98000001)])[0]
    entity.last_kill_id = 502
    store.save(entity)

    tracked = seed_entities(store, [_definition(98000001, name="Renamed Corp", excluded=[30000142])])

    assert tracked[0].last_kill_id == 502
    assert tracked[0].name == "Renamed Corp"
    assert tracked[0].excluded_locations == frozenset({30000142})


def test_unconfigured_entities_are_not_tracked(store: SQLiteEntityStore) -> None:
    seed_entities(store, [_definition(1), _definition(2)])

    tracked = seed_entities(store, [_definition(2)])

    assert [entity.external_id for entity in tracked] == [2]


class UnreadableStore:
    def find_by_external_id(self, external_id: int):
        raise PersistenceError("database disk image is malformed")

    def load_all(self):
        raise PersistenceError("database disk image is malformed")


def test_store_read_failure_is_fatal() -> None:
    with pytest.raises(FatalStartupError, match="malformed"):
        seed_entities(UnreadableStore(), [_definition(98000001)])

    with pytest.raises(FatalStartupError):
        seed_entities(UnreadableStore(), [])
