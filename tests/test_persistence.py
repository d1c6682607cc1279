import json
from pathlib import Path

import pytest

from scriptroom import (
    FileScenarioStore,
    InMemoryScenarioStore,
    Line,
    NotFoundError,
    PersistenceError,
)
from scriptroom.persistence import ScenarioStore


@pytest.fixture(params=["memory", "file"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> ScenarioStore:
    if request.param == "memory":
        return InMemoryScenarioStore()
    return FileScenarioStore(tmp_path)


def test_create_seeds_single_empty_line(store: ScenarioStore) -> None:
    record = store.create(title="Pilot", status="In progress", timestamp=100)

    assert record.id == 1
    assert store.get(record.id).lines == [Line(1, None, "")]
    assert store.get(record.id).last_modified == 100


def test_ids_follow_highest_existing_scenario(store: ScenarioStore) -> None:
    first = store.create(title="A", status="In progress", timestamp=1)
    second = store.create(title="B", status="In progress", timestamp=1)
    store.delete(second.id)

    third = store.create(title="C", status="In progress", timestamp=1)

    assert third.id == 2
    assert [record.id for record in store.list()] == [first.id, third.id]


def test_returned_records_are_detached(store: ScenarioStore) -> None:
    record = store.create(title="Pilot", status="In progress", timestamp=1)

    loaded = store.get(record.id)
    loaded.lines.append(Line(2, None, "stray"))

    assert store.lines(record.id) == [Line(1, None, "")]


def test_line_operations(store: ScenarioStore) -> None:
    record = store.create(title="Pilot", status="In progress", timestamp=1)

    store.insert_lines(record.id, [Line(2, None, "two")])
    store.save_line(record.id, Line(1, 2, "one"))
    store.delete_line(record.id, 99)

    assert store.lines(record.id) == [Line(1, 2, "one"), Line(2, None, "two")]

    store.delete_line(record.id, 2)
    assert store.lines(record.id) == [Line(1, 2, "one")]


def test_update_metadata(store: ScenarioStore) -> None:
    record = store.create(title="Pilot", status="In progress", timestamp=1)

    updated = store.update_metadata(record.id, status="Final version", last_modified=9)

    assert (updated.status, updated.last_modified) == ("Final version", 9)
    assert store.get(record.id).status == "Final version"


def test_missing_scenario_raises_not_found(store: ScenarioStore) -> None:
    with pytest.raises(NotFoundError):
        store.get(5)
    with pytest.raises(KeyError):
        store.delete(5)
    assert not store.exists(5)


def test_checkpoints_are_scoped_and_removed_with_scenario(store: ScenarioStore) -> None:
    first = store.create(title="A", status="In progress", timestamp=1)
    second = store.create(title="B", status="In progress", timestamp=1)

    store.add_checkpoint(first.id, 10)
    other = store.add_checkpoint(second.id, 11)
    store.add_checkpoint(first.id, 12)

    assert [(item.id, item.timestamp) for item in store.checkpoints(first.id)] == [
        (1, 10),
        (3, 12),
    ]
    assert store.get_checkpoint(second.id, other.id).timestamp == 11
    with pytest.raises(NotFoundError):
        store.get_checkpoint(first.id, other.id)

    store.delete(first.id)
    assert [item.id for item in store.checkpoints(second.id)] == [other.id]


def test_file_store_layout(tmp_path: Path) -> None:
    store = FileScenarioStore(tmp_path)
    record = store.create(title="Pilot", status="In progress", timestamp=7)
    store.add_checkpoint(record.id, 8)

    payload = json.loads(
        (tmp_path / "scenarios" / "scenario-1.json").read_text(encoding="utf-8")
    )
    assert payload == {
        "id": 1,
        "title": "Pilot",
        "status": "In progress",
        "lastModified": 7,
        "content": [{"lineId": 1, "nextLineId": None, "text": ""}],
    }
    checkpoints = json.loads((tmp_path / "checkpoints.json").read_text(encoding="utf-8"))
    assert checkpoints == [{"id": 1, "scenarioId": 1, "timestamp": 8}]

    reopened = FileScenarioStore(tmp_path)
    assert reopened.get(record.id).title == "Pilot"


def test_file_store_ignores_unrelated_files(tmp_path: Path) -> None:
    store = FileScenarioStore(tmp_path)
    store.create(title="Pilot", status="In progress", timestamp=1)
    (tmp_path / "scenarios" / "notes.txt").write_text("hello", encoding="utf-8")

    assert [record.id for record in store.list()] == [1]


def test_file_store_rejects_malformed_scenario(tmp_path: Path) -> None:
    store = FileScenarioStore(tmp_path)
    (tmp_path / "scenarios" / "scenario-3.json").write_text("[]", encoding="utf-8")

    with pytest.raises(PersistenceError):
        store.get(3)


def test_file_store_rejects_invalid_json(tmp_path: Path) -> None:
    store = FileScenarioStore(tmp_path)
    (tmp_path / "checkpoints.json").write_text("{oops", encoding="utf-8")

    with pytest.raises(PersistenceError):
        store.add_checkpoint(store.create(title="A", status="x", timestamp=1).id, 2)
