"""Tests for the delta journal."""

from __future__ import annotations

from pathlib import Path

import pytest

from scriptroom import (
    CharRename,
    DeltaJournal,
    FileDeltaJournal,
    InMemoryDeltaJournal,
    LineDelete,
    LineUpdate,
)
from scriptroom.exceptions import PersistenceError
from scriptroom.journal import JournalEntry, delta_from_payload


@pytest.fixture(params=["memory", "file"])
def journal(request: pytest.FixtureRequest, tmp_path: Path) -> DeltaJournal:
    if request.param == "memory":
        return InMemoryDeltaJournal()
    return FileDeltaJournal(tmp_path / "deltas.json")


def test_append_assigns_increasing_sequence(journal: DeltaJournal) -> None:
    first = journal.append(1, [LineUpdate(1, None, "a"), LineUpdate(2, None, "b")], timestamp=10)
    second = journal.append(1, [LineDelete(2)], timestamp=10)

    assert [entry.sequence for entry in first + second] == [1, 2, 3]
    assert all(entry.timestamp == 10 for entry in first + second)


def test_entries_sorted_by_timestamp_then_insertion(journal: DeltaJournal) -> None:
    journal.append(1, [LineUpdate(1, None, "late")], timestamp=20)
    journal.append(1, [LineUpdate(1, None, "early-a")], timestamp=10)
    journal.append(1, [LineUpdate(1, None, "early-b")], timestamp=10)

    contents = [entry.delta.content for entry in journal.entries(1)]  # type: ignore[union-attr]

    assert contents == ["early-a", "early-b", "late"]


def test_since_is_strict_and_until_is_inclusive(journal: DeltaJournal) -> None:
    for timestamp in (5, 10, 15):
        journal.append(1, [LineDelete(timestamp)], timestamp=timestamp)

    assert [entry.timestamp for entry in journal.entries(1, since=10)] == [15]
    assert [entry.timestamp for entry in journal.entries(1, until=10)] == [5, 10]


def test_entries_are_scoped_to_scenario(journal: DeltaJournal) -> None:
    journal.append(1, [LineDelete(1)], timestamp=1)
    journal.append(2, [CharRename("ALICE", "ALICIA")], timestamp=1)

    assert [entry.scenario_id for entry in journal.entries(2)] == [2]


def test_delete_scenario_removes_only_its_entries(journal: DeltaJournal) -> None:
    journal.append(1, [LineDelete(1), LineDelete(2)], timestamp=1)
    journal.append(2, [LineDelete(1)], timestamp=1)

    assert journal.delete_scenario(1) == 2
    assert journal.entries(1) == []
    assert len(journal.entries(2)) == 1


def test_wire_payloads_are_tagged_by_type() -> None:
    update = JournalEntry(1, 1, 100, LineUpdate(2, 3, "text"))
    delete = JournalEntry(2, 1, 100, LineDelete(2))
    rename = JournalEntry(3, 1, 100, CharRename("ALICE", "ALICIA"))

    assert update.to_payload() == {
        "type": "line_update",
        "lineId": 2,
        "nextLineId": 3,
        "content": "text",
        "timestamp": 100,
    }
    assert delete.to_payload() == {"type": "line_delete", "lineId": 2, "timestamp": 100}
    assert rename.to_payload() == {
        "type": "char_rename",
        "oldName": "ALICE",
        "newName": "ALICIA",
        "timestamp": 100,
    }


def test_unknown_delta_type_is_rejected() -> None:
    with pytest.raises(ValueError):
        delta_from_payload({"type": "scene_split"})


def test_file_journal_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "deltas.json"
    FileDeltaJournal(path).append(4, [CharRename("BOB", "ROB")], timestamp=42)

    entries = FileDeltaJournal(path).entries(4)

    assert entries == [JournalEntry(1, 4, 42, CharRename("BOB", "ROB"))]


def test_file_journal_reports_malformed_entries(tmp_path: Path) -> None:
    path = tmp_path / "deltas.json"
    path.write_text('[{"type": "line_update"}]', encoding="utf-8")

    with pytest.raises(PersistenceError):
        FileDeltaJournal(path).entries(1)
