"""Tests for the line and character lock tables."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from scriptroom import FileLockTable, InMemoryLockTable, LockConflictError, LockTable
from scriptroom.exceptions import PersistenceError


@pytest.fixture(params=["memory", "file"])
def table(request: pytest.FixtureRequest, tmp_path: Path) -> LockTable:
    if request.param == "memory":
        return InMemoryLockTable()
    return FileLockTable(tmp_path / "locks" / "locks.json")


def test_acquire_and_report_holder(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)

    assert table.holder_of(1, 1) == 7
    assert table.holder_of(1, 2) is None


def test_relock_by_holder_is_idempotent(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)
    table.acquire_line(1, 1, 7)

    assert len(table.line_locks()) == 1


def test_other_user_is_rejected(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)

    with pytest.raises(LockConflictError) as excinfo:
        table.acquire_line(1, 1, 8)

    assert excinfo.value.holder_id == 7
    assert excinfo.value.status_code == 409


def test_user_holds_one_line_lock_across_scenarios(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)
    table.acquire_line(2, 3, 7)

    assert table.holder_of(1, 1) is None
    assert table.holder_of(2, 3) == 7

    table.acquire_line(1, 1, 8)
    assert table.holder_of(1, 1) == 8


def test_release_all_for_user_counts_released_locks(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)
    table.acquire_line(1, 2, 8)

    assert table.release_all_for_user(7) == 1
    assert table.release_all_for_user(7) == 0
    assert table.holder_of(1, 2) == 8


def test_release_line_drops_only_that_line(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)
    table.acquire_line(1, 2, 8)

    table.release_line(1, 1)

    assert table.holder_of(1, 1) is None
    assert table.holder_of(1, 2) == 8


def test_character_locks_are_scoped_per_scenario(table: LockTable) -> None:
    table.acquire_character(1, "ALICE", 7)
    table.acquire_character(1, "ALICE", 7)
    table.acquire_character(2, "ALICE", 8)

    with pytest.raises(LockConflictError):
        table.acquire_character(1, "ALICE", 8)

    assert table.character_holder(1, "ALICE") == 7
    assert table.character_holder(2, "ALICE") == 8


def test_character_locks_do_not_affect_line_locks(table: LockTable) -> None:
    table.acquire_character(1, "BOB", 7)
    table.acquire_line(1, 1, 7)
    table.acquire_character(1, "ALICE", 7)

    assert table.holder_of(1, 1) == 7
    assert table.character_holder(1, "BOB") == 7
    assert table.release_all_for_user(7) == 1
    assert table.character_holder(1, "BOB") == 7


def test_release_character_removes_single_entry(table: LockTable) -> None:
    table.acquire_character(1, "ALICE", 7)
    table.acquire_character(1, "BOB", 7)

    table.release_character(1, "ALICE")

    assert table.character_holder(1, "ALICE") is None
    assert table.character_holder(1, "BOB") == 7


def test_release_scenario_drops_every_lock_for_it(table: LockTable) -> None:
    table.acquire_line(1, 1, 7)
    table.acquire_line(2, 1, 8)
    table.acquire_character(1, "ALICE", 9)

    table.release_scenario(1)

    assert table.line_locks(1) == []
    assert table.holder_of(2, 1) == 8
    assert table.character_holder(1, "ALICE") is None


def test_file_lock_table_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "locks.json"
    FileLockTable(path).acquire_line(3, 4, 5)

    reopened = FileLockTable(path)

    assert reopened.holder_of(3, 4) == 5
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["lines"] == [{"scenarioId": 3, "lineId": 4, "userId": 5}]


def test_file_lock_table_reports_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "locks.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        FileLockTable(path).holder_of(1, 1)
