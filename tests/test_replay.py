"""Tests for rebuilding content from the delta journal."""

from __future__ import annotations

from scriptroom import CharRename, JournalEntry, Line, LineDelete, LineUpdate, replay
from scriptroom.segmentation import count_words


def _entry(sequence: int, delta, timestamp: int = 100) -> JournalEntry:
    return JournalEntry(sequence=sequence, scenario_id=1, timestamp=timestamp, delta=delta)


def test_empty_journal_restores_seed_line() -> None:
    assert replay([]) == [Line(1, None, "")]


def test_live_update_deltas_rebuild_the_chain() -> None:
    entries = [
        _entry(1, LineUpdate(1, 2, "first")),
        _entry(2, LineUpdate(2, 3, "second")),
        _entry(3, LineUpdate(3, None, "third")),
    ]

    assert replay(entries) == [
        Line(1, 2, "first"),
        Line(2, 3, "second"),
        Line(3, None, "third"),
    ]


def test_long_content_is_rechunked_on_replay() -> None:
    text = " ".join(["word"] * 45)

    restored = replay([_entry(1, LineUpdate(1, None, text))])

    assert [count_words(line.text) for line in restored] == [20, 20, 5]
    assert [line.line_id for line in restored] == [1, 2, 3]
    assert restored[-1].next_line_id is None


def test_new_line_chunks_avoid_colliding_with_its_own_id() -> None:
    text = " ".join(["word"] * 30)

    restored = replay([_entry(1, LineUpdate(3, None, text))])

    ids = [line.line_id for line in restored]
    assert len(ids) == len(set(ids)) == 3
    assert {1, 3, 4} == set(ids)


def test_entries_apply_in_timestamp_then_sequence_order() -> None:
    entries = [
        _entry(3, LineUpdate(1, None, "newest"), timestamp=200),
        _entry(2, LineUpdate(1, None, "second"), timestamp=100),
        _entry(1, LineUpdate(1, None, "first"), timestamp=100),
    ]

    assert replay(entries) == [Line(1, None, "newest")]


def test_char_rename_uses_replay_rules() -> None:
    entries = [
        _entry(1, LineUpdate(1, 2, "ALICE")),
        _entry(2, LineUpdate(2, None, "Alice says hi to MALICE")),
        _entry(3, CharRename("ALICE", "ALICIA")),
    ]

    assert [line.text for line in replay(entries)] == [
        "ALICIA",
        "ALICIA says hi to MALICE",
    ]


def test_line_delete_is_not_applied_on_replay() -> None:
    entries = [
        _entry(1, LineUpdate(1, 2, "keep")),
        _entry(2, LineUpdate(2, None, "deleted later")),
        _entry(3, LineDelete(2)),
    ]

    assert [line.text for line in replay(entries)] == ["keep", "deleted later"]
