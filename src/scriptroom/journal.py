"""Append-only journal of scenario mutations.

Each mutation is recorded as a :data:`Delta` wrapped in a
:class:`JournalEntry` carrying the scenario id, the commit timestamp (Unix
seconds) and a journal-wide insertion sequence. Entries sharing a timestamp
keep their insertion order.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Dict, Iterable, List, Mapping, Union

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineUpdate:
    """A line was rewritten (or created by a wrap split)."""

    type: ClassVar[str] = "line_update"

    line_id: int
    next_line_id: int | None
    content: str

    def to_payload(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "lineId": self.line_id,
            "nextLineId": self.next_line_id,
            "content": self.content,
        }


@dataclass(frozen=True)
class LineDelete:
    """A line was removed from the chain."""

    type: ClassVar[str] = "line_delete"

    line_id: int

    def to_payload(self) -> Dict[str, object]:
        return {"type": self.type, "lineId": self.line_id}


@dataclass(frozen=True)
class CharRename:
    """A character name was replaced across the scenario."""

    type: ClassVar[str] = "char_rename"

    old_name: str
    new_name: str

    def to_payload(self) -> Dict[str, object]:
        return {"type": self.type, "oldName": self.old_name, "newName": self.new_name}


Delta = Union[LineUpdate, LineDelete, CharRename]


def delta_from_payload(payload: Mapping[str, object]) -> Delta:
    """Rebuild a delta from its JSON representation."""

    kind = payload.get("type")
    if kind == LineUpdate.type:
        next_line_id = payload.get("nextLineId")
        content = payload.get("content")
        return LineUpdate(
            line_id=int(payload["lineId"]),  # type: ignore[arg-type]
            next_line_id=None if next_line_id is None else int(next_line_id),  # type: ignore[arg-type]
            content="" if content is None else str(content),
        )
    if kind == LineDelete.type:
        return LineDelete(line_id=int(payload["lineId"]))  # type: ignore[arg-type]
    if kind == CharRename.type:
        return CharRename(
            old_name=str(payload["oldName"]), new_name=str(payload["newName"])
        )
    raise ValueError(f"Unknown delta type: {kind!r}")


@dataclass(frozen=True)
class JournalEntry:
    """A delta together with its position in the journal."""

    sequence: int
    scenario_id: int
    timestamp: int
    delta: Delta

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.timestamp, self.sequence)

    def to_payload(self) -> Dict[str, object]:
        """Return the wire form exposed by the deltas endpoint."""

        payload = self.delta.to_payload()
        payload["timestamp"] = self.timestamp
        return payload

    def to_record(self) -> Dict[str, object]:
        """Return the stored form, which also keeps scenario id and sequence."""

        record = self.to_payload()
        record["scenarioId"] = self.scenario_id
        record["sequence"] = self.sequence
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "JournalEntry":
        return cls(
            sequence=int(record["sequence"]),  # type: ignore[arg-type]
            scenario_id=int(record["scenarioId"]),  # type: ignore[arg-type]
            timestamp=int(record["timestamp"]),  # type: ignore[arg-type]
            delta=delta_from_payload(record),
        )


class DeltaJournal(ABC):
    """Interface describing how journal entries are stored and queried."""

    @abstractmethod
    def _load(self) -> List[JournalEntry]:
        """Return every stored entry in insertion order."""

    @abstractmethod
    def _save(self, entries: List[JournalEntry]) -> None:
        """Replace the stored entries."""

    def append(
        self, scenario_id: int, deltas: Iterable[Delta], *, timestamp: int
    ) -> List[JournalEntry]:
        """Append ``deltas`` for a scenario, all stamped with ``timestamp``."""

        entries = self._load()
        next_sequence = max((entry.sequence for entry in entries), default=0) + 1
        appended: List[JournalEntry] = []
        for offset, delta in enumerate(deltas):
            appended.append(
                JournalEntry(
                    sequence=next_sequence + offset,
                    scenario_id=scenario_id,
                    timestamp=int(timestamp),
                    delta=delta,
                )
            )
        if appended:
            self._save(entries + appended)
            logger.debug(
                "Journalled %d delta(s) for scenario %s at %s",
                len(appended),
                scenario_id,
                timestamp,
            )
        return appended

    def entries(
        self,
        scenario_id: int,
        *,
        since: float | None = None,
        until: float | None = None,
    ) -> List[JournalEntry]:
        """Return a scenario's entries ordered by ``(timestamp, sequence)``.

        Args:
            scenario_id: Scenario whose entries are requested.
            since: When given, only entries strictly newer than this value.
            until: When given, only entries at or before this value.
        """

        selected = [
            entry
            for entry in self._load()
            if entry.scenario_id == scenario_id
            and (since is None or entry.timestamp > since)
            and (until is None or entry.timestamp <= until)
        ]
        selected.sort(key=lambda entry: entry.sort_key)
        return selected

    def delete_scenario(self, scenario_id: int) -> int:
        """Drop every entry of ``scenario_id`` and return how many were removed."""

        entries = self._load()
        remaining = [entry for entry in entries if entry.scenario_id != scenario_id]
        removed = len(entries) - len(remaining)
        if removed:
            self._save(remaining)
        return removed


class InMemoryDeltaJournal(DeltaJournal):
    """Keep journal entries in local process memory."""

    def __init__(self) -> None:
        self._entries: List[JournalEntry] = []

    def _load(self) -> List[JournalEntry]:
        return list(self._entries)

    def _save(self, entries: List[JournalEntry]) -> None:
        self._entries = list(entries)


class FileDeltaJournal(DeltaJournal):
    """Persist the journal as a JSON array on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> List[JournalEntry]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(
                f"Failed to read the delta journal from '{self.path}'."
            ) from exc
        if not isinstance(payload, list):
            raise PersistenceError(f"Delta journal '{self.path}' must contain a list.")
        try:
            return [JournalEntry.from_record(record) for record in payload]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"Delta journal '{self.path}' contains a malformed entry."
            ) from exc

    def _save(self, entries: List[JournalEntry]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(
                    [entry.to_record() for entry in entries],
                    ensure_ascii=False,
                    indent=2,
                ),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write the delta journal to '{self.path}'."
            ) from exc


__all__ = [
    "CharRename",
    "Delta",
    "DeltaJournal",
    "FileDeltaJournal",
    "InMemoryDeltaJournal",
    "JournalEntry",
    "LineDelete",
    "LineUpdate",
    "delta_from_payload",
]
