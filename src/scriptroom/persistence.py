"""Scenario persistence for the collaborative editor.

Stores keep scenario metadata, their line records and checkpoint markers.
Two backends are provided: :class:`InMemoryScenarioStore` for tests and
single-process use, and :class:`FileScenarioStore` which writes one JSON
document per scenario plus a shared checkpoint list.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

from .chain import Line
from .exceptions import NotFoundError, PersistenceError

DEFAULT_TITLE = "Untitled scenario"
DEFAULT_STATUS = "In progress"
SCENARIO_STATUSES = (
    "First draft",
    "Second draft",
    "Outline complete",
    DEFAULT_STATUS,
    "Final version",
)

_SCENARIO_FILE_PATTERN = re.compile(r"^scenario-(\d+)\.json$")


@dataclass
class ScenarioRecord:
    """A scenario with its unordered set of lines."""

    id: int
    title: str = DEFAULT_TITLE
    status: str = DEFAULT_STATUS
    last_modified: int = 0
    lines: List[Line] = field(default_factory=list)

    def copy(self) -> "ScenarioRecord":
        return replace(self, lines=list(self.lines))

    def to_payload(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "lastModified": self.last_modified,
            "content": [line.to_payload() for line in self.lines],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "ScenarioRecord":
        content = payload.get("content", [])
        if not isinstance(content, list):
            raise ValueError("Scenario payload 'content' must be a list")
        return cls(
            id=int(payload["id"]),  # type: ignore[arg-type]
            title=str(payload.get("title") or DEFAULT_TITLE),
            status=str(payload.get("status") or DEFAULT_STATUS),
            last_modified=int(payload.get("lastModified") or 0),  # type: ignore[arg-type]
            lines=[Line.from_payload(entry) for entry in content],
        )


@dataclass(frozen=True)
class Checkpoint:
    """A timestamp marker bounding a journal replay."""

    id: int
    scenario_id: int
    timestamp: int

    def to_payload(self) -> Dict[str, object]:
        return {"id": self.id, "timestamp": self.timestamp}


class ScenarioStore(ABC):
    """Interface describing how scenarios, lines and checkpoints are stored."""

    @abstractmethod
    def _scenario_ids(self) -> List[int]:
        """Return the ids of every stored scenario."""

    @abstractmethod
    def _read(self, scenario_id: int) -> ScenarioRecord | None:
        """Return the stored scenario or ``None``."""

    @abstractmethod
    def _write(self, record: ScenarioRecord) -> None:
        """Persist ``record``, replacing any previous version."""

    @abstractmethod
    def _remove(self, scenario_id: int) -> None:
        """Remove the stored scenario if present."""

    @abstractmethod
    def _read_checkpoints(self) -> List[Checkpoint]:
        """Return every checkpoint of every scenario."""

    @abstractmethod
    def _write_checkpoints(self, checkpoints: List[Checkpoint]) -> None:
        """Replace the stored checkpoints."""

    def create(self, *, title: str, status: str, timestamp: int) -> ScenarioRecord:
        """Create a scenario holding a single empty line."""

        next_id = max(self._scenario_ids(), default=0) + 1
        record = ScenarioRecord(
            id=next_id,
            title=title,
            status=status,
            last_modified=int(timestamp),
            lines=[Line(line_id=1, next_line_id=None, text="")],
        )
        self._write(record)
        return record.copy()

    def list(self) -> List[ScenarioRecord]:
        """Return all scenarios ordered by id."""

        records: List[ScenarioRecord] = []
        for scenario_id in sorted(self._scenario_ids()):
            record = self._read(scenario_id)
            if record is not None:
                records.append(record)
        return records

    def exists(self, scenario_id: int) -> bool:
        return self._read(scenario_id) is not None

    def get(self, scenario_id: int) -> ScenarioRecord:
        """Return the scenario with ``scenario_id``.

        Raises:
            NotFoundError: If the scenario does not exist.
        """

        record = self._read(scenario_id)
        if record is None:
            raise NotFoundError("Scenario does not exist!")
        return record

    def delete(self, scenario_id: int) -> None:
        """Remove a scenario together with its checkpoints."""

        self.get(scenario_id)
        self._remove(scenario_id)
        remaining = [
            checkpoint
            for checkpoint in self._read_checkpoints()
            if checkpoint.scenario_id != scenario_id
        ]
        self._write_checkpoints(remaining)

    def update_metadata(
        self,
        scenario_id: int,
        *,
        status: str | None = None,
        last_modified: int | None = None,
    ) -> ScenarioRecord:
        """Update the status and/or modification time of a scenario."""

        record = self.get(scenario_id)
        if status is not None:
            record.status = status
        if last_modified is not None:
            record.last_modified = int(last_modified)
        self._write(record)
        return record

    def lines(self, scenario_id: int) -> List[Line]:
        """Return the scenario's lines in storage order."""

        return list(self.get(scenario_id).lines)

    def delete_line(self, scenario_id: int, line_id: int) -> None:
        record = self.get(scenario_id)
        record.lines = [line for line in record.lines if line.line_id != line_id]
        self._write(record)

    def insert_lines(self, scenario_id: int, lines: Iterable[Line]) -> None:
        record = self.get(scenario_id)
        record.lines.extend(lines)
        self._write(record)

    def save_line(self, scenario_id: int, line: Line) -> None:
        """Replace the stored line sharing ``line.line_id``."""

        record = self.get(scenario_id)
        record.lines = [
            line if existing.line_id == line.line_id else existing
            for existing in record.lines
        ]
        self._write(record)

    def add_checkpoint(self, scenario_id: int, timestamp: int) -> Checkpoint:
        self.get(scenario_id)
        checkpoints = self._read_checkpoints()
        checkpoint = Checkpoint(
            id=max((item.id for item in checkpoints), default=0) + 1,
            scenario_id=scenario_id,
            timestamp=int(timestamp),
        )
        checkpoints.append(checkpoint)
        self._write_checkpoints(checkpoints)
        return checkpoint

    def checkpoints(self, scenario_id: int) -> List[Checkpoint]:
        """Return a scenario's checkpoints ordered by id."""

        self.get(scenario_id)
        return sorted(
            (item for item in self._read_checkpoints() if item.scenario_id == scenario_id),
            key=lambda item: item.id,
        )

    def get_checkpoint(self, scenario_id: int, checkpoint_id: int) -> Checkpoint:
        """Return a checkpoint belonging to ``scenario_id``.

        Raises:
            NotFoundError: If the scenario or the checkpoint does not exist, or
                the checkpoint belongs to another scenario.
        """

        for checkpoint in self.checkpoints(scenario_id):
            if checkpoint.id == checkpoint_id:
                return checkpoint
        raise NotFoundError("Checkpoint does not exist!")


class InMemoryScenarioStore(ScenarioStore):
    """Keep scenarios in local process memory."""

    def __init__(self) -> None:
        self._scenarios: Dict[int, ScenarioRecord] = {}
        self._checkpoints: List[Checkpoint] = []

    def _scenario_ids(self) -> List[int]:
        return list(self._scenarios)

    def _read(self, scenario_id: int) -> ScenarioRecord | None:
        record = self._scenarios.get(scenario_id)
        return record.copy() if record is not None else None

    def _write(self, record: ScenarioRecord) -> None:
        self._scenarios[record.id] = record.copy()

    def _remove(self, scenario_id: int) -> None:
        self._scenarios.pop(scenario_id, None)

    def _read_checkpoints(self) -> List[Checkpoint]:
        return list(self._checkpoints)

    def _write_checkpoints(self, checkpoints: List[Checkpoint]) -> None:
        self._checkpoints = list(checkpoints)


class FileScenarioStore(ScenarioStore):
    """Persist scenarios as ``scenario-<id>.json`` files on disk."""

    _CHECKPOINTS_FILENAME = "checkpoints.json"

    def __init__(self, root: Path) -> None:
        self.root = root
        self.scenario_dir = root / "scenarios"
        try:
            self.scenario_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to prepare scenario storage at '{root}'."
            ) from exc

    def _scenario_path(self, scenario_id: int) -> Path:
        return self.scenario_dir / f"scenario-{scenario_id}.json"

    def _scenario_ids(self) -> List[int]:
        ids: List[int] = []
        for path in self.scenario_dir.glob("scenario-*.json"):
            match = _SCENARIO_FILE_PATTERN.match(path.name)
            if match and path.is_file():
                ids.append(int(match.group(1)))
        return ids

    def _read(self, scenario_id: int) -> ScenarioRecord | None:
        path = self._scenario_path(scenario_id)
        if not path.exists():
            return None
        payload = _read_json(path)
        if not isinstance(payload, dict):
            raise PersistenceError(f"Scenario file '{path}' must contain an object.")
        try:
            return ScenarioRecord.from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"Scenario file '{path}' contains malformed data."
            ) from exc

    def _write(self, record: ScenarioRecord) -> None:
        _write_json(self._scenario_path(record.id), record.to_payload())

    def _remove(self, scenario_id: int) -> None:
        path = self._scenario_path(scenario_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to delete scenario file '{path}'.") from exc

    def _read_checkpoints(self) -> List[Checkpoint]:
        path = self.root / self._CHECKPOINTS_FILENAME
        if not path.exists():
            return []
        payload = _read_json(path)
        if not isinstance(payload, list):
            raise PersistenceError(f"Checkpoint file '{path}' must contain a list.")
        try:
            return [
                Checkpoint(
                    id=int(entry["id"]),
                    scenario_id=int(entry["scenarioId"]),
                    timestamp=int(entry["timestamp"]),
                )
                for entry in payload
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"Checkpoint file '{path}' contains a malformed entry."
            ) from exc

    def _write_checkpoints(self, checkpoints: List[Checkpoint]) -> None:
        _write_json(
            self.root / self._CHECKPOINTS_FILENAME,
            [
                {
                    "id": checkpoint.id,
                    "scenarioId": checkpoint.scenario_id,
                    "timestamp": checkpoint.timestamp,
                }
                for checkpoint in checkpoints
            ],
        )


def _read_json(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise PersistenceError(f"Failed to read '{path}'.") from exc


def _write_json(path: Path, payload: object) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
    except OSError as exc:
        raise PersistenceError(f"Failed to write '{path}'.") from exc


__all__ = [
    "Checkpoint",
    "DEFAULT_STATUS",
    "DEFAULT_TITLE",
    "FileScenarioStore",
    "InMemoryScenarioStore",
    "SCENARIO_STATUSES",
    "ScenarioRecord",
    "ScenarioStore",
]
