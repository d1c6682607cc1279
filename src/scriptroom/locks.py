"""Advisory line and character-name locks.

Two kinds of lock exist:

* line locks, keyed by ``(scenario_id, line_id)``. A user holds at most one
  line lock across every scenario; acquiring a new one drops the old one.
* character locks, keyed by ``(scenario_id, character_name)``. These are
  independent of each other and of line locks.

Conflicts fail immediately with :class:`~scriptroom.exceptions.LockConflictError`.
Locks never expire on their own.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from .exceptions import LockConflictError, PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineLock:
    """A user's claim on one line of a scenario."""

    scenario_id: int
    line_id: int
    user_id: int


@dataclass(frozen=True)
class CharacterLock:
    """A user's claim on a character name within a scenario."""

    scenario_id: int
    character_name: str
    user_id: int


class LockTable(ABC):
    """Interface describing how active locks are tracked."""

    @abstractmethod
    def _load(self) -> Tuple[List[LineLock], List[CharacterLock]]:
        """Return the current line and character locks."""

    @abstractmethod
    def _save(
        self, line_locks: List[LineLock], character_locks: List[CharacterLock]
    ) -> None:
        """Replace the stored locks."""

    def acquire_line(self, scenario_id: int, line_id: int, user_id: int) -> LineLock:
        """Lock a line for ``user_id``, dropping any other line lock they hold.

        Raises:
            LockConflictError: If another user already holds the line.
        """

        line_locks, character_locks = self._load()
        for lock in line_locks:
            if (
                lock.scenario_id == scenario_id
                and lock.line_id == line_id
                and lock.user_id != user_id
            ):
                logger.info(
                    "User %s denied line %s/%s held by user %s",
                    user_id,
                    scenario_id,
                    line_id,
                    lock.user_id,
                )
                raise LockConflictError(
                    "Line is already locked!", holder_id=lock.user_id
                )

        remaining = [lock for lock in line_locks if lock.user_id != user_id]
        acquired = LineLock(scenario_id=scenario_id, line_id=line_id, user_id=user_id)
        remaining.append(acquired)
        self._save(remaining, character_locks)
        logger.debug("User %s locked line %s/%s", user_id, scenario_id, line_id)
        return acquired

    def holder_of(self, scenario_id: int, line_id: int) -> int | None:
        """Return the id of the user holding the line, if any."""

        line_locks, _ = self._load()
        for lock in line_locks:
            if lock.scenario_id == scenario_id and lock.line_id == line_id:
                return lock.user_id
        return None

    def line_locks(self, scenario_id: int | None = None) -> List[LineLock]:
        """Return active line locks, optionally limited to one scenario."""

        line_locks, _ = self._load()
        if scenario_id is None:
            return list(line_locks)
        return [lock for lock in line_locks if lock.scenario_id == scenario_id]

    def release_line(self, scenario_id: int, line_id: int) -> None:
        """Drop the lock on a line regardless of who holds it."""

        line_locks, character_locks = self._load()
        remaining = [
            lock
            for lock in line_locks
            if not (lock.scenario_id == scenario_id and lock.line_id == line_id)
        ]
        if len(remaining) != len(line_locks):
            self._save(remaining, character_locks)

    def release_all_for_user(self, user_id: int) -> int:
        """Drop every line lock held by ``user_id`` and return how many were held."""

        line_locks, character_locks = self._load()
        remaining = [lock for lock in line_locks if lock.user_id != user_id]
        released = len(line_locks) - len(remaining)
        if released:
            self._save(remaining, character_locks)
            logger.debug("Released %d line lock(s) for user %s", released, user_id)
        return released

    def acquire_character(
        self, scenario_id: int, character_name: str, user_id: int
    ) -> CharacterLock:
        """Lock a character name within a scenario.

        Raises:
            LockConflictError: If another user already holds the name.
        """

        line_locks, character_locks = self._load()
        holder = _character_holder(character_locks, scenario_id, character_name)
        if holder is not None and holder != user_id:
            logger.info(
                "User %s denied character %r in scenario %s held by user %s",
                user_id,
                character_name,
                scenario_id,
                holder,
            )
            raise LockConflictError(
                "Conflict! Character name is already locked!", holder_id=holder
            )

        remaining = [
            lock
            for lock in character_locks
            if not (
                lock.scenario_id == scenario_id
                and lock.character_name == character_name
            )
        ]
        acquired = CharacterLock(
            scenario_id=scenario_id, character_name=character_name, user_id=user_id
        )
        remaining.append(acquired)
        self._save(line_locks, remaining)
        return acquired

    def character_holder(self, scenario_id: int, character_name: str) -> int | None:
        """Return the id of the user holding a character name, if any."""

        _, character_locks = self._load()
        return _character_holder(character_locks, scenario_id, character_name)

    def release_character(self, scenario_id: int, character_name: str) -> None:
        """Drop the lock on a character name within one scenario."""

        line_locks, character_locks = self._load()
        remaining = [
            lock
            for lock in character_locks
            if not (
                lock.scenario_id == scenario_id
                and lock.character_name == character_name
            )
        ]
        if len(remaining) != len(character_locks):
            self._save(line_locks, remaining)

    def release_scenario(self, scenario_id: int) -> None:
        """Drop every lock that references ``scenario_id``."""

        line_locks, character_locks = self._load()
        self._save(
            [lock for lock in line_locks if lock.scenario_id != scenario_id],
            [lock for lock in character_locks if lock.scenario_id != scenario_id],
        )


class InMemoryLockTable(LockTable):
    """Keep locks in local process memory."""

    def __init__(self) -> None:
        self._line_locks: List[LineLock] = []
        self._character_locks: List[CharacterLock] = []

    def _load(self) -> Tuple[List[LineLock], List[CharacterLock]]:
        return list(self._line_locks), list(self._character_locks)

    def _save(
        self, line_locks: List[LineLock], character_locks: List[CharacterLock]
    ) -> None:
        self._line_locks = list(line_locks)
        self._character_locks = list(character_locks)


class FileLockTable(LockTable):
    """Persist locks in a JSON file so several workers can share them."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> Tuple[List[LineLock], List[CharacterLock]]:
        if not self.path.exists():
            return [], []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read locks from '{self.path}'.") from exc

        if not isinstance(payload, dict):
            raise PersistenceError(f"Lock file '{self.path}' must contain an object.")

        try:
            line_locks = [
                LineLock(
                    scenario_id=int(entry["scenarioId"]),
                    line_id=int(entry["lineId"]),
                    user_id=int(entry["userId"]),
                )
                for entry in payload.get("lines", [])
            ]
            character_locks = [
                CharacterLock(
                    scenario_id=int(entry["scenarioId"]),
                    character_name=str(entry["characterName"]),
                    user_id=int(entry["userId"]),
                )
                for entry in payload.get("characters", [])
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"Lock file '{self.path}' contains a malformed entry."
            ) from exc
        return line_locks, character_locks

    def _save(
        self, line_locks: List[LineLock], character_locks: List[CharacterLock]
    ) -> None:
        payload: Dict[str, object] = {
            "lines": [
                {
                    "scenarioId": lock.scenario_id,
                    "lineId": lock.line_id,
                    "userId": lock.user_id,
                }
                for lock in line_locks
            ],
            "characters": [
                {
                    "scenarioId": lock.scenario_id,
                    "characterName": lock.character_name,
                    "userId": lock.user_id,
                }
                for lock in character_locks
            ],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
            )
        except OSError as exc:
            raise PersistenceError(f"Failed to write locks to '{self.path}'.") from exc


def _character_holder(
    locks: List[CharacterLock], scenario_id: int, character_name: str
) -> int | None:
    for lock in locks:
        if lock.scenario_id == scenario_id and lock.character_name == character_name:
            return lock.user_id
    return None


__all__ = [
    "CharacterLock",
    "FileLockTable",
    "InMemoryLockTable",
    "LineLock",
    "LockTable",
]
