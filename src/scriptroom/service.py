"""Scenario editing service tying locks, the line chain and the journal together."""

from __future__ import annotations

import functools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, TypeVar

from .chain import (
    Line,
    build_replacement,
    find_line,
    find_predecessor,
    next_available_id,
    order_lines,
)
from .exceptions import ConflictError, InputValidationError, NotFoundError
from .journal import CharRename, DeltaJournal, JournalEntry, LineDelete, LineUpdate
from .locks import LockTable
from .persistence import (
    DEFAULT_STATUS,
    DEFAULT_TITLE,
    SCENARIO_STATUSES,
    Checkpoint,
    ScenarioRecord,
    ScenarioStore,
)
from .replay import replay
from .roles import is_role_text, rename_live, speaker_cue_ids
from .segmentation import wrap_all

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

_F = TypeVar("_F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ScenarioView:
    """A scenario with its lines in reading order."""

    id: int
    title: str
    status: str
    content: List[Line]


def normalise_title(value: Any) -> str:
    """Return a trimmed title, or the placeholder for missing/blank values."""

    if not isinstance(value, str):
        return DEFAULT_TITLE
    trimmed = value.strip()
    return trimmed or DEFAULT_TITLE


def _validate_user_id(user_id: Any) -> int:
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id < 1:
        raise InputValidationError("Invalid userId")
    return user_id


def _validate_character_name(value: Any) -> str:
    name = value.strip() if isinstance(value, str) else ""
    if not is_role_text(name):
        raise InputValidationError("Invalid character name")
    return name


def _serialised(method: _F) -> _F:
    """Run ``method`` while holding the service's mutex."""

    @functools.wraps(method)
    def wrapper(self: "ScenarioService", *args: Any, **kwargs: Any) -> Any:
        with self._mutex:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class ScenarioService:
    """Coordinate scenario mutations.

    A mutation checks the lock table first, then rewrites the stored chain,
    releases the lock and journals what changed. The steps are independent
    writes; nothing is rolled back if a later step fails.

    Public operations hold one re-entrant lock for their whole duration, so
    requests served from worker threads run one at a time.
    """

    def __init__(
        self,
        *,
        store: ScenarioStore,
        journal: DeltaJournal,
        locks: LockTable,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.journal = journal
        self.locks = locks
        self._clock = clock or time.time
        self._mutex = threading.RLock()

    def now(self) -> int:
        """Return the current server time in whole Unix seconds."""

        return int(self._clock())

    # Scenarios -----------------------------------------------------------

    @_serialised
    def create_scenario(self, title: Any = None) -> ScenarioRecord:
        record = self.store.create(
            title=normalise_title(title), status=DEFAULT_STATUS, timestamp=self.now()
        )
        logger.info("Created scenario %s (%r)", record.id, record.title)
        return record

    @_serialised
    def list_scenarios(self) -> List[ScenarioRecord]:
        return self.store.list()

    @_serialised
    def get_scenario(self, scenario_id: int) -> ScenarioView:
        record = self.store.get(scenario_id)
        return ScenarioView(
            id=record.id,
            title=record.title,
            status=record.status,
            content=order_lines(record.lines),
        )

    @_serialised
    def delete_scenario(self, scenario_id: int) -> None:
        """Delete a scenario with its lines, journal, checkpoints and locks."""

        self.store.delete(scenario_id)
        removed = self.journal.delete_scenario(scenario_id)
        self.locks.release_scenario(scenario_id)
        logger.info(
            "Deleted scenario %s and %d journal entries", scenario_id, removed
        )

    @_serialised
    def update_status(self, scenario_id: int, status: Any) -> ScenarioRecord:
        trimmed = status.strip() if isinstance(status, str) else ""
        if trimmed not in SCENARIO_STATUSES:
            raise InputValidationError("Invalid status")
        return self.store.update_metadata(
            scenario_id, status=trimmed, last_modified=self.now()
        )

    # Line locks and mutations --------------------------------------------

    def _require_line(self, scenario_id: int, line_id: int) -> tuple[List[Line], Line]:
        lines = self.store.lines(scenario_id)
        target = find_line(lines, line_id)
        if target is None:
            raise NotFoundError("Line does not exist!")
        return lines, target

    def _require_line_lock(self, scenario_id: int, line_id: int, user_id: int) -> None:
        holder = self.locks.holder_of(scenario_id, line_id)
        if holder is None:
            raise ConflictError("Line is not locked!")
        if holder != user_id:
            raise ConflictError("Line is already locked!")

    @_serialised
    def lock_line(self, scenario_id: int, line_id: int, user_id: Any) -> None:
        """Lock a line for ``user_id``, releasing any lock they held elsewhere."""

        validated_user = _validate_user_id(user_id)
        self._require_line(scenario_id, line_id)
        self.locks.acquire_line(scenario_id, line_id, validated_user)

    @_serialised
    def release_locks(self, user_id: Any) -> int:
        """Release every line lock held by ``user_id``."""

        return self.locks.release_all_for_user(_validate_user_id(user_id))

    @_serialised
    def update_line(
        self,
        scenario_id: int,
        line_id: int,
        user_id: Any,
        new_text: Sequence[str],
    ) -> List[Line]:
        """Replace a locked line with the wrapped chunks of ``new_text``.

        Returns:
            The lines written in place of the original, in chain order.
        """

        validated_user = _validate_user_id(user_id)
        if (
            isinstance(new_text, (str, bytes))
            or not isinstance(new_text, Sequence)
            or len(new_text) == 0
            or not all(isinstance(item, str) for item in new_text)
        ):
            raise InputValidationError("newText must be a non-empty array!")

        lines, target = self._require_line(scenario_id, line_id)
        self._require_line_lock(scenario_id, line_id, validated_user)

        chunks = wrap_all(new_text)
        replacement = build_replacement(target, chunks, next_available_id(lines))

        self.store.delete_line(scenario_id, target.line_id)
        self.store.insert_lines(scenario_id, replacement)
        self.locks.release_line(scenario_id, line_id)

        timestamp = self.now()
        self.journal.append(
            scenario_id,
            [
                LineUpdate(
                    line_id=line.line_id,
                    next_line_id=line.next_line_id,
                    content=line.text,
                )
                for line in replacement
            ],
            timestamp=timestamp,
        )
        self.store.update_metadata(scenario_id, last_modified=timestamp)
        logger.info(
            "User %s updated line %s/%s into %d line(s)",
            validated_user,
            scenario_id,
            line_id,
            len(replacement),
        )
        return replacement

    @_serialised
    def delete_line(self, scenario_id: int, line_id: int, user_id: Any) -> None:
        """Remove a locked line and re-link its predecessor."""

        validated_user = _validate_user_id(user_id)
        lines, target = self._require_line(scenario_id, line_id)
        self._require_line_lock(scenario_id, line_id, validated_user)
        if len(lines) <= 1:
            raise InputValidationError("The last line of a scenario cannot be deleted!")

        predecessor = find_predecessor(lines, line_id)
        if predecessor is not None:
            self.store.save_line(
                scenario_id,
                Line(
                    line_id=predecessor.line_id,
                    next_line_id=target.next_line_id,
                    text=predecessor.text,
                ),
            )
        self.store.delete_line(scenario_id, line_id)
        self.locks.release_line(scenario_id, line_id)

        timestamp = self.now()
        self.journal.append(scenario_id, [LineDelete(line_id=line_id)], timestamp=timestamp)
        self.store.update_metadata(scenario_id, last_modified=timestamp)
        logger.info("User %s deleted line %s/%s", validated_user, scenario_id, line_id)

    # Character names -------------------------------------------------------

    @_serialised
    def lock_character(self, scenario_id: int, character_name: Any, user_id: Any) -> str:
        validated_user = _validate_user_id(user_id)
        name = _validate_character_name(character_name)
        self.store.get(scenario_id)
        self.locks.acquire_character(scenario_id, name, validated_user)
        return name

    @_serialised
    def rename_character(
        self, scenario_id: int, old_name: Any, new_name: Any, user_id: Any
    ) -> List[Line]:
        """Replace ``old_name`` with ``new_name`` on every line of a scenario.

        Returns:
            The lines whose text changed.
        """

        validated_user = _validate_user_id(user_id)
        old = _validate_character_name(old_name)
        new = _validate_character_name(new_name)

        lines = self.store.lines(scenario_id)
        holder = self.locks.character_holder(scenario_id, old)
        if holder is None:
            raise ConflictError("Character name is not locked!")
        if holder != validated_user:
            raise ConflictError("Character name is already locked!")

        locked_by_others = {
            lock.line_id
            for lock in self.locks.line_locks(scenario_id)
            if lock.user_id != validated_user
        }
        for line in lines:
            if old in line.text and line.line_id in locked_by_others:
                raise ConflictError(
                    "A line containing the character name is locked by another user!"
                )

        # Speaker cues are reported only; the replacement covers every line.
        cues = speaker_cue_ids(order_lines(lines))
        changed = rename_live(lines, old, new)
        for line in changed:
            self.store.save_line(scenario_id, line)
        logger.info(
            "User %s renamed %r to %r in scenario %s (%d line(s), %d speaker cue(s))",
            validated_user,
            old,
            new,
            scenario_id,
            len(changed),
            sum(1 for line in changed if line.line_id in cues),
        )

        self.locks.release_character(scenario_id, old)
        timestamp = self.now()
        self.journal.append(
            scenario_id, [CharRename(old_name=old, new_name=new)], timestamp=timestamp
        )
        self.store.update_metadata(scenario_id, last_modified=timestamp)
        return changed

    # Journal and checkpoints ---------------------------------------------

    @_serialised
    def list_deltas(self, scenario_id: int, since: float = 0) -> List[JournalEntry]:
        """Return journal entries strictly newer than ``since``."""

        self.store.get(scenario_id)
        return self.journal.entries(scenario_id, since=since)

    @_serialised
    def create_checkpoint(self, scenario_id: int) -> Checkpoint:
        checkpoint = self.store.add_checkpoint(scenario_id, self.now())
        logger.info(
            "Created checkpoint %s for scenario %s at %s",
            checkpoint.id,
            scenario_id,
            checkpoint.timestamp,
        )
        return checkpoint

    @_serialised
    def list_checkpoints(self, scenario_id: int) -> List[Checkpoint]:
        return self.store.checkpoints(scenario_id)

    @_serialised
    def restore_checkpoint(self, scenario_id: int, checkpoint_id: int) -> ScenarioView:
        """Rebuild a scenario's content as of a checkpoint.

        The stored lines are left untouched; only the journal is replayed.
        """

        record = self.store.get(scenario_id)
        checkpoint = self.store.get_checkpoint(scenario_id, checkpoint_id)
        entries = self.journal.entries(scenario_id, until=checkpoint.timestamp)
        return ScenarioView(
            id=record.id,
            title=record.title,
            status=record.status,
            content=replay(entries),
        )


__all__ = ["ScenarioService", "ScenarioView", "normalise_title"]
