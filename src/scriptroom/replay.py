"""Rebuild scenario content from the delta journal.

Checkpoints are not snapshots. Restoring one folds every journal entry up to
the checkpoint's timestamp over a freshly seeded scenario.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from .chain import Line, build_replacement, next_available_id, order_lines
from .journal import CharRename, JournalEntry, LineDelete, LineUpdate
from .roles import rename_replay
from .segmentation import chunk

logger = logging.getLogger(__name__)


def seed_lines() -> Dict[int, Line]:
    """Return the content every scenario starts with."""

    return {1: Line(line_id=1, next_line_id=None, text="")}


def apply_line_update(state: Dict[int, Line], delta: LineUpdate) -> None:
    """Apply a journalled line update to ``state`` in place.

    The content is re-chunked. The first chunk lands on ``delta.line_id``
    whether or not that id exists yet. Any extra chunks get ids above both
    the current maximum and ``delta.line_id``, and the last chunk points to
    ``delta.next_line_id``.
    """

    chunks = chunk(delta.content)
    first_free_id = max(next_available_id(state.values()), delta.line_id + 1)
    anchor = Line(line_id=delta.line_id, next_line_id=delta.next_line_id, text="")
    for line in build_replacement(anchor, chunks, first_free_id):
        state[line.line_id] = line


def apply_char_rename(state: Dict[int, Line], delta: CharRename) -> None:
    """Apply a journalled character rename to ``state`` in place."""

    for line in rename_replay(list(state.values()), delta.old_name, delta.new_name):
        state[line.line_id] = line


def replay(entries: Iterable[JournalEntry]) -> List[Line]:
    """Fold ``entries`` over the seed content and return lines in chain order.

    Entries are applied in ``(timestamp, sequence)`` order. Line deletions are
    not applied, so lines deleted before the cut-off reappear.
    """

    state = seed_lines()
    for entry in sorted(entries, key=lambda item: item.sort_key):
        delta = entry.delta
        if isinstance(delta, LineUpdate):
            apply_line_update(state, delta)
        elif isinstance(delta, CharRename):
            apply_char_rename(state, delta)
        elif isinstance(delta, LineDelete):
            logger.debug(
                "Skipping line_delete for line %s during replay", delta.line_id
            )
    return order_lines(state.values())


__all__ = ["apply_char_rename", "apply_line_update", "replay", "seed_lines"]
