"""Character-name (role line) detection and renaming.

Two rename algorithms exist and they differ:

* :func:`rename_live` is used by the rename endpoint. It is a plain,
  case-sensitive substring replacement on every line.
* :func:`rename_replay` is used when rebuilding a checkpoint. Role lines that
  match the upper-cased old name exactly are replaced whole; every other line
  gets a case-insensitive, word-boundary substitution.

The same logical rename can therefore read differently live and after a
restore.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Set

from .chain import Line


def is_role_text(text: str | None) -> bool:
    """Return ``True`` when ``text`` looks like a character name.

    A character name, once trimmed, is non-empty and made only of upper-case
    letters (diacritics included) and spaces, with at least one letter.
    """

    trimmed = text.strip() if isinstance(text, str) else ""
    if not trimmed:
        return False

    has_letter = False
    for char in trimmed:
        if char == " ":
            continue
        if not (char.isalpha() and char.isupper()):
            return False
        has_letter = True
    return has_letter


def speaker_cue_ids(ordered_lines: Sequence[Line]) -> Set[int]:
    """Return ids of role lines that are followed by dialogue.

    ``ordered_lines`` must already be in chain order. A role line is a
    speaker cue when the first following non-blank line is not itself role
    text.
    """

    cues: Set[int] = set()
    for index, line in enumerate(ordered_lines):
        if not is_role_text(line.text):
            continue

        follower = index + 1
        while follower < len(ordered_lines) and not ordered_lines[follower].text.strip():
            follower += 1
        if follower >= len(ordered_lines):
            continue

        if not is_role_text(ordered_lines[follower].text):
            cues.add(line.line_id)
    return cues


def rename_live(lines: Iterable[Line], old_name: str, new_name: str) -> List[Line]:
    """Return the lines whose text changes under a live rename.

    Every occurrence of ``old_name`` is replaced, case-sensitively and without
    regard for word boundaries.
    """

    changed: List[Line] = []
    for line in lines:
        if old_name in line.text:
            changed.append(
                Line(
                    line_id=line.line_id,
                    next_line_id=line.next_line_id,
                    text=line.text.replace(old_name, new_name),
                )
            )
    return changed


def rename_replay(lines: Iterable[Line], old_name: str, new_name: str) -> List[Line]:
    """Return every line after applying a journalled rename during replay."""

    old_upper = old_name.upper()
    new_upper = new_name.upper()
    pattern = re.compile(rf"\b{re.escape(old_name)}\b", re.IGNORECASE)

    renamed: List[Line] = []
    for line in lines:
        trimmed = line.text.strip()
        if trimmed == old_upper and is_role_text(trimmed):
            text = new_upper
        else:
            text = pattern.sub(lambda _match: new_name, line.text)
        renamed.append(
            Line(line_id=line.line_id, next_line_id=line.next_line_id, text=text)
        )
    return renamed


__all__ = ["is_role_text", "rename_live", "rename_replay", "speaker_cue_ids"]
