"""Line records and the chain helpers that order them.

A scenario's lines are stored as independent records linked through
``next_line_id``. The storage order carries no meaning; the reading order is
always derived by walking the chain from its head.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Set


@dataclass(frozen=True)
class Line:
    """A single addressable screenplay line."""

    line_id: int
    next_line_id: int | None = None
    text: str = ""

    def to_payload(self) -> Dict[str, object]:
        """Return the JSON representation used by the API and file stores."""

        return {
            "lineId": self.line_id,
            "nextLineId": self.next_line_id,
            "text": self.text,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "Line":
        """Build a line from its stored JSON representation."""

        line_id = payload.get("lineId")
        if not isinstance(line_id, int) or isinstance(line_id, bool):
            raise ValueError("Line payload must include an integer 'lineId'")

        next_line_id = payload.get("nextLineId")
        if next_line_id is not None and (
            not isinstance(next_line_id, int) or isinstance(next_line_id, bool)
        ):
            raise ValueError("Line 'nextLineId' must be an integer or null")

        text = payload.get("text")
        return cls(
            line_id=line_id,
            next_line_id=next_line_id,
            text="" if text is None else str(text),
        )


def order_lines(lines: Iterable[Line]) -> List[Line]:
    """Return ``lines`` in chain order.

    The head is the smallest id nobody points to, or the smallest id overall
    when every line is pointed to. The walk is bounded by the number of lines
    so cycles terminate. Lines the walk never reaches are appended sorted by
    id, which keeps the output deterministic for broken chains.
    """

    by_id: Dict[int, Line] = {}
    for line in lines:
        by_id[line.line_id] = line
    if not by_id:
        return []

    pointed_to: Set[int] = {
        line.next_line_id for line in by_id.values() if line.next_line_id is not None
    }
    candidates = [line_id for line_id in by_id if line_id not in pointed_to]
    current: int | None = min(candidates) if candidates else min(by_id)

    ordered: List[Line] = []
    visited: Set[int] = set()
    for _ in range(len(by_id)):
        if current is None or current not in by_id or current in visited:
            break
        node = by_id[current]
        ordered.append(node)
        visited.add(current)
        current = node.next_line_id

    leftovers = sorted(
        (line for line_id, line in by_id.items() if line_id not in visited),
        key=lambda line: line.line_id,
    )
    return ordered + leftovers


def find_line(lines: Iterable[Line], line_id: int) -> Line | None:
    """Return the line with ``line_id`` if present."""

    for line in lines:
        if line.line_id == line_id:
            return line
    return None


def find_predecessor(lines: Iterable[Line], line_id: int) -> Line | None:
    """Return the line whose ``next_line_id`` points at ``line_id``."""

    for line in lines:
        if line.next_line_id == line_id:
            return line
    return None


def next_available_id(lines: Iterable[Line]) -> int:
    """Return one past the largest line id, or ``1`` for an empty chain."""

    return max((line.line_id for line in lines), default=0) + 1


def build_replacement(
    original: Line, chunks: Sequence[str], first_free_id: int
) -> List[Line]:
    """Return the lines replacing ``original`` after it was rewrapped.

    The first chunk keeps the original id. Later chunks take consecutive ids
    starting at ``first_free_id``. The last chunk inherits the original
    ``next_line_id`` so the rest of the chain stays attached.
    """

    if not chunks:
        raise ValueError("At least one chunk is required to replace a line")

    ids = [original.line_id]
    ids.extend(range(first_free_id, first_free_id + len(chunks) - 1))

    replacement: List[Line] = []
    for index, text in enumerate(chunks):
        is_last = index == len(chunks) - 1
        replacement.append(
            Line(
                line_id=ids[index],
                next_line_id=original.next_line_id if is_last else ids[index + 1],
                text=text,
            )
        )
    return replacement


__all__ = [
    "Line",
    "build_replacement",
    "find_line",
    "find_predecessor",
    "next_available_id",
    "order_lines",
]
