"""Word-wrap segmentation for screenplay lines.

Every stored line holds at most :data:`MAX_WORDS_PER_LINE` words. Text coming
from the editor is split into chunks on whitespace boundaries so that the
words of each chunk stay under the limit while punctuation, digits and other
non-word characters are kept verbatim.
"""

from __future__ import annotations

import re
from typing import Iterable, List

MAX_WORDS_PER_LINE = 20

_TAG_PATTERN = re.compile(r"<[^>]*>")
# Applied after numeric characters are blanked, so ``[^\W\d_]`` only sees
# letters, including diacritics such as Š or ć.
_WORD_PATTERN = re.compile(r"[^\W\d_]+(?:['-][^\W\d_]+)*")


def strip_tags(text: str) -> str:
    """Replace HTML tag-shaped substrings with a single space."""

    return _TAG_PATTERN.sub(" ", text)


def _word_count(text: str) -> int:
    # Digits and numeric symbols such as ½, ² or Ⅻ separate words like spaces.
    letters = "".join(
        " " if char.isalnum() and not char.isalpha() else char for char in text
    )
    return len(_WORD_PATTERN.findall(letters))


def count_words(text: str) -> int:
    """Return the number of words contained in ``text``.

    Words are runs of letters optionally joined by an internal hyphen or
    apostrophe. Digits, numeric symbols and punctuation never count.
    """

    return _word_count(strip_tags(text))


def chunk(text: str) -> List[str]:
    """Split ``text`` into chunks of at most twenty words each.

    The result is never empty: blank input yields ``[""]``. Whitespace runs
    collapse to a single space in the output. A single whitespace-free part
    holding more than twenty words is kept intact because there is no
    boundary to break it on.
    """

    trimmed = text.strip() if isinstance(text, str) else ""
    if not trimmed:
        return [""]

    parts = strip_tags(trimmed).split()
    if not parts:
        return [""]

    chunks: List[str] = []
    current: List[str] = []
    current_words = 0
    for part in parts:
        part_words = _word_count(part)
        if current and current_words + part_words > MAX_WORDS_PER_LINE:
            chunks.append(" ".join(current))
            current = []
            current_words = 0
        current.append(part)
        current_words += part_words

    chunks.append(" ".join(current))
    return chunks


def wrap_all(texts: Iterable[str]) -> List[str]:
    """Chunk every string independently and concatenate the results in order."""

    wrapped: List[str] = []
    for text in texts:
        wrapped.extend(chunk(text))
    return wrapped


__all__ = ["MAX_WORDS_PER_LINE", "chunk", "count_words", "strip_tags", "wrap_all"]
