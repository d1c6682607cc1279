"""Core package for the collaborative screenplay editor."""

from .chain import Line, find_predecessor, next_available_id, order_lines
from .exceptions import (
    ConflictError,
    InputValidationError,
    LockConflictError,
    NotFoundError,
    PersistenceError,
    ScriptroomError,
)
from .journal import (
    CharRename,
    Delta,
    DeltaJournal,
    FileDeltaJournal,
    InMemoryDeltaJournal,
    JournalEntry,
    LineDelete,
    LineUpdate,
)
from .locks import CharacterLock, FileLockTable, InMemoryLockTable, LineLock, LockTable
from .persistence import (
    Checkpoint,
    FileScenarioStore,
    InMemoryScenarioStore,
    ScenarioRecord,
    ScenarioStore,
)
from .replay import replay
from .roles import is_role_text, rename_live, rename_replay, speaker_cue_ids
from .segmentation import MAX_WORDS_PER_LINE, chunk, count_words, wrap_all
from .service import ScenarioService, ScenarioView

__all__ = [
    "Line",
    "order_lines",
    "find_predecessor",
    "next_available_id",
    "chunk",
    "count_words",
    "wrap_all",
    "MAX_WORDS_PER_LINE",
    "LineLock",
    "CharacterLock",
    "LockTable",
    "InMemoryLockTable",
    "FileLockTable",
    "Delta",
    "LineUpdate",
    "LineDelete",
    "CharRename",
    "JournalEntry",
    "DeltaJournal",
    "InMemoryDeltaJournal",
    "FileDeltaJournal",
    "is_role_text",
    "speaker_cue_ids",
    "rename_live",
    "rename_replay",
    "replay",
    "Checkpoint",
    "ScenarioRecord",
    "ScenarioStore",
    "InMemoryScenarioStore",
    "FileScenarioStore",
    "ScenarioService",
    "ScenarioView",
    "ScriptroomError",
    "NotFoundError",
    "ConflictError",
    "LockConflictError",
    "InputValidationError",
    "PersistenceError",
]
