"""Configuration helpers for deploying the scenario API."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


def _normalise_path(value: str | None) -> Path | None:
    if value is None:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    return Path(trimmed).expanduser()


def _normalise_level(value: str | None, *, default: str) -> str:
    if value is None:
        return default

    trimmed = value.strip().upper()
    if not trimmed:
        return default
    if not isinstance(logging.getLevelName(trimmed), int):
        raise ValueError(
            f"SCRIPTROOM_LOG_LEVEL must be a logging level name, got {value!r}."
        )
    return trimmed


@dataclass(frozen=True)
class ScenarioApiSettings:
    """Deployment settings for the FastAPI application.

    When ``data_dir`` is unset every store lives in process memory and is lost
    on restart. Otherwise scenarios, the delta journal and the lock tables
    are written as JSON files below ``data_dir``.
    """

    data_dir: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ScenarioApiSettings":
        """Return settings populated from ``environ``.

        Args:
            environ: Optional mapping of environment variables. When omitted,
                :data:`os.environ` is used.
        """

        source = environ if environ is not None else os.environ

        return cls(
            data_dir=_normalise_path(source.get("SCRIPTROOM_DATA_DIR")),
            log_level=_normalise_level(
                source.get("SCRIPTROOM_LOG_LEVEL"), default="INFO"
            ),
        )


__all__ = ["ScenarioApiSettings"]
