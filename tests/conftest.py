"""Test configuration for the scenario editing service."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from typing import Any

import pytest

from scriptroom import (
    InMemoryDeltaJournal,
    InMemoryLockTable,
    InMemoryScenarioStore,
    Line,
    ScenarioService,
)


class FakeClock:
    """Deterministic clock returning a controllable Unix time."""

    def __init__(self, start: float = 1_700_000_000) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1) -> float:
        self.now += seconds
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    """Return a clock that only moves when told to."""

    return FakeClock()


@pytest.fixture()
def service(clock: FakeClock) -> ScenarioService:
    """Return a service backed entirely by in-memory stores."""

    return ScenarioService(
        store=InMemoryScenarioStore(),
        journal=InMemoryDeltaJournal(),
        locks=InMemoryLockTable(),
        clock=clock,
    )


@pytest.fixture()
def make_lines() -> Any:
    """Factory seeding a scenario's content with a linear chain of lines."""

    def _factory(service: ScenarioService, scenario_id: int, texts: list[str]) -> None:
        store = service.store
        for line in store.lines(scenario_id):
            store.delete_line(scenario_id, line.line_id)
        store.insert_lines(
            scenario_id,
            [
                Line(
                    line_id=index + 1,
                    next_line_id=index + 2 if index < len(texts) - 1 else None,
                    text=text,
                )
                for index, text in enumerate(texts)
            ],
        )

    return _factory


__all__ = ["FakeClock", "clock", "service", "make_lines"]
