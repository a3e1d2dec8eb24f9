"""Shared fixtures and test doubles for the curriculum engine tests."""
from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Iterable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("CURRICULUM_DATA_DIR", tempfile.mkdtemp(prefix="curriculum-tests-"))

from curriculum_engine.planner import CurriculumPlanner
from curriculum_engine.schemas import Activity, HierarchySnapshot, Lesson
from curriculum_engine.services.drafts import MemoryScratchStore
from curriculum_engine.services.store import HierarchyState


class RecordingBackend:
    """Persistence double that records every call and can be switched offline."""

    def __init__(self, snapshot: HierarchySnapshot | None = None) -> None:
        self.snapshot = snapshot
        self.calls: list[tuple] = []
        self.offline = False

    async def _record(self, operation: str, *args) -> None:
        if self.offline:
            raise ConnectionError("storage unreachable")
        self.calls.append((operation, *args))

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def load_all(self, context: str) -> HierarchySnapshot:
        return self.snapshot or HierarchySnapshot(context=context)

    async def save_lesson(self, context, lesson) -> None:
        await self._record("save_lesson", context, lesson)

    async def save_half_term(self, context, half_term) -> None:
        await self._record("save_half_term", context, half_term)

    async def save_stack(self, context, stack) -> None:
        await self._record("save_stack", context, stack)

    async def save_unit(self, context, unit, position) -> None:
        await self._record("save_unit", context, unit, position)

    async def delete_lesson_remote(self, context, lesson_number) -> None:
        await self._record("delete_lesson_remote", context, lesson_number)

    async def delete_stack_remote(self, context, stack_id) -> None:
        await self._record("delete_stack_remote", context, stack_id)

    async def delete_unit_remote(self, context, unit_id) -> None:
        await self._record("delete_unit_remote", context, unit_id)


def make_activity(name: str, category: str = "Singing", duration: int = 5) -> Activity:
    return Activity(name=name, category=category, duration=duration)


def make_lesson(number: str, title: str = "", activities: Iterable[Activity] = ()) -> Lesson:
    return Lesson(lesson_number=number, title=title, activities=list(activities))


def seeded_state(context: str, numbers: Iterable[str]) -> HierarchyState:
    state = HierarchyState(context=context)
    for number in numbers:
        state.lessons[number] = make_lesson(
            number,
            title=f"Lesson title {number}",
            activities=[make_activity(f"Hello song {number}"), make_activity("Drum circle", "Rhythm", 10)],
        )
    return state


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def scratch_store() -> MemoryScratchStore:
    return MemoryScratchStore()


@pytest.fixture
def planner(backend: RecordingBackend, scratch_store: MemoryScratchStore) -> CurriculumPlanner:
    numbers = [str(n) for n in range(1, 13)]
    return CurriculumPlanner(
        "Reception",
        backend=backend,
        scratch_store=scratch_store,
        state=seeded_state("Reception", numbers),
    )
