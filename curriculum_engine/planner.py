"""Per-context facade wiring the store, assignment, duplication and draft services."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .persistence import PersistenceBackend
from .schemas import DEFAULT_YEAR_GROUPS, Category, Lesson, YearGroup
from .services.assignment import AssignmentManager
from .services.drafts import DraftSession, MemoryScratchStore, ScratchStore
from .services.duplication import DuplicationService
from .services.eligibility import eligible_categories
from .services.export import (
    ExportContainer,
    ExportLesson,
    build_category_csv,
    resolve_container,
    resolve_lesson,
)
from .services.numbering import display_number, numbered_lessons
from .services.store import HierarchyState, HierarchyStore

LOGGER = logging.getLogger(__name__)


class CurriculumPlanner:
    """Everything one teaching context needs, sharing a single :class:`HierarchyStore`."""

    def __init__(
        self,
        context: str,
        *,
        backend: PersistenceBackend | None = None,
        scratch_store: ScratchStore | None = None,
        categories: Iterable[Category] = (),
        year_groups: Sequence[YearGroup] = DEFAULT_YEAR_GROUPS,
        state: HierarchyState | None = None,
    ) -> None:
        self.context = context
        self.categories = list(categories)
        self.year_groups = list(year_groups)
        self.store = HierarchyStore(context, state)
        self.assignments = AssignmentManager(self.store, backend)
        self.duplication = DuplicationService(self.store, self.assignments)
        self.drafts = DraftSession(context, scratch_store or MemoryScratchStore(), self.assignments)

    @classmethod
    async def load(
        cls,
        context: str,
        backend: PersistenceBackend,
        *,
        scratch_store: ScratchStore | None = None,
        categories: Iterable[Category] = (),
        year_groups: Sequence[YearGroup] = DEFAULT_YEAR_GROUPS,
    ) -> "CurriculumPlanner":
        """Build a planner from everything ``backend`` holds for ``context``."""

        snapshot = await backend.load_all(context)
        state = HierarchyStore.from_snapshot(snapshot).state
        LOGGER.info("Planner ready for context %s", context)
        return cls(
            context,
            backend=backend,
            scratch_store=scratch_store,
            categories=categories,
            year_groups=year_groups,
            state=state,
        )

    @property
    def state(self) -> HierarchyState:
        return self.store.state

    def eligible_categories(self) -> list[str]:
        return eligible_categories(self.context, self.categories, self.year_groups)

    def display_number(self, lesson_number: str, container_id: str) -> int | None:
        return display_number(self.store.state, lesson_number, container_id)

    def numbered_lessons(self, container_id: str) -> list[tuple[int, Lesson]]:
        return list(numbered_lessons(self.store.state, container_id))

    async def duplicate_lesson(self, lesson_number: str) -> str:
        return await self.duplication.duplicate(lesson_number)

    def export_lesson(self, lesson_number: str, container_id: str | None = None) -> ExportLesson:
        return resolve_lesson(self.store.state, lesson_number, container_id)

    def export_container(self, container_id: str) -> ExportContainer:
        return resolve_container(self.store.state, container_id)

    def category_csv(self, container_id: str) -> str:
        return build_category_csv(self.export_container(container_id))


__all__ = ["CurriculumPlanner"]
