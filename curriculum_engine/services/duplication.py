"""Clone lessons under fresh lesson numbers."""
from __future__ import annotations

import logging
from itertools import count
from typing import Container

from ..config import COPY_TITLE_PREFIX
from .assignment import AssignmentManager
from .store import HierarchyStore

LOGGER = logging.getLogger(__name__)


def copy_number(base: str, existing: Container[str]) -> str:
    """Return ``<base>-copy-N`` with the smallest N not already taken."""

    for n in count(1):
        candidate = f"{base}-copy-{n}"
        if candidate not in existing:
            return candidate
    raise AssertionError("unreachable")  # pragma: no cover


class DuplicationService:
    """Deep-copies a lesson into the library without assigning it anywhere."""

    def __init__(self, store: HierarchyStore, assignments: AssignmentManager) -> None:
        self.store = store
        self._assignments = assignments

    async def duplicate(self, lesson_number: str) -> str:
        state = self.store.state
        original = state.lesson(lesson_number)
        new_number = copy_number(lesson_number, state.lessons)
        title = original.title or f"Lesson {lesson_number}"
        clone = original.model_copy(
            deep=True,
            update={"lesson_number": new_number, "title": f"{COPY_TITLE_PREFIX}{title}"},
        )

        # No suspension point between the collision check and the write below.
        LOGGER.info("Duplicating lesson %s as %s", lesson_number, new_number)
        await self._assignments.save_lesson(clone)
        return new_number


__all__ = ["DuplicationService", "copy_number"]
