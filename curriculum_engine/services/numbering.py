"""Container-relative lesson numbers.

A lesson's display number is its position in whichever container is being
viewed, so the same lesson can be "Lesson 3" in a half-term and "Lesson 7"
in the library at the same time. Nothing here is cached; every call reads
the container's current order.
"""
from __future__ import annotations

from typing import Iterator

from ..schemas import Lesson
from .store import HierarchyState


def ordered_lessons(state: HierarchyState, container_id: str) -> list[str]:
    """Lesson numbers of a container in display order, skipping ids missing from the library."""

    container = state.container(container_id)
    return [number for number in container.lessons if number in state.lessons]


def display_number(state: HierarchyState, lesson_number: str, container_id: str) -> int | None:
    """Return the 1-based position of ``lesson_number`` in the container, or None if absent."""

    lessons = ordered_lessons(state, container_id)
    try:
        return lessons.index(lesson_number) + 1
    except ValueError:
        return None


def numbered_lessons(state: HierarchyState, container_id: str) -> Iterator[tuple[int, Lesson]]:
    for index, number in enumerate(ordered_lessons(state, container_id), start=1):
        yield index, state.lessons[number]


def lesson_display_title(state: HierarchyState, lesson_number: str, container_id: str) -> str:
    lesson = state.lessons.get(lesson_number)
    if lesson is not None and lesson.title.strip():
        return lesson.title
    position = display_number(state, lesson_number, container_id)
    if position is not None:
        return f"Lesson {position}"
    return f"Lesson {lesson_number}"


__all__ = [
    "display_number",
    "lesson_display_title",
    "numbered_lessons",
    "ordered_lessons",
]
