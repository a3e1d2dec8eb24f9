"""Resolved export documents and per-category summaries."""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from ..config import LIBRARY_CONTAINER_ID
from ..schemas import Activity, Lesson
from .numbering import display_number, numbered_lessons
from .store import HierarchyState


@dataclass(frozen=True)
class ExportLesson:
    """A lesson with everything a renderer needs already resolved."""

    lesson_number: str
    title: str
    display_number: int | None
    activities: tuple[Activity, ...]
    categories: tuple[tuple[str, tuple[Activity, ...]], ...]
    total_time: int
    notes: str = ""
    custom_header: str | None = None
    custom_footer: str | None = None


@dataclass(frozen=True)
class ExportContainer:
    id: str
    name: str
    lessons: tuple[ExportLesson, ...] = field(default_factory=tuple)

    @property
    def total_time(self) -> int:
        return sum(lesson.total_time for lesson in self.lessons)


def group_by_category(activities: Iterable[Activity]) -> list[tuple[str, list[Activity]]]:
    """Group activities by category, ordering categories by first appearance."""

    grouped: dict[str, list[Activity]] = {}
    for activity in activities:
        grouped.setdefault(activity.category, []).append(activity)
    return list(grouped.items())


def _export_lesson(lesson: Lesson, position: int | None) -> ExportLesson:
    activities = tuple(activity.model_copy(deep=True) for activity in lesson.activities)
    title = lesson.title.strip() or f"Lesson {position if position is not None else lesson.lesson_number}"
    return ExportLesson(
        lesson_number=lesson.lesson_number,
        title=title,
        display_number=position,
        activities=activities,
        categories=tuple((name, tuple(items)) for name, items in group_by_category(activities)),
        total_time=lesson.total_time,
        notes=lesson.notes,
        custom_header=lesson.custom_header,
        custom_footer=lesson.custom_footer,
    )


def resolve_lesson(
    state: HierarchyState, lesson_number: str, container_id: str | None = None
) -> ExportLesson:
    """Resolve one lesson, numbered relative to ``container_id`` (the library by default)."""

    lesson = state.lesson(lesson_number)
    position = display_number(state, lesson_number, container_id or LIBRARY_CONTAINER_ID)
    return _export_lesson(lesson, position)


def _container_name(state: HierarchyState, container_id: str) -> str:
    if container_id == LIBRARY_CONTAINER_ID:
        return "Lesson Library"
    container = state.container(container_id)
    return getattr(container, "name", container_id)


def resolve_container(state: HierarchyState, container_id: str) -> ExportContainer:
    lessons = tuple(
        _export_lesson(lesson, position) for position, lesson in numbered_lessons(state, container_id)
    )
    return ExportContainer(id=container_id, name=_container_name(state, container_id), lessons=lessons)


def category_summary(container: ExportContainer) -> list[dict]:
    """Aggregate minutes, activity counts and lessons per category across a container."""

    grouped: dict[str, dict] = {}
    for lesson in container.lessons:
        for name, activities in lesson.categories:
            bucket = grouped.setdefault(name, {"minutes": 0, "activities": 0, "lessons": []})
            bucket["minutes"] += sum(activity.duration for activity in activities)
            bucket["activities"] += len(activities)
            bucket["lessons"].append(lesson.title)

    return [
        {
            "category": name,
            "total_minutes": data["minutes"],
            "activities": data["activities"],
            "lessons": data["lessons"],
        }
        for name, data in grouped.items()
    ]


def _csv_from_rows(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def build_category_csv(container: ExportContainer) -> str:
    rows: List[List[str]] = [
        [
            summary["category"],
            f"{summary['total_minutes']}",
            f"{summary['activities']}",
            "; ".join(summary["lessons"]),
        ]
        for summary in category_summary(container)
    ]
    return _csv_from_rows(["Category", "Total Minutes", "Activities", "Lessons"], rows)


__all__ = [
    "ExportContainer",
    "ExportLesson",
    "build_category_csv",
    "category_summary",
    "group_by_category",
    "resolve_container",
    "resolve_lesson",
]
