"""Pydantic schemas shared across the curriculum engine."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Activities and categories
# ---------------------------------------------------------------------------


class Activity(BaseModel):
    id: str = Field(default_factory=lambda: _new_id("activity"))
    name: str
    category: str
    duration: int = Field(0, ge=0)
    description: str = ""
    activity_text: str = ""
    links: dict[str, str] = Field(default_factory=dict)

    @field_validator("links")
    @classmethod
    def drop_blank_links(cls, value: dict[str, str]) -> dict[str, str]:
        return {kind: url for kind, url in value.items() if url and url.strip()}


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    color: str = "#6b7280"
    position: int = 0
    groups: list[str] = Field(default_factory=list)
    year_groups: dict[str, bool] = Field(default_factory=dict)


class YearGroup(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    color: Optional[str] = None


DEFAULT_YEAR_GROUPS: tuple[YearGroup, ...] = (
    YearGroup(id="EYFS", name="EYFS", color="#14B8A6"),
    YearGroup(id="LKG", name="Lower Kindergarten", color="#14B8A6"),
    YearGroup(id="UKG", name="Upper Kindergarten", color="#14B8A6"),
    YearGroup(id="Reception", name="Reception", color="#14B8A6"),
    YearGroup(id="Year1", name="Year 1", color="#14B8A6"),
    YearGroup(id="Year2", name="Year 2", color="#14B8A6"),
)


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------


class Lesson(BaseModel):
    lesson_number: str = Field(..., min_length=1)
    title: str = ""
    activities: list[Activity] = Field(default_factory=list)
    notes: str = ""
    objectives: list[str] = Field(default_factory=list)
    custom_header: Optional[str] = None
    custom_footer: Optional[str] = None
    updated_at: datetime = Field(default_factory=_now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_time(self) -> int:
        return sum(activity.duration for activity in self.activities)


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


class LessonContainer(BaseModel):
    """Shared shape of every container holding an ordered list of lesson numbers."""

    id: str
    lessons: list[str] = Field(default_factory=list)

    def position_of(self, lesson_number: str) -> int | None:
        try:
            return self.lessons.index(lesson_number)
        except ValueError:
            return None


class HalfTerm(LessonContainer):
    kind: Literal["half_term"] = "half_term"
    name: str
    months: str
    stacks: list[str] = Field(default_factory=list)
    is_complete: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.lessons and not self.stacks


class Stack(LessonContainer):
    kind: Literal["stack"] = "stack"
    id: str = Field(default_factory=lambda: _new_id("stack"))
    name: str = Field(..., min_length=1)
    color: str = "#3b82f6"
    description: str = ""
    total_time: int = 0
    total_activities: int = 0
    custom_objectives: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)


class Unit(LessonContainer):
    kind: Literal["unit"] = "unit"
    id: str = Field(default_factory=lambda: _new_id("unit"))
    name: str = Field(..., min_length=1)
    description: str = ""
    color: str = "#8b5cf6"
    term: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


Container = Annotated[Union[HalfTerm, Stack, Unit], Field(discriminator="kind")]


# (id, display name, month range) for the six fixed teaching periods.
HALF_TERM_PERIODS: tuple[tuple[str, str, str], ...] = (
    ("A1", "Autumn 1", "Sep-Oct"),
    ("A2", "Autumn 2", "Nov-Dec"),
    ("SP1", "Spring 1", "Jan-Feb"),
    ("SP2", "Spring 2", "Mar-Apr"),
    ("SM1", "Summer 1", "Apr-May"),
    ("SM2", "Summer 2", "Jun-Jul"),
)
HALF_TERM_IDS: tuple[str, ...] = tuple(period[0] for period in HALF_TERM_PERIODS)


def default_half_terms() -> list[HalfTerm]:
    """Return the six empty half-terms in calendar order."""

    return [HalfTerm(id=id_, name=name, months=months) for id_, name, months in HALF_TERM_PERIODS]


# ---------------------------------------------------------------------------
# Drafts and persistence payloads
# ---------------------------------------------------------------------------


class Draft(BaseModel):
    """In-progress, not yet committed edit state of a lesson."""

    context: str
    lesson_number: Optional[str] = None
    title: str = ""
    activities: list[Activity] = Field(default_factory=list)
    notes: str = ""
    custom_header: Optional[str] = None
    custom_footer: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> int:
        return sum(activity.duration for activity in self.activities)

    @property
    def is_empty(self) -> bool:
        return not self.activities and not self.title.strip()


class HierarchySnapshot(BaseModel):
    """Everything stored for one teaching context."""

    context: str
    lessons: list[Lesson] = Field(default_factory=list)
    half_terms: list[HalfTerm] = Field(default_factory=list)
    stacks: list[Stack] = Field(default_factory=list)
    units: list[Unit] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# HTTP payloads
# ---------------------------------------------------------------------------


class LessonAssignment(BaseModel):
    lesson_number: str = Field(..., min_length=1)


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class NumberedLesson(BaseModel):
    display_number: int
    lesson_number: str
    title: str
    total_time: int


class ContainerView(BaseModel):
    id: str
    name: str
    lessons: list[NumberedLesson] = Field(default_factory=list)


class DuplicateResponse(BaseModel):
    source: str
    lesson_number: str


__all__ = [
    "Activity",
    "Category",
    "Container",
    "ContainerView",
    "DEFAULT_YEAR_GROUPS",
    "Draft",
    "DuplicateResponse",
    "HALF_TERM_IDS",
    "HALF_TERM_PERIODS",
    "HalfTerm",
    "HierarchySnapshot",
    "Lesson",
    "LessonAssignment",
    "LessonContainer",
    "NumberedLesson",
    "ReorderRequest",
    "Stack",
    "Unit",
    "YearGroup",
    "default_half_terms",
]
