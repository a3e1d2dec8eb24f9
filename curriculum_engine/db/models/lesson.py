"""Lesson model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .. import Base


class LessonRecord(Base):
    """Stored lesson, keyed by its permanent lesson number within a context."""

    __tablename__ = "lessons"
    __table_args__ = (UniqueConstraint("context", "lesson_number", name="uq_lessons_context_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    context: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    lesson_number: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"LessonRecord(context={self.context!r}, lesson_number={self.lesson_number!r})"
