"""Lesson stack model."""
from __future__ import annotations

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .. import Base


class StackRecord(Base):
    """Named bundle of lesson numbers."""

    __tablename__ = "lesson_stacks"
    __table_args__ = (UniqueConstraint("context", "stack_id", name="uq_lesson_stacks_context_stack"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    context: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    stack_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"StackRecord(context={self.context!r}, stack_id={self.stack_id!r})"
