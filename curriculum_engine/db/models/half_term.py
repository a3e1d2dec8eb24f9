"""Half-term membership model."""
from __future__ import annotations

from sqlalchemy import JSON, Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .. import Base


class HalfTermRecord(Base):
    """Ordered lesson and stack membership of one half-term in a context."""

    __tablename__ = "half_terms"
    __table_args__ = (UniqueConstraint("context", "half_term_id", name="uq_half_terms_context_term"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    context: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    half_term_id: Mapped[str] = mapped_column(String(8), nullable=False)
    lessons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    stacks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"HalfTermRecord(context={self.context!r}, half_term_id={self.half_term_id!r})"
