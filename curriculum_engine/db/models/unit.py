"""Instructional unit model."""
from __future__ import annotations

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .. import Base


class UnitRecord(Base):
    """Free-form folder of lesson numbers; ``position`` keeps the owner's ordering."""

    __tablename__ = "units"
    __table_args__ = (UniqueConstraint("context", "unit_id", name="uq_units_context_unit"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    context: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"UnitRecord(context={self.context!r}, unit_id={self.unit_id!r})"
