"""Durable persistence boundary for lessons, half-terms, stacks and units."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Protocol, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from .db import SessionLocal, get_session
from .db.models import HalfTermRecord, LessonRecord, StackRecord, UnitRecord
from .schemas import HalfTerm, HierarchySnapshot, Lesson, Stack, Unit

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceBackend(Protocol):
    """Async storage contract. Every write is an upsert and safe to retry."""

    async def load_all(self, context: str) -> HierarchySnapshot: ...

    async def save_lesson(self, context: str, lesson: Lesson) -> None: ...

    async def save_half_term(self, context: str, half_term: HalfTerm) -> None: ...

    async def save_stack(self, context: str, stack: Stack) -> None: ...

    async def save_unit(self, context: str, unit: Unit, position: int) -> None: ...

    async def delete_lesson_remote(self, context: str, lesson_number: str) -> None: ...

    async def delete_stack_remote(self, context: str, stack_id: str) -> None: ...

    async def delete_unit_remote(self, context: str, unit_id: str) -> None: ...


class SqlAlchemyBackend:
    """:class:`PersistenceBackend` over SQLAlchemy, running session work off the event loop."""

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self._in_session, func, *args))

    def _in_session(self, func: Callable[..., T], *args: Any) -> T:
        with get_session(self._session_factory) as session:
            return func(session, *args)

    # -- reads -------------------------------------------------------------

    async def load_all(self, context: str) -> HierarchySnapshot:
        return await self._run(_load_all, context)

    # -- writes ------------------------------------------------------------

    async def save_lesson(self, context: str, lesson: Lesson) -> None:
        await self._run(_upsert_lesson, context, lesson)

    async def save_half_term(self, context: str, half_term: HalfTerm) -> None:
        await self._run(_upsert_half_term, context, half_term)

    async def save_stack(self, context: str, stack: Stack) -> None:
        await self._run(_upsert_stack, context, stack)

    async def save_unit(self, context: str, unit: Unit, position: int) -> None:
        await self._run(_upsert_unit, context, unit, position)

    async def delete_lesson_remote(self, context: str, lesson_number: str) -> None:
        await self._run(
            _delete_where,
            LessonRecord,
            context,
            LessonRecord.lesson_number == lesson_number,
        )

    async def delete_stack_remote(self, context: str, stack_id: str) -> None:
        await self._run(_delete_where, StackRecord, context, StackRecord.stack_id == stack_id)

    async def delete_unit_remote(self, context: str, unit_id: str) -> None:
        await self._run(_delete_where, UnitRecord, context, UnitRecord.unit_id == unit_id)


def _load_all(session: Session, context: str) -> HierarchySnapshot:
    lessons = session.scalars(
        select(LessonRecord).where(LessonRecord.context == context).order_by(LessonRecord.id)
    ).all()
    half_terms = session.scalars(
        select(HalfTermRecord).where(HalfTermRecord.context == context)
    ).all()
    stacks = session.scalars(
        select(StackRecord).where(StackRecord.context == context).order_by(StackRecord.id)
    ).all()
    units = session.scalars(
        select(UnitRecord)
        .where(UnitRecord.context == context)
        .order_by(UnitRecord.position, UnitRecord.id)
    ).all()

    LOGGER.info(
        "Loaded context %s: %d lessons, %d stacks, %d units",
        context,
        len(lessons),
        len(stacks),
        len(units),
    )
    return HierarchySnapshot(
        context=context,
        lessons=[Lesson.model_validate(record.payload) for record in lessons],
        half_terms=[
            HalfTerm(
                id=record.half_term_id,
                name=record.half_term_id,
                months="",
                lessons=list(record.lessons or []),
                stacks=list(record.stacks or []),
                is_complete=record.is_complete,
            )
            for record in half_terms
        ],
        stacks=[Stack.model_validate(record.payload) for record in stacks],
        units=[Unit.model_validate(record.payload) for record in units],
    )


def _upsert_lesson(session: Session, context: str, lesson: Lesson) -> None:
    record = session.scalar(
        select(LessonRecord).where(
            LessonRecord.context == context,
            LessonRecord.lesson_number == lesson.lesson_number,
        )
    )
    if record is None:
        record = LessonRecord(context=context, lesson_number=lesson.lesson_number)
        session.add(record)
    record.title = lesson.title
    record.payload = lesson.model_dump(mode="json")
    record.updated_at = lesson.updated_at


def _upsert_half_term(session: Session, context: str, half_term: HalfTerm) -> None:
    record = session.scalar(
        select(HalfTermRecord).where(
            HalfTermRecord.context == context,
            HalfTermRecord.half_term_id == half_term.id,
        )
    )
    if record is None:
        record = HalfTermRecord(context=context, half_term_id=half_term.id)
        session.add(record)
    record.lessons = list(half_term.lessons)
    record.stacks = list(half_term.stacks)
    record.is_complete = half_term.is_complete


def _upsert_stack(session: Session, context: str, stack: Stack) -> None:
    record = session.scalar(
        select(StackRecord).where(StackRecord.context == context, StackRecord.stack_id == stack.id)
    )
    if record is None:
        record = StackRecord(context=context, stack_id=stack.id)
        session.add(record)
    record.name = stack.name
    record.payload = stack.model_dump(mode="json")


def _upsert_unit(session: Session, context: str, unit: Unit, position: int) -> None:
    record = session.scalar(
        select(UnitRecord).where(UnitRecord.context == context, UnitRecord.unit_id == unit.id)
    )
    if record is None:
        record = UnitRecord(context=context, unit_id=unit.id)
        session.add(record)
    record.name = unit.name
    record.position = position
    record.payload = unit.model_dump(mode="json")


def _delete_where(session: Session, model: type, context: str, criterion: Any) -> None:
    session.execute(delete(model).where(model.context == context, criterion))


__all__ = ["PersistenceBackend", "SqlAlchemyBackend"]
