"""Membership mutations for lessons, half-terms, stacks and units."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Literal, Sequence

from ..errors import InvariantViolation, NotFoundError, PersistenceError, RangeError
from ..persistence import PersistenceBackend
from ..schemas import Activity, HalfTerm, Lesson, Stack, Unit
from .store import HierarchyState, HierarchyStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeleteMode:
    """How far :meth:`AssignmentManager.delete_lesson` reaches.

    Build one with :meth:`permanent` or :meth:`from_half_term`; there is no
    default so callers always state which deletion they mean.
    """

    kind: Literal["permanent", "from_half_term"]
    half_term_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind == "from_half_term" and not self.half_term_id:
            raise ValueError("from_half_term deletion needs a half-term id")
        if self.kind == "permanent" and self.half_term_id is not None:
            raise ValueError("permanent deletion does not take a half-term id")

    @classmethod
    def permanent(cls) -> "DeleteMode":
        return cls("permanent")

    @classmethod
    def from_half_term(cls, half_term_id: str) -> "DeleteMode":
        return cls("from_half_term", half_term_id)

    @property
    def is_permanent(self) -> bool:
        return self.kind == "permanent"


_ENTITY_BY_OPERATION: dict[str, str] = {
    "save_lesson": "lesson",
    "delete_lesson_remote": "lesson",
    "save_half_term": "half_term",
    "save_stack": "stack",
    "delete_stack_remote": "stack",
    "save_unit": "unit",
    "delete_unit_remote": "unit",
}


@dataclass(slots=True)
class PendingWrite:
    """A backend write captured with the payload it was issued with."""

    operation: str
    identifier: str
    call: Callable[[], Awaitable[None]]

    @property
    def key(self) -> tuple[str, str]:
        return _ENTITY_BY_OPERATION.get(self.operation, self.operation), self.identifier


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _label(term: HalfTerm) -> str:
    return f"{term.name} ({term.id})"


def _release_if_empty(term: HalfTerm) -> None:
    if term.is_complete and term.is_empty:
        LOGGER.info("Half-term %s is now empty; clearing its complete flag", term.id)
        term.is_complete = False


def _refresh_stack_totals(state: HierarchyState, stack: Stack) -> None:
    members = [state.lessons[number] for number in stack.lessons if number in state.lessons]
    stack.total_time = sum(lesson.total_time for lesson in members)
    stack.total_activities = sum(len(lesson.activities) for lesson in members)


def next_lesson_number(state: HierarchyState) -> str:
    """Return one more than the highest numeric lesson number in ``state``."""

    numbers = [int(number) for number in state.lessons if number.isdigit()]
    return str(max(numbers, default=0) + 1)


class AssignmentManager:
    """The only code path that mutates half-term, stack and unit membership.

    Each operation applies its in-memory change atomically before its first
    suspension point and then writes the touched entities to ``backend``.
    A failed write raises :class:`PersistenceError` but keeps the in-memory
    change; the write is queued for :meth:`retry_pending`.
    """

    def __init__(self, store: HierarchyStore, backend: PersistenceBackend | None = None) -> None:
        self.store = store
        self._backend = backend
        self.pending_writes: list[PendingWrite] = []

    @property
    def context(self) -> str:
        return self.store.context

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _lesson_write(self, lesson: Lesson) -> PendingWrite:
        context, payload = self.context, lesson.model_copy(deep=True)
        return PendingWrite(
            "save_lesson",
            lesson.lesson_number,
            lambda: self._backend.save_lesson(context, payload),
        )

    def _half_term_write(self, term: HalfTerm) -> PendingWrite:
        context, payload = self.context, term.model_copy(deep=True)
        return PendingWrite("save_half_term", term.id, lambda: self._backend.save_half_term(context, payload))

    def _stack_write(self, stack: Stack) -> PendingWrite:
        context, payload = self.context, stack.model_copy(deep=True)
        return PendingWrite("save_stack", stack.id, lambda: self._backend.save_stack(context, payload))

    def _unit_write(self, unit: Unit, position: int) -> PendingWrite:
        context, payload = self.context, unit.model_copy(deep=True)
        return PendingWrite(
            "save_unit",
            unit.id,
            lambda: self._backend.save_unit(context, payload, position),
        )

    def _unit_writes(self, state: HierarchyState, unit_ids: Iterable[str]) -> list[PendingWrite]:
        positions = {unit_id: index for index, unit_id in enumerate(state.units)}
        return [self._unit_write(state.units[unit_id], positions[unit_id]) for unit_id in unit_ids]

    def _delete_write(self, operation: str, identifier: str) -> PendingWrite:
        context = self.context
        method = getattr(self._backend, operation, None)
        return PendingWrite(operation, identifier, lambda: method(context, identifier))

    async def _persist(self, writes: Sequence[PendingWrite]) -> None:
        if self._backend is None or not writes:
            return

        failures: list[tuple[PendingWrite, Exception]] = []
        for write in writes:
            try:
                await write.call()
            except Exception as exc:  # noqa: BLE001 - local state stays authoritative
                LOGGER.exception("%s failed for %s in context %s", write.operation, write.identifier, self.context)
                self._drop_pending(write.key)
                self.pending_writes.append(write)
                failures.append((write, exc))
            else:
                # A newer write for the same entity makes any queued one stale.
                self._drop_pending(write.key)

        if failures:
            write, exc = failures[0]
            raise PersistenceError(write.operation, write.identifier, str(exc)) from exc

    def _drop_pending(self, key: tuple[str, str]) -> None:
        self.pending_writes = [write for write in self.pending_writes if write.key != key]

    async def retry_pending(self) -> int:
        """Re-issue every queued write; returns how many were attempted."""

        pending, self.pending_writes = self.pending_writes, []
        LOGGER.info("Retrying %d pending writes for context %s", len(pending), self.context)
        await self._persist(pending)
        return len(pending)

    # ------------------------------------------------------------------
    # Half-term membership
    # ------------------------------------------------------------------

    async def assign_lesson_to_half_term(self, lesson_number: str, half_term_id: str) -> HalfTerm:
        """Move ``lesson_number`` into ``half_term_id``, appending it to the ordered list."""

        writes: list[PendingWrite] = []
        with self.store.transaction() as state:
            state.lesson(lesson_number)
            target = state.half_term(half_term_id)
            current = state.half_term_for(lesson_number)
            if current is not None and current.id == target.id:
                return target.model_copy(deep=True)
            if current is not None:
                current.lessons.remove(lesson_number)
                _release_if_empty(current)
                writes.append(self._half_term_write(current))
            target.lessons.append(lesson_number)
            writes.append(self._half_term_write(target))
            result = target.model_copy(deep=True)

        LOGGER.info(
            "Assigned lesson %s to %s%s",
            lesson_number,
            half_term_id,
            f" (moved from {current.id})" if current is not None else "",
        )
        await self._persist(writes)
        return result

    async def remove_lesson_from_half_term(self, lesson_number: str, half_term_id: str) -> HalfTerm:
        """Strip the membership edge only; the lesson stays in the library."""

        with self.store.transaction() as state:
            term = state.half_term(half_term_id)
            if lesson_number not in term.lessons:
                raise NotFoundError("Lesson", lesson_number, container=_label(term))
            term.lessons.remove(lesson_number)
            _release_if_empty(term)
            result = term.model_copy(deep=True)
            writes = [self._half_term_write(term)]

        LOGGER.info("Removed lesson %s from half-term %s", lesson_number, half_term_id)
        await self._persist(writes)
        return result

    async def assign_stack_to_half_term(self, stack_id: str, half_term_id: str) -> HalfTerm:
        with self.store.transaction() as state:
            state.stack(stack_id)
            term = state.half_term(half_term_id)
            if stack_id in term.stacks:
                return term.model_copy(deep=True)
            term.stacks.append(stack_id)
            result = term.model_copy(deep=True)
            writes = [self._half_term_write(term)]

        LOGGER.info("Assigned stack %s to half-term %s", stack_id, half_term_id)
        await self._persist(writes)
        return result

    async def remove_stack_from_half_term(self, stack_id: str, half_term_id: str) -> HalfTerm:
        with self.store.transaction() as state:
            term = state.half_term(half_term_id)
            if stack_id not in term.stacks:
                raise NotFoundError("Stack", stack_id, container=_label(term))
            term.stacks.remove(stack_id)
            _release_if_empty(term)
            result = term.model_copy(deep=True)
            writes = [self._half_term_write(term)]

        await self._persist(writes)
        return result

    async def reorder_lessons_in_half_term(
        self, half_term_id: str, from_index: int, to_index: int
    ) -> HalfTerm:
        with self.store.transaction() as state:
            term = state.half_term(half_term_id)
            size = len(term.lessons)
            for index in (from_index, to_index):
                if not 0 <= index < size:
                    raise RangeError(
                        f"Index {index} is outside {_label(term)}, which has {size} lessons"
                        + (f"; use 0 to {size - 1}" if size else "")
                    )
            moved = term.lessons.pop(from_index)
            term.lessons.insert(to_index, moved)
            result = term.model_copy(deep=True)
            writes = [self._half_term_write(term)]

        await self._persist(writes)
        return result

    async def set_half_term_complete(self, half_term_id: str, is_complete: bool) -> HalfTerm:
        with self.store.transaction() as state:
            term = state.half_term(half_term_id)
            if is_complete and term.is_empty:
                raise InvariantViolation(
                    f"{_label(term)} has no lessons or stacks; add some before marking it complete"
                )
            term.is_complete = is_complete
            result = term.model_copy(deep=True)
            writes = [self._half_term_write(term)]

        await self._persist(writes)
        return result

    # ------------------------------------------------------------------
    # Lesson library
    # ------------------------------------------------------------------

    def next_lesson_number(self) -> str:
        return next_lesson_number(self.store.state)

    async def create_lesson(
        self,
        title: str = "",
        activities: Iterable[Activity] = (),
        *,
        notes: str = "",
        custom_header: str | None = None,
        custom_footer: str | None = None,
    ) -> Lesson:
        """Register a new lesson under the next free lesson number."""

        with self.store.transaction() as state:
            lesson = Lesson(
                lesson_number=next_lesson_number(state),
                title=title,
                activities=[activity.model_copy(deep=True) for activity in activities],
                notes=notes,
                custom_header=custom_header,
                custom_footer=custom_footer,
            )
            state.lessons[lesson.lesson_number] = lesson
            result = lesson.model_copy(deep=True)
            writes = [self._lesson_write(lesson)]

        LOGGER.info("Created lesson %s in context %s", result.lesson_number, self.context)
        await self._persist(writes)
        return result

    async def save_lesson(self, lesson: Lesson) -> Lesson:
        """Insert or replace ``lesson`` in the library, refreshing stacks that contain it."""

        writes: list[PendingWrite] = []
        with self.store.transaction() as state:
            stored = lesson.model_copy(deep=True, update={"updated_at": _now()})
            state.lessons[stored.lesson_number] = stored
            writes.append(self._lesson_write(stored))
            for stack in state.stacks.values():
                if stored.lesson_number in stack.lessons:
                    _refresh_stack_totals(state, stack)
                    writes.append(self._stack_write(stack))
            result = stored.model_copy(deep=True)

        await self._persist(writes)
        return result

    async def delete_lesson(self, lesson_number: str, mode: DeleteMode) -> None:
        """Delete a lesson permanently, or only detach it from one half-term."""

        if not isinstance(mode, DeleteMode):
            raise TypeError(
                "delete_lesson needs DeleteMode.permanent() or DeleteMode.from_half_term(id), "
                f"not {mode!r}"
            )
        if mode.is_permanent:
            await self._delete_permanently(lesson_number)
        else:
            await self.remove_lesson_from_half_term(lesson_number, mode.half_term_id)

    async def _delete_permanently(self, lesson_number: str) -> None:
        writes: list[PendingWrite] = []
        with self.store.transaction() as state:
            state.lesson(lesson_number)
            del state.lessons[lesson_number]
            writes.append(self._delete_write("delete_lesson_remote", lesson_number))

            for term in state.half_terms.values():
                if lesson_number in term.lessons:
                    term.lessons.remove(lesson_number)
                    _release_if_empty(term)
                    writes.append(self._half_term_write(term))

            for stack in state.stacks.values():
                if lesson_number in stack.lessons:
                    stack.lessons.remove(lesson_number)
                    _refresh_stack_totals(state, stack)
                    writes.append(self._stack_write(stack))

            touched_units = []
            for unit in state.units.values():
                if lesson_number in unit.lessons:
                    unit.lessons.remove(lesson_number)
                    unit.updated_at = _now()
                    touched_units.append(unit.id)
            writes.extend(self._unit_writes(state, touched_units))

        LOGGER.info("Permanently deleted lesson %s from context %s", lesson_number, self.context)
        await self._persist(writes)

    # ------------------------------------------------------------------
    # Stacks
    # ------------------------------------------------------------------

    async def create_stack(
        self,
        name: str,
        lessons: Iterable[str] = (),
        *,
        color: str | None = None,
        description: str = "",
        custom_objectives: Iterable[str] = (),
    ) -> Stack:
        with self.store.transaction() as state:
            members = list(dict.fromkeys(lessons))
            for number in members:
                state.lesson(number)
            stack = Stack(
                name=name,
                lessons=members,
                description=description,
                custom_objectives=list(custom_objectives),
                **({"color": color} if color else {}),
            )
            _refresh_stack_totals(state, stack)
            state.stacks[stack.id] = stack
            result = stack.model_copy(deep=True)
            writes = [self._stack_write(stack)]

        await self._persist(writes)
        return result

    async def update_stack_lessons(self, stack_id: str, lessons: Iterable[str]) -> Stack:
        with self.store.transaction() as state:
            stack = state.stack(stack_id)
            members = list(dict.fromkeys(lessons))
            for number in members:
                state.lesson(number)
            stack.lessons = members
            _refresh_stack_totals(state, stack)
            result = stack.model_copy(deep=True)
            writes = [self._stack_write(stack)]

        await self._persist(writes)
        return result

    async def delete_stack(self, stack_id: str) -> None:
        writes: list[PendingWrite] = []
        with self.store.transaction() as state:
            state.stack(stack_id)
            del state.stacks[stack_id]
            writes.append(self._delete_write("delete_stack_remote", stack_id))
            for term in state.half_terms.values():
                if stack_id in term.stacks:
                    term.stacks.remove(stack_id)
                    _release_if_empty(term)
                    writes.append(self._half_term_write(term))

        await self._persist(writes)

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    async def create_unit(
        self,
        name: str,
        *,
        description: str = "",
        color: str | None = None,
        term: str | None = None,
        lessons: Iterable[str] = (),
    ) -> Unit:
        with self.store.transaction() as state:
            members = list(dict.fromkeys(lessons))
            for number in members:
                state.lesson(number)
            unit = Unit(
                name=name,
                description=description,
                term=term,
                lessons=members,
                **({"color": color} if color else {}),
            )
            state.units[unit.id] = unit
            result = unit.model_copy(deep=True)
            writes = self._unit_writes(state, [unit.id])

        await self._persist(writes)
        return result

    async def add_lesson_to_unit(self, unit_id: str, lesson_number: str) -> Unit:
        with self.store.transaction() as state:
            unit = state.unit(unit_id)
            state.lesson(lesson_number)
            if lesson_number in unit.lessons:
                return unit.model_copy(deep=True)
            unit.lessons.append(lesson_number)
            unit.updated_at = _now()
            result = unit.model_copy(deep=True)
            writes = self._unit_writes(state, [unit_id])

        await self._persist(writes)
        return result

    async def remove_lesson_from_unit(self, unit_id: str, lesson_number: str) -> Unit:
        with self.store.transaction() as state:
            unit = state.unit(unit_id)
            if lesson_number not in unit.lessons:
                raise NotFoundError("Lesson", lesson_number, container=f"unit {unit.name!r}")
            unit.lessons.remove(lesson_number)
            unit.updated_at = _now()
            result = unit.model_copy(deep=True)
            writes = self._unit_writes(state, [unit_id])

        await self._persist(writes)
        return result

    async def reorder_units(self, unit_ids: Sequence[str]) -> list[Unit]:
        """Apply the owner's unit ordering; ``unit_ids`` must list every unit once."""

        with self.store.transaction() as state:
            for unit_id in unit_ids:
                state.unit(unit_id)
            if sorted(unit_ids) != sorted(state.units):
                raise InvariantViolation("Unit order must list every unit exactly once")
            state.units = {unit_id: state.units[unit_id] for unit_id in unit_ids}
            result = [unit.model_copy(deep=True) for unit in state.units.values()]
            writes = self._unit_writes(state, unit_ids)

        await self._persist(writes)
        return result

    async def delete_unit(self, unit_id: str) -> None:
        with self.store.transaction() as state:
            state.unit(unit_id)
            del state.units[unit_id]
            writes = [self._delete_write("delete_unit_remote", unit_id)]

        await self._persist(writes)


__all__ = [
    "AssignmentManager",
    "DeleteMode",
    "PendingWrite",
    "next_lesson_number",
]
