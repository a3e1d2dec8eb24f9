"""In-memory authoritative hierarchy for one teaching context."""
from __future__ import annotations

import contextlib
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterator

from ..config import LIBRARY_CONTAINER_ID
from ..errors import InvariantViolation, NotFoundError
from ..schemas import (
    HALF_TERM_IDS,
    HalfTerm,
    HierarchySnapshot,
    Lesson,
    LessonContainer,
    Stack,
    Unit,
    default_half_terms,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class HierarchyState:
    """Lessons, containers and membership edges for a single context.

    A committed state is never mutated; writers work on a :meth:`clone`.
    """

    context: str
    lessons: dict[str, Lesson] = field(default_factory=dict)
    half_terms: dict[str, HalfTerm] = field(
        default_factory=lambda: {term.id: term for term in default_half_terms()}
    )
    stacks: dict[str, Stack] = field(default_factory=dict)
    units: dict[str, Unit] = field(default_factory=dict)

    def clone(self) -> "HierarchyState":
        return HierarchyState(
            context=self.context,
            lessons={key: lesson.model_copy(deep=True) for key, lesson in self.lessons.items()},
            half_terms={key: term.model_copy(deep=True) for key, term in self.half_terms.items()},
            stacks={key: stack.model_copy(deep=True) for key, stack in self.stacks.items()},
            units={key: unit.model_copy(deep=True) for key, unit in self.units.items()},
        )

    # -- lookups -----------------------------------------------------------

    def lesson(self, lesson_number: str) -> Lesson:
        try:
            return self.lessons[lesson_number]
        except KeyError:
            raise NotFoundError("Lesson", lesson_number) from None

    def half_term(self, half_term_id: str) -> HalfTerm:
        try:
            return self.half_terms[half_term_id]
        except KeyError:
            raise NotFoundError("Half-term", half_term_id) from None

    def stack(self, stack_id: str) -> Stack:
        try:
            return self.stacks[stack_id]
        except KeyError:
            raise NotFoundError("Stack", stack_id) from None

    def unit(self, unit_id: str) -> Unit:
        try:
            return self.units[unit_id]
        except KeyError:
            raise NotFoundError("Unit", unit_id) from None

    def container(self, container_id: str) -> LessonContainer:
        """Return the container with ``container_id``; the library is a synthetic container."""

        if container_id == LIBRARY_CONTAINER_ID:
            return LessonContainer(id=LIBRARY_CONTAINER_ID, lessons=list(self.lessons))
        for mapping in (self.half_terms, self.stacks, self.units):
            if container_id in mapping:
                return mapping[container_id]
        raise NotFoundError("Container", container_id)

    def half_term_for(self, lesson_number: str) -> HalfTerm | None:
        for term in self.half_terms.values():
            if lesson_number in term.lessons:
                return term
        return None

    def to_snapshot(self) -> HierarchySnapshot:
        return HierarchySnapshot(
            context=self.context,
            lessons=list(self.lessons.values()),
            half_terms=list(self.half_terms.values()),
            stacks=list(self.stacks.values()),
            units=list(self.units.values()),
        )


def check_invariants(state: HierarchyState) -> None:
    """Raise :class:`InvariantViolation` if ``state`` breaks a hierarchy rule."""

    if tuple(state.half_terms) != HALF_TERM_IDS:
        raise InvariantViolation(
            f"Half-terms must be exactly {', '.join(HALF_TERM_IDS)}; got {', '.join(state.half_terms)}"
        )

    owners: dict[str, str] = {}
    for term in state.half_terms.values():
        duplicates = [number for number, count in Counter(term.lessons).items() if count > 1]
        if duplicates:
            raise InvariantViolation(
                f"Lesson {duplicates[0]} appears more than once in {term.name} ({term.id})"
            )
        for number in term.lessons:
            previous = owners.get(number)
            if previous is not None:
                raise InvariantViolation(
                    f"Lesson {number} cannot be in both {previous} and {term.id}; "
                    f"remove it from {previous} first"
                )
            owners[number] = term.id
        if term.is_complete and term.is_empty:
            raise InvariantViolation(f"{term.name} ({term.id}) has no lessons or stacks and cannot be complete")


def sanitize_snapshot(snapshot: HierarchySnapshot) -> HierarchyState:
    """Build a valid state from stored data, repairing legacy membership lists.

    Half-terms are forced into the six fixed periods, orphaned and duplicated
    lesson ids are dropped, and a lesson listed in several half-terms is kept
    only in the earliest one.
    """

    state = HierarchyState(context=snapshot.context)
    state.lessons = {lesson.lesson_number: lesson for lesson in snapshot.lessons}
    state.stacks = {stack.id: stack for stack in snapshot.stacks}
    state.units = {unit.id: unit for unit in snapshot.units}

    stored_terms = {term.id: term for term in snapshot.half_terms}
    claimed: set[str] = set()
    for term_id, term in state.half_terms.items():
        stored = stored_terms.get(term_id)
        if stored is None:
            continue
        lessons: list[str] = []
        for number in stored.lessons:
            if number not in state.lessons:
                LOGGER.warning("Dropping orphaned lesson %s from half-term %s", number, term_id)
                continue
            if number in claimed:
                LOGGER.warning("Lesson %s already assigned elsewhere; dropping from %s", number, term_id)
                continue
            claimed.add(number)
            lessons.append(number)
        term.lessons = lessons
        term.stacks = list(dict.fromkeys(stack_id for stack_id in stored.stacks if stack_id in state.stacks))
        term.is_complete = stored.is_complete and not term.is_empty

    for term_id in stored_terms.keys() - set(HALF_TERM_IDS):
        LOGGER.warning("Ignoring unknown half-term %s in context %s", term_id, snapshot.context)

    check_invariants(state)
    return state


Listener = Callable[[HierarchyState], None]


class HierarchyStore:
    """Holds the committed :class:`HierarchyState` for one teaching context.

    Reads go through :attr:`state`, which always returns the last fully
    applied state. Writes go through :meth:`transaction` and are reserved for
    the assignment, duplication and draft services.
    """

    def __init__(self, context: str, state: HierarchyState | None = None) -> None:
        if state is not None and state.context != context:
            raise ValueError(f"State belongs to context {state.context!r}, not {context!r}")
        self.context = context
        self._state = state or HierarchyState(context=context)
        check_invariants(self._state)
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self.version = 0

    @classmethod
    def from_snapshot(cls, snapshot: HierarchySnapshot) -> "HierarchyStore":
        return cls(snapshot.context, sanitize_snapshot(snapshot))

    @property
    def state(self) -> HierarchyState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for committed states; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    @contextlib.contextmanager
    def transaction(self) -> Iterator[HierarchyState]:
        """Yield a working copy; commit it atomically if it is valid.

        Any exception, including :class:`InvariantViolation` from the final
        check, discards the working copy and leaves the store unchanged. A
        working copy equal to the committed state is dropped without a new
        version or notification.
        """

        with self._lock:
            working = self._state.clone()
            yield working
            if working == self._state:
                return
            check_invariants(working)
            self._state = working
            self.version += 1
        for listener in list(self._listeners):
            listener(working)


__all__ = [
    "HierarchyState",
    "HierarchyStore",
    "check_invariants",
    "sanitize_snapshot",
]
