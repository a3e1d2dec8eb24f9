"""Lesson drafts: client-local scratch persistence and focus reconciliation."""
from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from ..config import DRAFT_KEY_PREFIX, SCRATCH_STORE_PATH
from ..errors import PersistenceError, PlannerError, RangeError
from ..schemas import Activity, Draft, Lesson
from .assignment import AssignmentManager

LOGGER = logging.getLogger(__name__)


def draft_key(context: str) -> str:
    return f"{DRAFT_KEY_PREFIX}{context}"


def lesson_draft_key(context: str, lesson_number: str) -> str:
    """Scratch key for edits of an existing lesson, kept apart from the new-lesson draft."""

    return f"{draft_key(context)}:lesson:{lesson_number}"


class ScratchStore(Protocol):
    def get(self, key: str) -> Draft | None: ...

    def set(self, key: str, draft: Draft) -> None: ...

    def clear(self, key: str) -> None: ...


class MemoryScratchStore:
    """Scratch store kept in process memory; stores serialised copies."""

    def __init__(self) -> None:
        self._items: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> Draft | None:
        payload = self._items.get(key)
        return None if payload is None else Draft.model_validate(payload)

    def set(self, key: str, draft: Draft) -> None:
        self._items[key] = draft.model_dump(mode="json")

    def clear(self, key: str) -> None:
        self._items.pop(key, None)


class JsonScratchStore:
    """Thread-safe JSON-file scratch store, one entry per draft key."""

    def __init__(self, storage_path: Path | None = None) -> None:
        self.storage_path = storage_path or SCRATCH_STORE_PATH
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.storage_path.exists():
            self.storage_path.write_text("{}", encoding="utf-8")
        self._lock = threading.Lock()

    def get(self, key: str) -> Draft | None:
        with self._lock:
            payload = self._read_all().get(key)
        if payload is None:
            return None
        try:
            return Draft.model_validate(payload)
        except ValidationError:
            LOGGER.warning("Discarding unreadable draft stored under %s", key)
            return None

    def set(self, key: str, draft: Draft) -> None:
        with self._lock:
            items = self._read_all()
            items[key] = draft.model_dump(mode="json")
            self._write_all(items)

    def clear(self, key: str) -> None:
        with self._lock:
            items = self._read_all()
            if items.pop(key, None) is not None:
                self._write_all(items)

    def _read_all(self) -> dict[str, Any]:
        try:
            data = json.loads(self.storage_path.read_text(encoding="utf-8"))
        except (FileNotFoundError, json.JSONDecodeError):
            data = {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, items: dict[str, Any]) -> None:
        payload = json.dumps(items, indent=2, ensure_ascii=False)
        self.storage_path.write_text(payload, encoding="utf-8")


def drafts_match(left: Draft, right: Draft) -> bool:
    """Compare the fields that decide whether a stored draft differs from memory."""

    return (
        left.title == right.title
        and len(left.activities) == len(right.activities)
        and left.duration == right.duration
        and left.notes == right.notes
        and left.lesson_number == right.lesson_number
    )


class DraftState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    HIDDEN = "hidden"
    SAVED = "saved"


class DraftSession:
    """One lesson-under-construction for a teaching context.

    States run ``IDLE -> EDITING -> (HIDDEN <-> EDITING) -> SAVED -> IDLE``.
    Every edit is written to the scratch store, new lessons under
    ``draft:<context>`` and existing lessons under their own key; regaining
    focus adopts the stored draft when it differs from memory. Saving commits through the
    assignment manager and keeps the scratch entry so editing can continue.
    """

    def __init__(
        self,
        context: str,
        scratch_store: ScratchStore,
        assignments: AssignmentManager,
    ) -> None:
        self.context = context
        self.key = draft_key(context)
        self._scratch = scratch_store
        self.assignments = assignments
        self.state = DraftState.IDLE
        self._resume_state = DraftState.EDITING
        # Lessons created by this session's new-lesson saves.
        self._created: set[str] = set()
        self.draft = Draft(context=context)
        self.dirty = False

    # -- lifecycle -------------------------------------------------------

    def start_new(self) -> Draft:
        """Begin a new lesson, silently resuming a non-empty stored draft.

        A stored draft bound to an existing lesson is only resumed when this
        session created that lesson; otherwise the editor starts blank.
        """

        self.key = draft_key(self.context)
        stored = self._scratch.get(self.key)
        if stored is not None and not stored.is_empty and self._is_resumable(stored):
            LOGGER.info("Resuming stored draft for %s", self.context)
            self.draft = stored
        else:
            self.draft = Draft(context=self.context)
        self.dirty = False
        self.state = DraftState.EDITING
        return self.draft

    def edit_lesson(self, lesson_number: str) -> Draft:
        lesson = self.assignments.store.state.lesson(lesson_number)
        self.key = lesson_draft_key(self.context, lesson.lesson_number)
        self.draft = Draft(
            context=self.context,
            lesson_number=lesson.lesson_number,
            title=lesson.title,
            activities=[activity.model_copy(deep=True) for activity in lesson.activities],
            notes=lesson.notes,
            custom_header=lesson.custom_header,
            custom_footer=lesson.custom_footer,
        )
        self.dirty = False
        self.state = DraftState.EDITING
        self._write()
        return self.draft

    def hide(self) -> None:
        """The editing surface lost focus; flush the draft one last time."""

        if self.state not in (DraftState.EDITING, DraftState.SAVED):
            return
        self._write()
        self._resume_state = self.state
        self.state = DraftState.HIDDEN

    def focus(self) -> bool:
        """The editing surface regained focus; returns True if the stored draft was adopted."""

        if self.state is not DraftState.HIDDEN:
            return False
        stored = self._scratch.get(self.key)
        if stored is None or drafts_match(stored, self.draft):
            self.state = self._resume_state
            return False
        LOGGER.info("Stored draft for %s differs from memory; adopting it", self.context)
        self.draft = stored
        self.dirty = True
        self.state = DraftState.EDITING
        return True

    async def save(self) -> Lesson:
        """Commit the draft as a lesson; the scratch entry is kept."""

        self._require_editing()
        number = self.draft.lesson_number
        if number is None:
            number = self.assignments.next_lesson_number()
            self._created.add(number)
        existing = self.assignments.store.state.lessons.get(number)
        lesson = Lesson(
            lesson_number=number,
            title=self.draft.title,
            activities=[activity.model_copy(deep=True) for activity in self.draft.activities],
            notes=self.draft.notes,
            objectives=list(existing.objectives) if existing else [],
            custom_header=self.draft.custom_header,
            custom_footer=self.draft.custom_footer,
        )
        self.draft = self.draft.model_copy(update={"lesson_number": number})
        try:
            saved = await self.assignments.save_lesson(lesson)
        except PersistenceError:
            # The lesson is in the local store; the write is queued for retry.
            self._mark_saved()
            raise
        self._mark_saved()
        return saved

    def discard(self) -> None:
        """Throw the draft away and start from a blank slate."""

        self._scratch.clear(self.key)
        self.key = draft_key(self.context)
        self.draft = Draft(context=self.context)
        self.dirty = False
        self.state = DraftState.IDLE

    def close(self) -> None:
        self.state = DraftState.IDLE

    def should_block_navigation(self) -> bool:
        """Leaving the page with unsaved changes needs confirmation; hiding never does."""

        return self.dirty

    # -- edits -----------------------------------------------------------

    def update(self, **changes: Any) -> Draft:
        allowed = {"title", "notes", "custom_header", "custom_footer"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update draft fields: {', '.join(sorted(unknown))}")
        return self._apply(changes)

    def add_activity(self, activity: Activity, index: int | None = None) -> Draft:
        activities = list(self.draft.activities)
        copy = activity.model_copy(deep=True)
        if index is None:
            activities.append(copy)
        else:
            activities.insert(index, copy)
        return self._apply({"activities": activities})

    def remove_activity(self, index: int) -> Draft:
        activities = list(self.draft.activities)
        self._check_index(index, len(activities))
        activities.pop(index)
        return self._apply({"activities": activities})

    def move_activity(self, from_index: int, to_index: int) -> Draft:
        activities = list(self.draft.activities)
        self._check_index(from_index, len(activities))
        self._check_index(to_index, len(activities))
        activities.insert(to_index, activities.pop(from_index))
        return self._apply({"activities": activities})

    def update_activity(self, index: int, **changes: Any) -> Draft:
        activities = list(self.draft.activities)
        self._check_index(index, len(activities))
        current = activities[index].model_dump()
        current.update(changes)
        activities[index] = Activity.model_validate(current)
        return self._apply({"activities": activities})

    # -- internals -------------------------------------------------------

    def _apply(self, changes: dict[str, Any]) -> Draft:
        self._require_editing()
        payload = self.draft.model_dump()
        payload.update(changes)
        self.draft = Draft.model_validate(payload)
        self.dirty = True
        self.state = DraftState.EDITING
        self._write()
        return self.draft

    def _is_resumable(self, draft: Draft) -> bool:
        return draft.lesson_number is None or draft.lesson_number in self._created

    def _require_editing(self) -> None:
        if self.state not in (DraftState.EDITING, DraftState.SAVED):
            raise PlannerError(f"Draft for {self.context} is {self.state.value}, not being edited")

    def _mark_saved(self) -> None:
        self.dirty = False
        self.state = DraftState.SAVED
        self._write()

    def _write(self) -> None:
        self._scratch.set(self.key, self.draft)

    @staticmethod
    def _check_index(index: int, size: int) -> None:
        if not 0 <= index < size:
            raise RangeError(f"Activity index {index} is outside the draft's {size} activities")


__all__ = [
    "DraftSession",
    "DraftState",
    "JsonScratchStore",
    "MemoryScratchStore",
    "ScratchStore",
    "draft_key",
    "drafts_match",
    "lesson_draft_key",
]
