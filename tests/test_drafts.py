"""Tests for draft sessions and scratch stores."""
from __future__ import annotations

import pytest

from conftest import RecordingBackend, make_activity, seeded_state
from curriculum_engine.errors import PersistenceError, PlannerError, RangeError
from curriculum_engine.schemas import Draft
from curriculum_engine.services.assignment import AssignmentManager
from curriculum_engine.services.drafts import (
    DraftSession,
    DraftState,
    JsonScratchStore,
    MemoryScratchStore,
    draft_key,
    lesson_draft_key,
)
from curriculum_engine.services.store import HierarchyStore


pytestmark = pytest.mark.anyio("asyncio")

CONTEXT = "Reception Music"


@pytest.fixture
def scratch() -> MemoryScratchStore:
    return MemoryScratchStore()


@pytest.fixture
def session_backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def session(scratch, session_backend) -> DraftSession:
    store = HierarchyStore(CONTEXT, seeded_state(CONTEXT, ["1", "2"]))
    return DraftSession(CONTEXT, scratch, AssignmentManager(store, session_backend))


def test_focus_restores_stored_draft_over_blank_memory(session, scratch) -> None:
    session.start_new()
    session.update(title="Rhythm Fun")
    session.hide()
    session.draft = Draft(context=CONTEXT)
    session.dirty = False

    assert session.focus() is True

    assert session.draft.title == "Rhythm Fun"
    assert session.dirty is True
    assert session.state is DraftState.EDITING


def test_tab_switch_without_changes_is_not_dirty(session) -> None:
    session.start_new()
    session.hide()

    assert session.focus() is False
    assert session.dirty is False
    assert session.should_block_navigation() is False


def test_second_reconciliation_changes_nothing(session, scratch) -> None:
    session.start_new()
    session.hide()
    stored = Draft(context=CONTEXT, title="Body percussion", activities=[make_activity("Clap")])
    scratch.set(draft_key(CONTEXT), stored)
    scratch.set(draft_key(CONTEXT), stored)

    assert session.focus() is True
    session.dirty = False
    session.hide()

    assert session.focus() is False
    assert session.dirty is False
    assert session.draft.title == "Body percussion"


def test_start_new_adopts_non_empty_stored_draft(session, scratch) -> None:
    scratch.set(draft_key(CONTEXT), Draft(context=CONTEXT, title="Half-finished"))

    draft = session.start_new()

    assert draft.title == "Half-finished"
    assert session.dirty is False


def test_start_new_ignores_empty_stored_draft(session, scratch) -> None:
    scratch.set(draft_key(CONTEXT), Draft(context=CONTEXT, notes="only notes"))

    assert session.start_new().notes == ""


def test_every_edit_is_written_to_scratch(session, scratch) -> None:
    session.start_new()
    session.add_activity(make_activity("Echo song", duration=4))
    session.add_activity(make_activity("Warm-up", "Warm-Up", 3), index=0)
    session.move_activity(0, 1)
    session.update_activity(0, duration=6)

    stored = scratch.get(draft_key(CONTEXT))
    assert [activity.name for activity in stored.activities] == ["Echo song", "Warm-up"]
    assert stored.duration == 9
    assert session.should_block_navigation() is True


def test_activities_are_copied_into_the_draft(session) -> None:
    source = make_activity("Echo song")
    session.start_new()
    session.add_activity(source)

    source.name = "Renamed elsewhere"

    assert session.draft.activities[0].name == "Echo song"


def test_activity_index_out_of_range(session) -> None:
    session.start_new()

    with pytest.raises(RangeError, match="0 activities"):
        session.remove_activity(0)


def test_edits_require_an_open_draft(session) -> None:
    with pytest.raises(PlannerError, match="idle"):
        session.update(title="Too early")
    session.start_new()
    with pytest.raises(ValueError, match="lesson_number"):
        session.update(lesson_number="9")


async def test_save_creates_lesson_and_keeps_scratch(session, scratch) -> None:
    session.start_new()
    session.update(title="Steady beat")

    lesson = await session.save()

    assert lesson.lesson_number == "3"
    assert session.state is DraftState.SAVED
    assert session.dirty is False
    assert scratch.get(draft_key(CONTEXT)).lesson_number == "3"


async def test_save_then_keep_editing_updates_same_lesson(session) -> None:
    session.start_new()
    session.update(title="Steady beat")
    await session.save()

    session.update(title="Steady beat, part two")
    assert session.state is DraftState.EDITING
    assert session.dirty is True
    lesson = await session.save()

    lessons = session.assignments.store.state.lessons
    assert lesson.lesson_number == "3"
    assert sorted(lessons) == ["1", "2", "3"]
    assert lessons["3"].title == "Steady beat, part two"


async def test_failed_save_keeps_lesson_number(session, session_backend) -> None:
    session.start_new()
    session.update(title="Offline lesson")
    session_backend.offline = True

    with pytest.raises(PersistenceError):
        await session.save()

    assert session.draft.lesson_number == "3"
    assert session.dirty is False
    session_backend.offline = False
    await session.save()
    assert sorted(session.assignments.store.state.lessons) == ["1", "2", "3"]


async def test_editing_existing_lesson_keeps_objectives(session) -> None:
    store = session.assignments.store
    with store.transaction() as state:
        state.lessons["2"].objectives = ["Keep a steady pulse"]

    session.edit_lesson("2")
    session.update(notes="Use the big drum")
    saved = await session.save()

    assert saved.lesson_number == "2"
    assert saved.objectives == ["Keep a steady pulse"]
    assert store.state.lessons["2"].notes == "Use the big drum"


def test_discard_clears_scratch(session, scratch) -> None:
    session.start_new()
    session.update(title="Scrap this")

    session.discard()

    assert scratch.get(draft_key(CONTEXT)) is None
    assert session.state is DraftState.IDLE
    assert session.draft.title == ""


def test_json_scratch_store_round_trip(tmp_path) -> None:
    store = JsonScratchStore(tmp_path / "drafts" / "scratch.json")
    draft = Draft(context="Year1", title="Pitch ladders", activities=[make_activity("Ladder")])

    store.set(draft_key("Year1"), draft)

    reopened = JsonScratchStore(tmp_path / "drafts" / "scratch.json")
    assert reopened.get(draft_key("Year1")) == draft
    assert reopened.get(draft_key("Year2")) is None
    reopened.clear(draft_key("Year1"))
    assert store.get(draft_key("Year1")) is None


def test_json_scratch_store_survives_corrupt_file(tmp_path) -> None:
    path = tmp_path / "scratch.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonScratchStore(path)

    assert store.get(draft_key("Year1")) is None
    store.set(draft_key("Year1"), Draft(context="Year1", title="Fresh"))
    assert store.get(draft_key("Year1")).title == "Fresh"


async def test_close_after_save_returns_to_idle(session, scratch) -> None:
    session.start_new()
    session.update(title="Done for today")
    await session.save()

    session.close()

    assert session.state is DraftState.IDLE
    assert scratch.get(draft_key(CONTEXT)).title == "Done for today"
    assert session.start_new().title == "Done for today"


async def test_editing_existing_lesson_leaves_new_lesson_draft_alone(session, scratch) -> None:
    session.start_new()
    session.update(title="Brand new rhythm lesson")

    session.edit_lesson("2")
    session.update(notes="Tweak the existing one")
    session.close()

    assert scratch.get(draft_key(CONTEXT)).title == "Brand new rhythm lesson"
    assert scratch.get(lesson_draft_key(CONTEXT, "2")).notes == "Tweak the existing one"

    resumed = session.start_new()
    assert resumed.title == "Brand new rhythm lesson"
    assert resumed.lesson_number is None

    lesson = await session.save()
    lessons = session.assignments.store.state.lessons
    assert lesson.lesson_number == "3"
    assert sorted(lessons) == ["1", "2", "3"]
    assert lessons["2"].title == "Lesson title 2"


def test_start_new_does_not_resume_a_draft_bound_to_another_lesson(session, scratch) -> None:
    scratch.set(draft_key(CONTEXT), Draft(context=CONTEXT, lesson_number="2", title="Stale edit"))

    draft = session.start_new()

    assert draft.title == ""
    assert draft.lesson_number is None


async def test_hide_and_focus_after_save_keeps_saved_state(session) -> None:
    session.start_new()
    session.update(title="Steady beat")
    await session.save()

    session.hide()
    assert session.state is DraftState.HIDDEN

    assert session.focus() is False
    assert session.state is DraftState.SAVED
    assert session.dirty is False
