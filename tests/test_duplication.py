"""Tests for lesson duplication."""
from __future__ import annotations

import pytest

from curriculum_engine.errors import NotFoundError
from curriculum_engine.services.duplication import copy_number


pytestmark = pytest.mark.anyio("asyncio")


async def test_duplicates_get_increasing_copy_numbers(planner) -> None:
    original = planner.state.lessons["5"]

    first = await planner.duplicate_lesson("5")
    second = await planner.duplicate_lesson("5")

    assert (first, second) == ("5-copy-1", "5-copy-2")
    assert planner.state.lessons["5"] == original
    for number in (first, second):
        copy = planner.state.lessons[number]
        assert copy.activities == original.activities
        assert copy.activities[0] is not original.activities[0]
        assert copy.title == "Copy of Lesson title 5"


async def test_duplicates_never_collide(planner) -> None:
    existing = set(planner.state.lessons)

    created = [await planner.duplicate_lesson("1") for _ in range(5)]

    assert len(set(created)) == 5
    assert not existing & set(created)


async def test_copy_is_not_assigned_anywhere(planner) -> None:
    await planner.assignments.assign_lesson_to_half_term("5", "A1")

    new_number = await planner.duplicate_lesson("5")

    assert planner.state.half_terms["A1"].lessons == ["5"]
    assert new_number in planner.state.lessons


async def test_editing_copy_leaves_original_alone(planner) -> None:
    new_number = await planner.duplicate_lesson("2")
    copy = planner.state.lessons[new_number].model_copy(deep=True)
    copy.activities[0].name = "Changed"

    await planner.assignments.save_lesson(copy)

    assert planner.state.lessons["2"].activities[0].name == "Hello song 2"


async def test_duplicate_unknown_lesson_raises(planner) -> None:
    with pytest.raises(NotFoundError):
        await planner.duplicate_lesson("77")


async def test_untitled_lesson_copy_title(planner) -> None:
    await planner.assignments.save_lesson(planner.state.lessons["4"].model_copy(update={"title": ""}))

    new_number = await planner.duplicate_lesson("4")

    assert planner.state.lessons[new_number].title == "Copy of Lesson 4"


def test_copy_number_fills_the_first_gap() -> None:
    assert copy_number("3", {"3", "3-copy-1", "3-copy-3"}) == "3-copy-2"
