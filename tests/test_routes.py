"""Endpoint tests calling the router functions directly."""
from __future__ import annotations

import json

import pytest
from fastapi import HTTPException

from conftest import RecordingBackend
from curriculum_engine import dependencies
from curriculum_engine.app import health_check
from curriculum_engine.routers.planner import (
    assign_lesson,
    delete_lesson,
    duplicate_lesson,
    get_category_report,
    get_container,
    list_eligible_categories,
    remove_lesson,
    reorder_lessons,
    replace_categories,
)
from curriculum_engine.schemas import Category, LessonAssignment, ReorderRequest
from curriculum_engine.services.drafts import MemoryScratchStore


pytestmark = pytest.mark.anyio("asyncio")


def test_health_check() -> None:
    assert health_check() == {"status": "ok"}


def test_categories_follow_the_planner_context(planner) -> None:
    names = replace_categories(
        [
            Category(name="Warm-Up"),
            Category(name="Singing", year_groups={"Reception": True}),
            Category(name="Composing", year_groups={"Reception": False, "Year2": True}),
        ],
        planner=planner,
    )

    assert names == ["Singing"]
    assert list_eligible_categories(planner=planner) == ["Singing"]


async def test_assign_and_view_half_term(planner) -> None:
    await assign_lesson("A1", LessonAssignment(lesson_number="7"), planner=planner)
    await assign_lesson("A1", LessonAssignment(lesson_number="2"), planner=planner)

    view = get_container("A1", planner=planner)

    assert view.name == "Autumn 1"
    assert [(item.display_number, item.lesson_number) for item in view.lessons] == [(1, "7"), (2, "2")]
    assert view.lessons[0].title == "Lesson title 7"


async def test_reorder_out_of_range_is_bad_request(planner) -> None:
    await assign_lesson("A1", LessonAssignment(lesson_number="7"), planner=planner)

    with pytest.raises(HTTPException) as excinfo:
        await reorder_lessons("A1", ReorderRequest(from_index=0, to_index=3), planner=planner)

    assert excinfo.value.status_code == 400
    assert "use 0 to 0" in excinfo.value.detail


async def test_unknown_entities_are_not_found(planner) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await remove_lesson("A1", "7", planner=planner)
    assert excinfo.value.status_code == 404

    with pytest.raises(HTTPException) as excinfo:
        get_container("nowhere", planner=planner)
    assert excinfo.value.status_code == 404


async def test_delete_requires_half_term_for_scoped_mode(planner) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await delete_lesson("3", mode="from_half_term", half_term_id=None, planner=planner)

    assert excinfo.value.status_code == 400
    assert "3" in planner.state.lessons


async def test_delete_modes(planner) -> None:
    await assign_lesson("SP1", LessonAssignment(lesson_number="3"), planner=planner)

    result = await delete_lesson("3", mode="from_half_term", half_term_id="SP1", planner=planner)
    assert result == {"status": "deleted", "mode": "from_half_term"}
    assert "3" in planner.state.lessons

    await delete_lesson("3", mode="permanent", half_term_id=None, planner=planner)
    assert "3" not in planner.state.lessons


async def test_duplicate_endpoint(planner) -> None:
    response = await duplicate_lesson("4", planner=planner)

    assert response.source == "4"
    assert response.lesson_number == "4-copy-1"


async def test_storage_failure_is_service_unavailable(planner, backend) -> None:
    backend.offline = True

    with pytest.raises(HTTPException) as excinfo:
        await assign_lesson("A2", LessonAssignment(lesson_number="1"), planner=planner)

    assert excinfo.value.status_code == 503
    assert planner.state.half_terms["A2"].lessons == ["1"]


async def test_category_report_formats(planner) -> None:
    await assign_lesson("A1", LessonAssignment(lesson_number="1"), planner=planner)

    response = get_category_report("A1", format=None, planner=planner)
    rows = json.loads(response.body)["rows"]
    assert [row["category"] for row in rows] == ["Singing", "Rhythm"]

    csv_response = get_category_report("A1", format="CSV", planner=planner)
    assert csv_response.media_type == "text/csv"
    assert "A1_categories.csv" in csv_response.headers["content-disposition"]

    with pytest.raises(HTTPException) as excinfo:
        get_category_report("A1", format="pdf", planner=planner)
    assert excinfo.value.status_code == 400


async def test_get_planner_loads_each_context_once(monkeypatch) -> None:
    backend = RecordingBackend()
    monkeypatch.setattr(dependencies, "backend", backend)
    monkeypatch.setattr(dependencies, "_scratch_store", MemoryScratchStore())
    dependencies.reset_planners()
    try:
        first = await dependencies.get_planner("Year1")
        again = await dependencies.get_planner("Year1")
        other = await dependencies.get_planner("Year2")
    finally:
        dependencies.reset_planners()

    assert first is again
    assert other is not first
    assert other.context == "Year2"
