"""Teaching-context endpoints for categories, containers and lesson membership."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, StreamingResponse

from ..dependencies import get_planner
from ..errors import InvariantViolation, NotFoundError, PersistenceError, RangeError
from ..planner import CurriculumPlanner
from ..schemas import (
    Category,
    ContainerView,
    DuplicateResponse,
    HalfTerm,
    LessonAssignment,
    NumberedLesson,
    ReorderRequest,
)
from ..services import DeleteMode, category_summary
from ..services.numbering import lesson_display_title


router = APIRouter(prefix="/contexts/{context}", tags=["planner"])


@contextmanager
def _domain_errors() -> Iterator[None]:
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RangeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except InvariantViolation as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PersistenceError as exc:
        # The local change stands; the client may retry the write later.
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc


@router.get("/categories", response_model=list[str])
def list_eligible_categories(planner: CurriculumPlanner = Depends(get_planner)) -> list[str]:
    return planner.eligible_categories()


@router.put("/categories", response_model=list[str])
def replace_categories(
    categories: list[Category] = Body(...),
    planner: CurriculumPlanner = Depends(get_planner),
) -> list[str]:
    planner.categories = list(categories)
    return planner.eligible_categories()


@router.get("/containers/{container_id}", response_model=ContainerView)
def get_container(
    container_id: str, planner: CurriculumPlanner = Depends(get_planner)
) -> ContainerView:
    with _domain_errors():
        state = planner.state
        exported = planner.export_container(container_id)
        lessons = [
            NumberedLesson(
                display_number=position,
                lesson_number=lesson.lesson_number,
                title=lesson_display_title(state, lesson.lesson_number, container_id),
                total_time=lesson.total_time,
            )
            for position, lesson in planner.numbered_lessons(container_id)
        ]
    return ContainerView(id=container_id, name=exported.name, lessons=lessons)


@router.get("/containers/{container_id}/report")
def get_category_report(
    container_id: str,
    format: Optional[str] = Query(default=None),
    planner: CurriculumPlanner = Depends(get_planner),
):
    with _domain_errors():
        exported = planner.export_container(container_id)

    if format is None:
        return JSONResponse(
            {
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "rows": category_summary(exported),
            }
        )
    if format.lower() == "csv":
        csv_data = planner.category_csv(container_id).encode("utf-8")
        return StreamingResponse(
            iter([csv_data]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={container_id}_categories.csv"},
        )
    raise HTTPException(status_code=400, detail="Unsupported format. Use csv.")


@router.post("/half-terms/{half_term_id}/lessons", response_model=HalfTerm)
async def assign_lesson(
    half_term_id: str,
    payload: LessonAssignment,
    planner: CurriculumPlanner = Depends(get_planner),
) -> HalfTerm:
    with _domain_errors():
        return await planner.assignments.assign_lesson_to_half_term(
            payload.lesson_number, half_term_id
        )


@router.delete("/half-terms/{half_term_id}/lessons/{lesson_number}", response_model=HalfTerm)
async def remove_lesson(
    half_term_id: str,
    lesson_number: str,
    planner: CurriculumPlanner = Depends(get_planner),
) -> HalfTerm:
    with _domain_errors():
        return await planner.assignments.remove_lesson_from_half_term(lesson_number, half_term_id)


@router.post("/half-terms/{half_term_id}/reorder", response_model=HalfTerm)
async def reorder_lessons(
    half_term_id: str,
    payload: ReorderRequest,
    planner: CurriculumPlanner = Depends(get_planner),
) -> HalfTerm:
    with _domain_errors():
        return await planner.assignments.reorder_lessons_in_half_term(
            half_term_id, payload.from_index, payload.to_index
        )


@router.delete("/lessons/{lesson_number}")
async def delete_lesson(
    lesson_number: str,
    mode: Literal["permanent", "from_half_term"] = Query(...),
    half_term_id: Optional[str] = Query(default=None),
    planner: CurriculumPlanner = Depends(get_planner),
) -> dict[str, str]:
    try:
        delete_mode = (
            DeleteMode.permanent() if mode == "permanent" else DeleteMode.from_half_term(half_term_id)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with _domain_errors():
        await planner.assignments.delete_lesson(lesson_number, delete_mode)
    return {"status": "deleted", "mode": mode}


@router.post(
    "/lessons/{lesson_number}/duplicate",
    response_model=DuplicateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_lesson(
    lesson_number: str, planner: CurriculumPlanner = Depends(get_planner)
) -> DuplicateResponse:
    with _domain_errors():
        new_number = await planner.duplicate_lesson(lesson_number)
    return DuplicateResponse(source=lesson_number, lesson_number=new_number)


__all__ = [
    "assign_lesson",
    "delete_lesson",
    "duplicate_lesson",
    "get_category_report",
    "get_container",
    "list_eligible_categories",
    "remove_lesson",
    "reorder_lessons",
    "replace_categories",
    "router",
]
