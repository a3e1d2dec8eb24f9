"""Convenient re-exports for the curriculum service layer."""
from __future__ import annotations

from .assignment import AssignmentManager, DeleteMode, PendingWrite
from .drafts import (
    DraftSession,
    DraftState,
    JsonScratchStore,
    MemoryScratchStore,
    ScratchStore,
)
from .duplication import DuplicationService
from .eligibility import eligible_categories, resolve_context
from .export import (
    ExportContainer,
    ExportLesson,
    build_category_csv,
    category_summary,
    resolve_container,
    resolve_lesson,
)
from .numbering import display_number, numbered_lessons
from .store import HierarchyState, HierarchyStore

__all__ = [
    "AssignmentManager",
    "DeleteMode",
    "DraftSession",
    "DraftState",
    "DuplicationService",
    "ExportContainer",
    "ExportLesson",
    "HierarchyState",
    "HierarchyStore",
    "JsonScratchStore",
    "MemoryScratchStore",
    "PendingWrite",
    "ScratchStore",
    "build_category_csv",
    "category_summary",
    "display_number",
    "eligible_categories",
    "numbered_lessons",
    "resolve_container",
    "resolve_context",
    "resolve_lesson",
]
