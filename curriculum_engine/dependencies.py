"""FastAPI dependencies for shared services."""
from __future__ import annotations

import asyncio

from .persistence import PersistenceBackend, SqlAlchemyBackend
from .planner import CurriculumPlanner
from .services.drafts import JsonScratchStore, ScratchStore


backend: PersistenceBackend = SqlAlchemyBackend()
_scratch_store: ScratchStore | None = None
_planners: dict[str, CurriculumPlanner] = {}
_load_lock = asyncio.Lock()


def get_backend() -> PersistenceBackend:
    """Return the process-wide persistence backend."""

    return backend


def get_scratch_store() -> ScratchStore:
    global _scratch_store
    if _scratch_store is None:
        _scratch_store = JsonScratchStore()
    return _scratch_store


async def get_planner(context: str) -> CurriculumPlanner:
    """Return the planner for ``context``, loading it from storage on first use."""

    planner = _planners.get(context)
    if planner is not None:
        return planner
    async with _load_lock:
        planner = _planners.get(context)
        if planner is None:
            planner = await CurriculumPlanner.load(
                context, get_backend(), scratch_store=get_scratch_store()
            )
            _planners[context] = planner
    return planner


def reset_planners() -> None:
    _planners.clear()
