"""FastAPI application exposing the curriculum hierarchy endpoints."""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import init_db
from .routers import planner as planner_router

LOGGER = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Curriculum Planner Service", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(planner_router.router)


@app.on_event("startup")
def startup_event() -> None:  # pragma: no cover - exercised indirectly
    init_db()
    LOGGER.info("Curriculum planner database ready")


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}


__all__ = ["app", "health_check"]
