"""Application configuration settings."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Final

BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
DATA_DIR: Final[Path] = Path(os.getenv("CURRICULUM_DATA_DIR", str(BASE_DIR / "data")))

DATABASE_URL: Final[str] = os.getenv(
    "DATABASE_URL", f"sqlite:///{(DATA_DIR / 'curriculum.db').as_posix()}"
)
SQLALCHEMY_ECHO: Final[bool] = os.getenv("SQLALCHEMY_ECHO") == "1"

# Client-local scratch store used for in-progress lesson drafts.
SCRATCH_STORE_PATH: Final[Path] = Path(
    os.getenv("SCRATCH_STORE_PATH", str(DATA_DIR / "scratch_drafts.json"))
)
DRAFT_KEY_PREFIX: Final[str] = "draft:"

# Reserved container id for the unfiltered lesson library.
LIBRARY_CONTAINER_ID: Final[str] = "library"

COPY_TITLE_PREFIX: Final[str] = "Copy of "
