"""SQLAlchemy model package."""
from .half_term import HalfTermRecord
from .lesson import LessonRecord
from .stack import StackRecord
from .unit import UnitRecord

__all__ = [
    "HalfTermRecord",
    "LessonRecord",
    "StackRecord",
    "UnitRecord",
]
