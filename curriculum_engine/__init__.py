"""Curriculum hierarchy and lesson assignment engine."""
from __future__ import annotations

__version__ = "0.1.0"
