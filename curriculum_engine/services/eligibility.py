"""Decide which activity categories are selectable for a teaching context."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from ..schemas import DEFAULT_YEAR_GROUPS, Category, YearGroup

LOGGER = logging.getLogger(__name__)

# Historical abbreviation -> phrase used in full year-group names.
_ABBREVIATIONS: dict[str, str] = {
    "lkg": "lower kindergarten",
    "ukg": "upper kindergarten",
}

_LEGACY_DEFAULT_MAP: dict[str, bool] = {"LKG": True, "UKG": True, "Reception": True}


@dataclass(slots=True)
class ResolvedContext:
    """Eligibility-map keys for a teaching context.

    ``primary`` decides eligibility. ``fallbacks`` are only read for category
    maps saved before keys were normalised to year-group ids.
    """

    primary: str
    fallbacks: list[str] = field(default_factory=list)


def is_legacy_default(year_groups: Mapping[str, bool]) -> bool:
    """Return True for the eligibility map every category was once created with.

    Early releases saved ``{LKG: True, UKG: True, Reception: True}`` on every
    new category whether or not the owner chose it, so a map of exactly that
    shape carries no intent and is treated as unassigned. Only the exact
    three-key shape qualifies.
    """

    return dict(year_groups) == _LEGACY_DEFAULT_MAP and all(
        value is True for value in year_groups.values()
    )


def is_unassigned(category: Category) -> bool:
    return not category.year_groups or is_legacy_default(category.year_groups)


def keys_match(left: str, right: str) -> bool:
    """Compare two eligibility keys, accepting the LKG/UKG naming pairs both ways."""

    a = left.strip().lower()
    b = right.strip().lower()
    if a == b:
        return True
    for abbreviation, phrase in _ABBREVIATIONS.items():
        if a == abbreviation and phrase in b:
            return True
        if b == abbreviation and phrase in a:
            return True
    return False


def _lookup(year_groups: Mapping[str, bool], key: str) -> bool | None:
    """Return the map value for ``key`` or None when the map has no such entry."""

    if key in year_groups:
        return year_groups[key]
    for candidate, value in year_groups.items():
        if keys_match(candidate, key):
            return value
    return None


def _contains_words(haystack: str, needle: str) -> bool:
    """Return True when ``needle`` appears in ``haystack`` as whole words."""

    pattern = rf"(?<!\w){re.escape(needle)}(?!\w)"
    return re.search(pattern, haystack) is not None


def _best_name_match(context: str, year_groups: Sequence[YearGroup]) -> YearGroup | None:
    lowered = context.lower()
    for year_group in year_groups:
        if year_group.name.lower() == lowered:
            return year_group

    # "Reception Music" names Reception; "Kindergarten" names Lower Kindergarten.
    # Fragments inside a word ("Art" in "Kindergarten") name nothing.
    candidates = [
        year_group
        for year_group in year_groups
        if _contains_words(lowered, year_group.name.lower())
        or _contains_words(year_group.name.lower(), lowered)
    ]
    if not candidates:
        return None
    # The longest name is the most specific match ("Upper Kindergarten" over "Kindergarten").
    return max(candidates, key=lambda year_group: len(year_group.name))


def resolve_context(
    context: str | None,
    year_groups: Sequence[YearGroup] = DEFAULT_YEAR_GROUPS,
    categories: Iterable[Category] = (),
) -> ResolvedContext | None:
    """Resolve a teaching context to its eligibility keys, or None when unknown."""

    if context is None or not context.strip():
        return None
    context = context.strip()

    for year_group in year_groups:
        if year_group.id == context:
            return ResolvedContext(primary=year_group.id, fallbacks=[year_group.name])

    match = _best_name_match(context, year_groups)
    if match is not None:
        return ResolvedContext(primary=match.id, fallbacks=[match.name])

    # Last resort: a raw context string is only a key if some category uses it.
    for category in categories:
        if _lookup(category.year_groups, context) is not None:
            return ResolvedContext(primary=context)
    return None


def is_eligible(category: Category, resolved: ResolvedContext) -> bool:
    if is_unassigned(category):
        return False
    value = _lookup(category.year_groups, resolved.primary)
    if value is not None:
        return value is True
    for key in resolved.fallbacks:
        value = _lookup(category.year_groups, key)
        if value is not None:
            return value is True
    return False


def eligible_categories(
    context: str | None,
    categories: Iterable[Category],
    year_groups: Sequence[YearGroup] = DEFAULT_YEAR_GROUPS,
) -> list[str]:
    """Return the names of categories selectable in ``context``, in input order.

    An unresolvable context returns every category unfiltered.
    """

    prepared = list(categories)
    resolved = resolve_context(context, year_groups, prepared)
    if resolved is None:
        LOGGER.debug("Context %r not resolved; offering all categories", context)
        return _unique_names(prepared)

    selected = [category for category in prepared if is_eligible(category, resolved)]
    LOGGER.debug(
        "Context %r resolved to %s: %d of %d categories eligible",
        context,
        resolved.primary,
        len(selected),
        len(prepared),
    )
    return _unique_names(selected)


def _unique_names(categories: Iterable[Category]) -> list[str]:
    seen: set[str] = set()
    names: list[str] = []
    for category in categories:
        if category.name not in seen:
            seen.add(category.name)
            names.append(category.name)
    return names


__all__ = [
    "ResolvedContext",
    "eligible_categories",
    "is_eligible",
    "is_legacy_default",
    "is_unassigned",
    "keys_match",
    "resolve_context",
]
