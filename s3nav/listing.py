from __future__ import annotations
"""Derived views over fetched listings: search filter and column sort."""
from datetime import datetime, timezone
import locale
from typing import Iterable, Sequence

from .models import ObjectEntry, SortDirection, SortKey

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def filter_entries(entries: Iterable[ObjectEntry], search_term: str) -> list[ObjectEntry]:
    needle = (search_term or "").lower()
    if not needle:
        return list(entries)
    return [entry for entry in entries if needle in entry.key.lower()]


def _name_key(entry: ObjectEntry):
    # Case-insensitive collation first; on ties lowercase sorts before uppercase.
    return (locale.strxfrm(entry.key.casefold()), entry.key.swapcase())


def _timestamp(entry: ObjectEntry) -> datetime:
    value = entry.last_modified
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sort_entries(
    entries: Iterable[ObjectEntry],
    key: SortKey,
    direction: SortDirection,
) -> list[ObjectEntry]:
    reverse = direction == SortDirection.DESC
    if key == SortKey.SIZE:
        return sorted(entries, key=lambda entry: entry.size, reverse=reverse)
    if key == SortKey.LAST_MODIFIED:
        return sorted(entries, key=_timestamp, reverse=reverse)
    return sorted(entries, key=_name_key, reverse=reverse)


def project(
    entries: Sequence[ObjectEntry],
    *,
    search_term: str,
    key: SortKey,
    direction: SortDirection,
) -> list[ObjectEntry]:
    return sort_entries(filter_entries(entries, search_term), key, direction)


def toggle_sort(
    active_key: SortKey,
    active_direction: SortDirection,
    clicked: SortKey,
) -> tuple[SortKey, SortDirection]:
    """Return the sort after clicking a column header."""

    if clicked != active_key:
        return clicked, SortDirection.ASC
    if active_direction == SortDirection.ASC:
        return clicked, SortDirection.DESC
    return clicked, SortDirection.ASC
