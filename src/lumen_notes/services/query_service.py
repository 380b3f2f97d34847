"""Pure derivation of filtered, sorted views over a note collection.

Nothing in this module mutates its input; every function returns new lists.
Tag and category matching is exact and case-sensitive.
"""

from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from lumen_notes.models.schema import Note, NotesQuery, NoteStats

_DATE_FIELDS = {"createdAt": "created_at", "updatedAt": "updated_at"}


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_search_term(note: Note, search_term: str) -> bool:
    """Case-insensitive substring match over title, content, tags and category."""
    term = search_term.lower()
    return (
        _contains(note.title, term)
        or _contains(note.content, term)
        or any(_contains(tag, term) for tag in note.tags)
        or _contains(note.category, term)
    )


def _sort_key(sort_by: str) -> Callable[[Note], Any]:
    if sort_by == "title":
        return lambda note: note.title.lower()
    if sort_by in _DATE_FIELDS:
        attr = _DATE_FIELDS[sort_by]
        return lambda note: getattr(note, attr)
    if sort_by == "category":
        return lambda note: (note.category or "").lower()
    raise ValueError(f"Unsupported sort field: {sort_by}")


def query_notes(notes: Sequence[Note], options: Optional[NotesQuery] = None) -> List[Note]:
    """Derive the view described by ``options``.

    Filters run in order (deleted, pinned, category, tags, search term),
    then a stable sort, then offset/limit pagination.
    """
    options = options or NotesQuery()
    filtered = list(notes)

    if not options.include_deleted:
        filtered = [note for note in filtered if not note.is_deleted]

    if options.is_pinned is not None:
        filtered = [note for note in filtered if note.is_pinned == options.is_pinned]

    if options.category:
        filtered = [note for note in filtered if note.category == options.category]

    if options.tags:
        wanted = set(options.tags)
        filtered = [note for note in filtered if wanted.intersection(note.tags)]

    if options.search_term:
        filtered = [
            note for note in filtered if matches_search_term(note, options.search_term)
        ]

    # sorted() is stable in both directions, so equal keys keep input order
    filtered = sorted(
        filtered,
        key=_sort_key(options.sort_by),
        reverse=options.sort_order == "desc",
    )

    if options.is_paginated:
        start = options.offset or 0
        end = start + options.limit if options.limit is not None else None
        filtered = filtered[start:end]

    return filtered


def _active(notes: Iterable[Note]) -> List[Note]:
    return [note for note in notes if not note.is_deleted]


def list_categories(notes: Sequence[Note]) -> List[str]:
    """Distinct categories of active notes, sorted."""
    return sorted({note.category for note in _active(notes) if note.category})


def list_tags(notes: Sequence[Note]) -> List[str]:
    """Distinct tags of active notes, sorted."""
    return sorted({tag for note in _active(notes) for tag in note.tags})


def compute_stats(notes: Sequence[Note]) -> NoteStats:
    """Statistics over active notes; ``deleted`` counts the soft-deleted ones."""
    active = _active(notes)
    average_length = (
        sum(len(note.content) for note in active) / len(active) if active else 0.0
    )
    return NoteStats(
        total=len(active),
        pinned=sum(1 for note in active if note.is_pinned),
        favorites=sum(1 for note in active if note.is_favorite),
        deleted=len(notes) - len(active),
        categories=len(list_categories(active)),
        tags=len(list_tags(active)),
        average_length=round(average_length, 2),
        last_modified=max((note.updated_at for note in active), default=None),
    )


def filter_notes(
    notes: Sequence[Note],
    categories: Optional[List[str]] = None,
    tags: Optional[List[str]] = None,
    is_pinned: Optional[bool] = None,
    is_deleted: Optional[bool] = None,
    date_range: Optional[Tuple[datetime, datetime]] = None,
    has_category: Optional[bool] = None,
    has_tags: Optional[bool] = None,
) -> List[Note]:
    """Filter by several criteria at once; every given criterion must hold.

    ``date_range`` is an inclusive ``(start, end)`` bound on ``updated_at``.
    """
    def keep(note: Note) -> bool:
        if categories and note.category not in categories:
            return False
        if tags and not set(tags).intersection(note.tags):
            return False
        if is_pinned is not None and note.is_pinned != is_pinned:
            return False
        if is_deleted is not None and note.is_deleted != is_deleted:
            return False
        if date_range is not None:
            start, end = date_range
            if note.updated_at < start or note.updated_at > end:
                return False
        if has_category is not None and bool(note.category) != has_category:
            return False
        if has_tags is not None and bool(note.tags) != has_tags:
            return False
        return True

    return [note for note in notes if keep(note)]


def sort_notes(
    notes: Sequence[Note],
    sort_by: str = "updatedAt",
    sort_order: str = "desc",
    pinned_first: bool = True,
) -> List[Note]:
    """Sort by ``createdAt``, ``updatedAt``, ``title`` or ``category``.

    With ``pinned_first`` the pinned notes float to the top while keeping
    the requested order within each group.
    """
    ordered = sorted(notes, key=_sort_key(sort_by), reverse=sort_order == "desc")
    if pinned_first:
        ordered = sorted(ordered, key=lambda note: not note.is_pinned)
    return ordered
