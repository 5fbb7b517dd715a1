"""Filtering and ordering shared by every list view."""

from __future__ import annotations

from typing import Iterable, Sequence

from .models import FilterConfig, GenreKey, MediaItem
from .utils import collation_key


# Provider genre codes per selector; action and scifi include the TV variants.
GENRE_CODES: dict[GenreKey, frozenset[int]] = {
    "action": frozenset({28, 10759}),
    "comedy": frozenset({35}),
    "drama": frozenset({18}),
    "scifi": frozenset({878, 10765}),
    "horror": frozenset({27}),
}


def matches_genre(item: MediaItem, genre: GenreKey) -> bool:
    if genre == "all":
        return True
    return not GENRE_CODES[genre].isdisjoint(item.genre_ids)


def project(items: Iterable[MediaItem], filters: FilterConfig) -> list[MediaItem]:
    """Return the items passing ``filters`` in the requested order.

    ``recent`` keeps the input order, ``alpha`` sorts by display name and
    ``year`` sorts by the primary date string, newest first. Missing names and
    dates compare as empty strings. The input sequence is never modified.
    """

    selected = [
        item
        for item in items
        if item.vote_average >= filters.min_vote and matches_genre(item, filters.genre)
    ]

    if filters.sort == "alpha":
        selected.sort(key=lambda item: collation_key(item.display_name))
    elif filters.sort == "year":
        selected.sort(key=lambda item: item.primary_date, reverse=True)
    return selected


def filter_by_kind(items: Sequence[MediaItem], kind: str) -> list[MediaItem]:
    if kind == "all":
        return list(items)
    return [item for item in items if item.kind == kind]
