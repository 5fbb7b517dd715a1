"""Agenda resolution over the to-watch list."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from app.models import ContentType, MediaItem
from app.services.agenda import (
    LABEL_AVAILABLE,
    LABEL_ENDED,
    LABEL_HIATUS,
    LABEL_THEATRICAL,
    NO_DATE_SORT_KEY,
    RELEASED_SORT_KEY,
    AgendaResolver,
    build_entry,
    resolve_agenda,
)
from app.services.tmdb import CatalogNotFoundError

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeCatalog:
    """Serves canned details and records the kinds it was asked for."""

    def __init__(self, records: dict[int, MediaItem], failing: set[int] | None = None):
        self.records = records
        self.failing = failing or set()
        self.calls: list[tuple[int, ContentType]] = []

    async def get_details(self, media_id: int, kind: ContentType) -> MediaItem:
        self.calls.append((media_id, kind))
        await asyncio.sleep(0)
        if media_id in self.failing:
            raise CatalogNotFoundError(f"no record for {media_id}")
        return self.records[media_id]


def show(media_id: int, **fields) -> MediaItem:
    return MediaItem(id=media_id, name=f"Show {media_id}", media_type="series", **fields)


def film(media_id: int, **fields) -> MediaItem:
    return MediaItem(id=media_id, title=f"Film {media_id}", media_type="movie", **fields)


def resolve(catalog: FakeCatalog, items: list[MediaItem], **kwargs) -> list:
    return asyncio.run(AgendaResolver(catalog, **kwargs).resolve(items, now=NOW))


def test_only_scheduled_series_appear() -> None:
    upcoming = show(
        1,
        next_episode_to_air={"air_date": "2025-06-10", "season_number": 3, "episode_number": 4},
    )
    ended = show(2, status="Ended")
    catalog = FakeCatalog({1: upcoming, 2: ended})

    entries = resolve(catalog, [upcoming, ended])

    assert [entry.id for entry in entries] == [1]
    assert entries[0].label == "S3E4"
    assert entries[0].display_date == "2025-06-10"


def test_entries_sorted_by_date_across_kinds() -> None:
    catalog = FakeCatalog(
        {
            1: show(1, next_episode_to_air={"air_date": "2025-09-01", "season_number": 1, "episode_number": 1}),
            2: film(2, release_date="2025-07-04"),
            3: film(3, release_date="2024-01-01"),
            4: show(4, next_episode_to_air={"air_date": "2025-06-02", "season_number": 2, "episode_number": 9}),
        }
    )

    entries = resolve(catalog, list(catalog.records.values()))

    assert [entry.id for entry in entries] == [4, 2, 1]
    assert entries[1].label == LABEL_THEATRICAL


def test_one_failed_lookup_does_not_abort_the_batch() -> None:
    records = {
        1: film(1, release_date="2025-12-25"),
        2: film(2, release_date="2026-01-01"),
        3: show(3, next_episode_to_air={"air_date": "2025-06-05", "season_number": 1, "episode_number": 2}),
    }
    catalog = FakeCatalog(records, failing={2})

    entries = resolve(catalog, list(records.values()))

    assert [entry.id for entry in entries] == [3, 1]
    assert len(catalog.calls) == 3


def test_unexpected_errors_are_contained_per_item() -> None:
    class BrokenCatalog(FakeCatalog):
        async def get_details(self, media_id: int, kind: ContentType) -> MediaItem:
            if media_id == 1:
                raise RuntimeError("boom")
            return await super().get_details(media_id, kind)

    upcoming = film(2, release_date="2025-08-01")
    catalog = BrokenCatalog({2: upcoming})

    entries = resolve(catalog, [film(1), upcoming])

    assert [entry.id for entry in entries] == [2]


def test_slow_lookups_count_as_failures() -> None:
    class SlowCatalog(FakeCatalog):
        async def get_details(self, media_id: int, kind: ContentType) -> MediaItem:
            if media_id == 1:
                await asyncio.sleep(5)
            return await super().get_details(media_id, kind)

    fast = film(2, release_date="2025-08-01")
    catalog = SlowCatalog({1: film(1, release_date="2025-07-01"), 2: fast})

    entries = resolve(catalog, [film(1), fast], lookup_timeout=0.05)

    assert [entry.id for entry in entries] == [2]


def test_pre_epoch_episode_dates_are_dropped() -> None:
    old = show(1, next_episode_to_air={"air_date": "1965-03-01", "season_number": 1, "episode_number": 1})
    upcoming = show(2, next_episode_to_air={"air_date": "2025-06-20", "season_number": 1, "episode_number": 1})
    catalog = FakeCatalog({1: old, 2: upcoming})

    entries = resolve(catalog, [old, upcoming])

    assert build_entry(old, "series", NOW).sort_key < RELEASED_SORT_KEY
    assert [entry.id for entry in entries] == [2]


def test_kind_is_inferred_before_lookup() -> None:
    untyped_movie = MediaItem(id=1, title="Untyped film")
    untyped_show = MediaItem(id=2, name="Untyped show")
    catalog = FakeCatalog(
        {
            1: MediaItem(id=1, title="Untyped film", release_date="2025-07-01"),
            2: MediaItem(
                id=2,
                name="Untyped show",
                next_episode_to_air={"air_date": "2025-06-03", "season_number": 1, "episode_number": 1},
            ),
        }
    )

    entries = resolve(catalog, [untyped_movie, untyped_show])

    assert sorted(catalog.calls) == [(1, "movie"), (2, "series")]
    assert [(entry.id, entry.media_type) for entry in entries] == [(2, "series"), (1, "movie")]


def test_empty_list_makes_no_calls() -> None:
    catalog = FakeCatalog({})

    assert resolve(catalog, []) == []
    assert catalog.calls == []


@pytest.mark.parametrize(
    ("details", "kind", "label", "sort_key"),
    [
        (film(1, release_date="2020-01-01"), "movie", LABEL_AVAILABLE, RELEASED_SORT_KEY),
        (film(1), "movie", "", NO_DATE_SORT_KEY),
        (show(1, status="Ended"), "series", LABEL_ENDED, NO_DATE_SORT_KEY),
        (show(1, status="Returning Series"), "series", LABEL_HIATUS, NO_DATE_SORT_KEY),
    ],
)
def test_build_entry_for_undated_items(
    details: MediaItem, kind: ContentType, label: str, sort_key: int
) -> None:
    entry = build_entry(details, kind, NOW)

    assert entry.label == label
    assert entry.sort_key == sort_key


def test_release_on_resolution_day_counts_as_available() -> None:
    entry = build_entry(film(1, release_date="2025-06-01"), "movie", NOW)

    assert entry.label == LABEL_AVAILABLE
    assert entry.sort_key == RELEASED_SORT_KEY


def test_future_release_sort_key_is_epoch_milliseconds() -> None:
    entry = build_entry(film(1, release_date="2025-06-02"), "movie", NOW)

    expected = int(datetime(2025, 6, 2, tzinfo=timezone.utc).timestamp() * 1000)
    assert entry.sort_key == expected
    assert "sort_key" not in entry.model_dump()


@pytest.mark.anyio("asyncio")
async def test_resolve_agenda_helper_uses_live_clock() -> None:
    catalog = FakeCatalog(
        {1: film(1, release_date="2999-01-01"), 2: film(2, release_date="1999-01-01")}
    )

    entries = await resolve_agenda(catalog, [film(1), film(2)])

    assert [entry.id for entry in entries] == [1]
