"""Filter and sort projection used by every list view."""

from __future__ import annotations

import pytest

from app.filters import GENRE_CODES, filter_by_kind, project
from app.models import FilterConfig, MediaItem


def item(media_id: int, **fields) -> MediaItem:
    return MediaItem(id=media_id, **fields)


def names(items: list[MediaItem]) -> list[str]:
    return [entry.display_name for entry in items]


def test_rating_threshold_then_alpha_sort() -> None:
    items = [
        item(1, name="Zeta", vote_average=8),
        item(2, name="Alpha", vote_average=5),
        item(3, name="Beta", vote_average=9),
    ]

    result = project(items, FilterConfig(min_vote=7, genre="all", sort="alpha"))

    assert names(result) == ["Beta", "Zeta"]


def test_threshold_is_inclusive() -> None:
    items = [item(1, title="Edge", vote_average=7.0), item(2, title="Below", vote_average=6.9)]

    assert names(project(items, FilterConfig(min_vote=7))) == ["Edge"]


def test_horror_filter_sorted_by_year_descending() -> None:
    items = [
        item(1, title="Old scare", genre_ids=[27], release_date="1999-10-01"),
        item(2, title="Comedy", genre_ids=[35], release_date="2024-01-01"),
        item(3, title="New scare", genre_ids=[27, 53], release_date="2023-05-12"),
        item(4, name="Scary show", genre_ids=[27], first_air_date="2010-02-02"),
    ]

    result = project(items, FilterConfig(genre="horror", sort="year"))

    assert names(result) == ["New scare", "Scary show", "Old scare"]


@pytest.mark.parametrize(
    ("genre", "code"),
    [("action", 10759), ("action", 28), ("scifi", 10765), ("scifi", 878)],
)
def test_genre_selectors_include_tv_variants(genre: str, code: int) -> None:
    matching = item(1, title="Match", genre_ids=[code])
    other = item(2, title="Other", genre_ids=[18])

    assert names(project([matching, other], FilterConfig(genre=genre))) == ["Match"]
    assert code in GENRE_CODES[genre]


def test_recent_preserves_input_order() -> None:
    items = [item(3, title="C"), item(1, title="A"), item(2, title="B")]

    assert names(project(items, FilterConfig(sort="recent"))) == ["C", "A", "B"]


def test_missing_fields_sort_as_empty_strings() -> None:
    untitled = item(1, vote_average=5)
    dated = item(2, title="Dated", release_date="2020-01-01")

    alpha = project([dated, untitled], FilterConfig(sort="alpha"))
    year = project([untitled, dated], FilterConfig(sort="year"))

    assert [entry.id for entry in alpha] == [1, 2]
    assert [entry.id for entry in year] == [2, 1]


def test_alpha_sort_ignores_case_and_accents() -> None:
    items = [item(1, title="zorro"), item(2, title="Élite"), item(3, title="amour")]

    assert names(project(items, FilterConfig(sort="alpha"))) == ["amour", "Élite", "zorro"]


def test_project_does_not_mutate_input() -> None:
    items = [item(2, title="B", vote_average=1), item(1, title="A", vote_average=9)]
    snapshot = list(items)

    result = project(items, FilterConfig(sort="alpha", min_vote=5))

    assert items == snapshot
    assert result is not items


def test_filter_by_kind_uses_inferred_kind() -> None:
    items = [item(1, title="Film"), item(2, name="Show"), item(3, name="Doc", media_type="movie")]

    assert [entry.id for entry in filter_by_kind(items, "movie")] == [1, 3]
    assert [entry.id for entry in filter_by_kind(items, "series")] == [2]
    assert len(filter_by_kind(items, "all")) == 3


def test_filter_config_from_query_parameters() -> None:
    config = FilterConfig.from_request(
        {"minVote": "6.5", "genre": "SciFi", "sort": "year", "gridColumns": "6"}
    )

    assert config.min_vote == 6.5
    assert config.genre == "scifi"
    assert config.sort == "year"
    assert config.grid_columns == 6


@pytest.mark.parametrize(
    "params",
    [{"minVote": "11"}, {"genre": "western"}, {"sort": "random"}, {"gridColumns": "3"}],
)
def test_filter_config_rejects_invalid_values(params: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        FilterConfig.from_request(params)
