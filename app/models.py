"""Pydantic models describing catalog records and view payloads."""

from __future__ import annotations

from typing import Literal, Mapping

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

ContentType = Literal["movie", "series"]
GenreKey = Literal["all", "action", "comedy", "drama", "scifi", "horror"]
SortMode = Literal["recent", "year", "alpha"]

_KIND_ALIASES = {"movie": "movie", "series": "series", "tv": "series", "show": "series"}


def normalise_kind(value: object) -> ContentType | None:
    """Map provider kind labels (``tv``) onto the internal vocabulary."""

    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError("Kind must be a string")
    kind = _KIND_ALIASES.get(value.strip().lower())
    if kind is None:
        raise ValueError(f"Unsupported media kind: {value}")
    return kind  # type: ignore[return-value]


class NextEpisode(BaseModel):
    """The upcoming episode of a series, as reported by the provider."""

    model_config = ConfigDict(extra="ignore")

    air_date: str | None = None
    season_number: int
    episode_number: int
    name: str | None = None


class MediaItem(BaseModel):
    """A movie or series record from the catalog provider."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    title: str | None = None
    name: str | None = None
    media_type: ContentType | None = Field(
        default=None, validation_alias=AliasChoices("media_type", "kind")
    )
    poster_path: str | None = None
    backdrop_path: str | None = None
    overview: str = ""
    vote_average: float = 0.0
    genre_ids: list[int] = Field(default_factory=list)
    release_date: str | None = None
    first_air_date: str | None = None
    status: str | None = None
    runtime: int | None = None
    episode_run_time: list[int] = Field(default_factory=list)
    next_episode_to_air: NextEpisode | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None

    @field_validator("media_type", mode="before")
    @classmethod
    def _parse_kind(cls, value: object) -> object:
        return normalise_kind(value)

    @field_validator("overview", mode="before")
    @classmethod
    def _blank_overview(cls, value: object) -> object:
        return value or ""

    @field_validator("vote_average", mode="before")
    @classmethod
    def _default_vote(cls, value: object) -> object:
        return 0.0 if value is None else value

    @property
    def kind(self) -> ContentType:
        """Return the kind, inferring it from the title field when absent."""

        if self.media_type is not None:
            return self.media_type
        return "movie" if self.title else "series"

    @property
    def display_name(self) -> str:
        return self.title or self.name or ""

    @property
    def primary_date(self) -> str:
        return self.release_date or self.first_air_date or ""

    def with_kind(self) -> "MediaItem":
        """Return a copy whose kind is explicit."""

        if self.media_type is not None:
            return self
        return self.model_copy(update={"media_type": self.kind})


class CastMember(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    character: str | None = None
    profile_path: str | None = None


class VideoResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    key: str
    name: str
    site: str
    type: str


class WatchProvider(BaseModel):
    model_config = ConfigDict(extra="ignore")

    provider_id: int
    provider_name: str
    logo_path: str | None = None


class AgendaEntry(MediaItem):
    """A to-watch item with its next relevant date resolved."""

    display_date: str
    label: str
    sort_key: int = Field(exclude=True)


class FilterConfig(BaseModel):
    """Filter and sort options shared by every list view."""

    model_config = ConfigDict(populate_by_name=True)

    min_vote: float = Field(
        default=0.0,
        ge=0,
        le=10,
        validation_alias=AliasChoices("minVote", "min_vote"),
    )
    genre: GenreKey = "all"
    sort: SortMode = "recent"
    grid_columns: Literal[4, 5, 6] = Field(
        default=5, validation_alias=AliasChoices("gridColumns", "grid_columns")
    )

    @classmethod
    def from_request(cls, params: Mapping[str, str]) -> "FilterConfig":
        payload = {key: value for key, value in params.items() if value != ""}
        return cls.model_validate(payload)

    @field_validator("genre", "sort", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("grid_columns", mode="before")
    @classmethod
    def _parse_columns(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError as exc:
                raise ValueError("gridColumns must be an integer") from exc
        return value


class ListCounts(BaseModel):
    all: int = 0
    movie: int = 0
    series: int = 0


class ListView(BaseModel):
    """A stored list after kind and filter projection."""

    items: list[MediaItem]
    counts: ListCounts


class DiscoverView(BaseModel):
    hero: list[MediaItem]
    items: list[MediaItem]


class MediaDetails(BaseModel):
    """Everything the detail view shows for a single record."""

    item: MediaItem
    poster_url: str | None = None
    backdrop_url: str | None = None
    cast: list[CastMember] = Field(default_factory=list)
    videos: list[VideoResult] = Field(default_factory=list)
    providers: list[WatchProvider] = Field(default_factory=list)
    watched: bool = False
    in_watchlist: bool = False


class Identity(BaseModel):
    """The current identity; ``email`` is ``None`` for the guest."""

    email: str | None = None
    display_name: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.email is None


GUEST = Identity()
