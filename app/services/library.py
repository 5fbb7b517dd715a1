"""View-facing operations combining the catalog, the lists and the agenda."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Sequence, TypeVar

from ..filters import filter_by_kind, project
from ..models import (
    AgendaEntry,
    ContentType,
    DiscoverView,
    FilterConfig,
    ListCounts,
    ListView,
    MediaDetails,
    MediaItem,
)
from .agenda import AgendaResolver
from .list_store import ListStore
from .tmdb import BACKDROP_BASE_URL, POSTER_BASE_URL, CatalogError, TMDBClient, build_image_url

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LibraryService:
    """Coordinates catalog lookups with the list store for every view."""

    def __init__(
        self,
        store: ListStore,
        catalog: TMDBClient,
        agenda: AgendaResolver,
        *,
        hero_item_count: int = 4,
    ):
        self._store = store
        self._catalog = catalog
        self._agenda = agenda
        self._hero_item_count = hero_item_count

    @property
    def store(self) -> ListStore:
        return self._store

    async def discover(self, filters: FilterConfig, kind: str = "all") -> DiscoverView:
        """Hero strip plus filtered remainder, from trending or one kind's popular titles."""

        if kind == "all":
            titles = await self._catalog.get_trending()
        else:
            titles = await self._catalog.discover(kind)
        hero = titles[: self._hero_item_count]
        rest = titles[self._hero_item_count :]
        return DiscoverView(hero=hero, items=project(rest, filters))

    async def search(self, query: str, filters: FilterConfig) -> list[MediaItem]:
        results = await self._catalog.search(query)
        return project(results, filters)

    def watchlist(self, filters: FilterConfig, kind: str = "all") -> ListView:
        return self._list_view(self._store.watchlist, filters, kind)

    def watched(self, filters: FilterConfig, kind: str = "all") -> ListView:
        return self._list_view(self._store.watched, filters, kind)

    async def agenda(self) -> list[AgendaEntry]:
        return await self._agenda.resolve(self._store.watchlist)

    async def details(self, media_id: int, kind: ContentType) -> MediaDetails:
        """Return the record with cast, videos and providers.

        Only the main lookup can fail; the secondary lookups fall back to
        empty lists.
        """

        item, cast, videos, providers = await asyncio.gather(
            self._catalog.get_details(media_id, kind),
            self._optional(self._catalog.get_credits(media_id, kind), "cast", media_id),
            self._optional(self._catalog.get_videos(media_id, kind), "videos", media_id),
            self._optional(
                self._catalog.get_watch_providers(media_id, kind), "providers", media_id
            ),
        )
        return MediaDetails(
            item=item,
            poster_url=build_image_url(item.poster_path, POSTER_BASE_URL) or None,
            backdrop_url=build_image_url(item.backdrop_path, BACKDROP_BASE_URL) or None,
            cast=cast,
            videos=videos,
            providers=providers,
            watched=self._store.is_watched(media_id),
            in_watchlist=self._store.is_in_watchlist(media_id),
        )

    async def mark_watched(self, media_id: int, kind: ContentType) -> MediaItem:
        item = await self._catalog.get_details(media_id, kind)
        await self._store.add_to_watched(item)
        return item

    async def unmark_watched(self, media_id: int) -> None:
        await self._store.remove_from_watched(media_id)

    async def add_to_watchlist(self, media_id: int, kind: ContentType) -> MediaItem:
        item = await self._catalog.get_details(media_id, kind)
        await self._store.add_to_watchlist(item)
        return item

    async def remove_from_watchlist(self, media_id: int) -> None:
        await self._store.remove_from_watchlist(media_id)

    @staticmethod
    def _list_view(
        items: Sequence[MediaItem], filters: FilterConfig, kind: str
    ) -> ListView:
        counts = ListCounts(
            all=len(items),
            movie=sum(1 for item in items if item.kind == "movie"),
            series=sum(1 for item in items if item.kind == "series"),
        )
        return ListView(items=project(filter_by_kind(items, kind), filters), counts=counts)

    @staticmethod
    async def _optional(call: Awaitable[list[T]], label: str, media_id: int) -> list[T]:
        try:
            return await call
        except CatalogError as exc:
            logger.warning("TMDB %s lookup failed for %s: %s", label, media_id, exc)
            return []
