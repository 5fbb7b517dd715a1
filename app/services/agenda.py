"""Resolve the next relevant date for every item on the to-watch list."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Protocol

from ..models import AgendaEntry, ContentType, MediaItem
from ..utils import MAX_TIMESTAMP_MS, parse_iso_date, timestamp_ms

logger = logging.getLogger(__name__)

RELEASED_SORT_KEY = 0
NO_DATE_SORT_KEY = MAX_TIMESTAMP_MS

LABEL_THEATRICAL = "theatrical release"
LABEL_AVAILABLE = "available"
LABEL_ENDED = "ended"
LABEL_HIATUS = "on hiatus"


class DetailsLookup(Protocol):
    async def get_details(self, media_id: int, kind: ContentType) -> MediaItem: ...


def build_entry(details: MediaItem, kind: ContentType, now: datetime) -> AgendaEntry:
    """Compute the label, display date and sort key for resolved details."""

    display_date = ""
    label = ""
    sort_key = NO_DATE_SORT_KEY

    if kind == "movie":
        release = parse_iso_date(details.release_date)
        if release is not None:
            if release > now:
                display_date = details.release_date or ""
                label = LABEL_THEATRICAL
                sort_key = timestamp_ms(release)
            else:
                display_date = details.release_date or ""
                label = LABEL_AVAILABLE
                sort_key = RELEASED_SORT_KEY
    else:
        episode = details.next_episode_to_air
        air_date = parse_iso_date(episode.air_date) if episode else None
        if episode is not None and air_date is not None:
            display_date = episode.air_date or ""
            label = f"S{episode.season_number}E{episode.episode_number}"
            sort_key = timestamp_ms(air_date)
        else:
            label = LABEL_ENDED if details.status == "Ended" else LABEL_HIATUS

    payload = details.model_dump()
    payload["media_type"] = kind
    return AgendaEntry.model_validate(
        {**payload, "display_date": display_date, "label": label, "sort_key": sort_key}
    )


class AgendaResolver:
    """Fan out detail lookups for to-watch items and build a dated schedule."""

    def __init__(
        self,
        catalog: DetailsLookup,
        *,
        lookup_timeout: float | None = None,
        concurrency: int = 8,
    ):
        self._catalog = catalog
        self._lookup_timeout = lookup_timeout
        self._semaphore = asyncio.Semaphore(concurrency)

    async def resolve(
        self, to_watch: Iterable[MediaItem], *, now: datetime | None = None
    ) -> list[AgendaEntry]:
        """Return upcoming entries sorted by date, soonest first.

        A failed lookup only drops its own item. Released movies and series
        with nothing scheduled are left out.
        """

        moment = now or datetime.now(timezone.utc)
        items = list(to_watch)
        if not items:
            return []
        results = await asyncio.gather(
            *(self._resolve_item(item, moment) for item in items)
        )
        entries = [
            entry
            for entry in results
            if entry is not None
            and RELEASED_SORT_KEY < entry.sort_key < NO_DATE_SORT_KEY
        ]
        entries.sort(key=lambda entry: entry.sort_key)
        return entries

    async def _resolve_item(
        self, item: MediaItem, now: datetime
    ) -> AgendaEntry | None:
        kind = item.kind
        try:
            async with self._semaphore:
                details = await asyncio.wait_for(
                    self._catalog.get_details(item.id, kind), self._lookup_timeout
                )
            return build_entry(details, kind, now)
        except asyncio.TimeoutError:
            logger.warning(
                "Agenda lookup timed out for %s %s", kind, item.display_name or item.id
            )
        except Exception as exc:
            logger.warning(
                "Agenda lookup failed for %s %s: %s",
                kind,
                item.display_name or item.id,
                exc,
            )
        return None


async def resolve_agenda(
    catalog: DetailsLookup, to_watch: Iterable[MediaItem]
) -> list[AgendaEntry]:
    """Resolve an agenda with default limits."""

    return await AgendaResolver(catalog).resolve(to_watch)
