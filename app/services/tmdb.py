"""Client for The Movie Database (TMDB), the catalog provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import CastMember, ContentType, MediaItem, VideoResult, WatchProvider

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/original"

_PATH_SEGMENTS: dict[ContentType, str] = {"movie": "movie", "series": "tv"}
_TRAILER_TYPES = {"Trailer", "Teaser"}


class CatalogError(RuntimeError):
    """Raised when the catalog provider cannot serve a request."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CatalogNotFoundError(CatalogError):
    """Raised when the provider has no record for the requested id and kind."""


class TMDBClient:
    """Thin wrapper around the TMDB HTTP API returning catalog records."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client

    async def get_trending(self) -> list[MediaItem]:
        """Return this week's trending movies and series."""

        results = await self._fetch_list("/trending/all/week")
        return self._parse_items(results)

    async def search(self, query: str) -> list[MediaItem]:
        """Search movies and series by free text."""

        if not query or not query.strip():
            return []
        results = await self._fetch_list("/search/multi", {"query": query.strip()})
        return self._parse_items(results)

    async def discover(self, kind: ContentType) -> list[MediaItem]:
        """Return popular titles of a single kind."""

        results = await self._fetch_list(
            f"/discover/{_PATH_SEGMENTS[kind]}", {"sort_by": "popularity.desc"}
        )
        return self._parse_items(results, kind=kind)

    async def get_details(self, media_id: int, kind: ContentType) -> MediaItem:
        """Return the full record for ``media_id`` with English artwork preferred."""

        data = await self._request(
            f"/{_PATH_SEGMENTS[kind]}/{media_id}",
            {"append_to_response": "images", "include_image_language": "en,null"},
        )
        images = data.get("images") or {}
        poster = self._pick_english_image(images.get("posters"))
        if poster:
            data["poster_path"] = poster
        backdrop = self._pick_english_image(images.get("backdrops"))
        if backdrop:
            data["backdrop_path"] = backdrop
        if isinstance(data.get("genres"), list):
            data["genre_ids"] = [
                genre["id"] for genre in data["genres"] if isinstance(genre, dict) and "id" in genre
            ]
        data["media_type"] = kind
        return MediaItem.model_validate(data)

    async def get_credits(self, media_id: int, kind: ContentType) -> list[CastMember]:
        data = await self._request(f"/{_PATH_SEGMENTS[kind]}/{media_id}/credits")
        cast = data.get("cast") or []
        return [
            CastMember.model_validate(member)
            for member in cast[: self._settings.cast_limit]
        ]

    async def get_videos(self, media_id: int, kind: ContentType) -> list[VideoResult]:
        """Return YouTube trailers and teasers."""

        data = await self._request(f"/{_PATH_SEGMENTS[kind]}/{media_id}/videos")
        return [
            VideoResult.model_validate(video)
            for video in data.get("results") or []
            if video.get("site") == "YouTube" and video.get("type") in _TRAILER_TYPES
        ]

    async def get_watch_providers(
        self, media_id: int, kind: ContentType
    ) -> list[WatchProvider]:
        """Return flat-rate streaming providers for the configured region."""

        data = await self._request(
            f"/{_PATH_SEGMENTS[kind]}/{media_id}/watch/providers"
        )
        region = (data.get("results") or {}).get(self._settings.watch_region) or {}
        return [
            WatchProvider.model_validate(provider)
            for provider in region.get("flatrate") or []
        ]

    async def _fetch_list(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch a result page, overriding artwork with the image-language variant.

        The text-language request is required; the artwork request only
        improves posters and its failure is ignored.
        """

        primary_task = self._request(
            endpoint, {**(params or {}), "language": self._settings.tmdb_language}
        )
        artwork_task = self._request(
            endpoint,
            {**(params or {}), "language": self._settings.tmdb_image_language},
        )
        primary, artwork = await asyncio.gather(
            primary_task, artwork_task, return_exceptions=True
        )
        if isinstance(primary, BaseException):
            raise primary

        results = [entry for entry in primary.get("results") or [] if isinstance(entry, dict)]
        if isinstance(artwork, BaseException):
            logger.warning("TMDB artwork override failed for %s: %s", endpoint, artwork)
            return results

        artwork_by_id: dict[Any, dict[str, Any]] = {
            entry.get("id"): entry
            for entry in artwork.get("results") or []
            if isinstance(entry, dict)
        }
        for entry in results:
            override = artwork_by_id.get(entry.get("id"))
            if not override:
                continue
            if override.get("poster_path"):
                entry["poster_path"] = override["poster_path"]
            if override.get("backdrop_path"):
                entry["backdrop_path"] = override["backdrop_path"]
        return results

    async def _request(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        query: dict[str, Any] = {
            "api_key": self._settings.tmdb_api_key,
            "language": self._settings.tmdb_language,
            "include_image_language": "en,null",
            "include_adult": "false",
        }
        if params:
            query.update(params)

        try:
            response = await self._client.get(endpoint, params=query)
        except httpx.HTTPError as exc:
            raise CatalogError(f"TMDB request to {endpoint} failed: {exc}") from exc

        if response.status_code == 404:
            raise CatalogNotFoundError(
                f"TMDB has no record at {endpoint}", status_code=404
            )
        if response.status_code >= 400:
            raise CatalogError(
                f"TMDB API error {response.status_code} for {endpoint}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CatalogError(f"TMDB returned invalid JSON for {endpoint}") from exc
        if not isinstance(payload, dict):
            raise CatalogError(f"TMDB returned an unexpected payload for {endpoint}")
        return payload

    @staticmethod
    def _parse_items(
        results: list[dict[str, Any]], *, kind: ContentType | None = None
    ) -> list[MediaItem]:
        items: list[MediaItem] = []
        for entry in results:
            if kind is not None:
                entry = {**entry, "media_type": kind}
            elif entry.get("media_type") not in {"movie", "tv"}:
                # Multi endpoints also return people.
                continue
            try:
                items.append(MediaItem.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping malformed TMDB result %s: %s", entry.get("id"), exc)
        return items

    @staticmethod
    def _pick_english_image(images: Any) -> str | None:
        if not isinstance(images, list):
            return None
        candidates = [image for image in images if isinstance(image, dict)]
        for language in ("en", None):
            for image in candidates:
                if image.get("iso_639_1") == language and image.get("file_path"):
                    return image["file_path"]
        return None


def build_image_url(path: str | None, base_url: str = POSTER_BASE_URL) -> str:
    if not path:
        return ""
    if path.startswith("http"):
        return path
    return f"{base_url}{path}"
