"""Entry point for the FastAPI-powered WatchDeck service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from .config import settings
from .database import Database, SqlKeyValueStorage
from .models import ContentType, FilterConfig, normalise_kind
from .services.agenda import AgendaResolver
from .services.library import LibraryService
from .services.list_store import ListStore
from .services.tmdb import CatalogError, CatalogNotFoundError, TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


class LoginPayload(BaseModel):
    email: str
    password: str


class RegisterPayload(LoginPayload):
    name: str


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(20.0, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    store = await ListStore.open(
        SqlKeyValueStorage(database.session_factory),
        hash_iterations=settings.password_hash_iterations,
    )
    catalog = TMDBClient(settings, tmdb_http_client)
    agenda = AgendaResolver(
        catalog,
        lookup_timeout=settings.agenda_lookup_timeout,
        concurrency=settings.agenda_concurrency,
    )
    fastapi_app.state.library = LibraryService(
        store, catalog, agenda, hero_item_count=settings.hero_item_count
    )
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Watched and to-watch lists backed by TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_library(app: FastAPI) -> LibraryService:
    service = getattr(app.state, "library", None)
    if not isinstance(service, LibraryService):
        raise RuntimeError("Library service not initialised")
    return service


def _filters_from_request(request: Request) -> FilterConfig:
    params = {
        key: value
        for key, value in request.query_params.items()
        if key in {"minVote", "genre", "sort", "gridColumns"}
    }
    try:
        return FilterConfig.from_request(params)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=exc.errors(include_url=False, include_context=False)
        ) from exc


def _parse_kind(value: str) -> ContentType:
    try:
        kind = normalise_kind(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if kind is None:
        raise HTTPException(status_code=400, detail="Media kind is required")
    return kind


def _parse_kind_tab(value: str | None) -> str:
    if value is None or value in {"", "all"}:
        return "all"
    return _parse_kind(value)


def _session_payload(service: LibraryService) -> dict[str, Any]:
    identity = service.store.identity
    return {
        "authenticated": not identity.is_guest,
        "email": identity.email,
        "name": identity.display_name,
    }


def register_routes(fastapi_app: FastAPI) -> None:
    async def _catalog_call(awaitable):
        try:
            return await awaitable
        except CatalogNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except CatalogError as exc:
            logger.warning("Catalog request failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/discover")
    async def discover(request: Request, kind: str | None = None) -> dict[str, Any]:
        service = get_library(fastapi_app)
        filters = _filters_from_request(request)
        view = await _catalog_call(service.discover(filters, _parse_kind_tab(kind)))
        return {"filters": filters.model_dump(), **view.model_dump(mode="json")}

    @fastapi_app.get("/api/search")
    async def search(request: Request, q: str = "") -> dict[str, Any]:
        service = get_library(fastapi_app)
        filters = _filters_from_request(request)
        results = await _catalog_call(service.search(q, filters))
        return {
            "query": q,
            "filters": filters.model_dump(),
            "items": [item.model_dump(mode="json") for item in results],
        }

    @fastapi_app.get("/api/watchlist")
    async def watchlist(request: Request, kind: str | None = None) -> dict[str, Any]:
        service = get_library(fastapi_app)
        filters = _filters_from_request(request)
        view = service.watchlist(filters, _parse_kind_tab(kind))
        return {"filters": filters.model_dump(), **view.model_dump(mode="json")}

    @fastapi_app.get("/api/watched")
    async def watched(request: Request, kind: str | None = None) -> dict[str, Any]:
        service = get_library(fastapi_app)
        filters = _filters_from_request(request)
        view = service.watched(filters, _parse_kind_tab(kind))
        return {"filters": filters.model_dump(), **view.model_dump(mode="json")}

    @fastapi_app.get("/api/agenda")
    async def agenda() -> dict[str, Any]:
        service = get_library(fastapi_app)
        entries = await service.agenda()
        return {"items": [entry.model_dump(mode="json") for entry in entries]}

    @fastapi_app.get("/api/media/{kind}/{media_id}")
    async def media_details(kind: str, media_id: int) -> dict[str, Any]:
        service = get_library(fastapi_app)
        details = await _catalog_call(service.details(media_id, _parse_kind(kind)))
        return details.model_dump(mode="json")

    @fastapi_app.post("/api/watchlist/{kind}/{media_id}")
    async def add_to_watchlist(kind: str, media_id: int) -> dict[str, Any]:
        service = get_library(fastapi_app)
        item = await _catalog_call(service.add_to_watchlist(media_id, _parse_kind(kind)))
        return {"item": item.model_dump(mode="json"), "inWatchlist": True}

    @fastapi_app.delete("/api/watchlist/{kind}/{media_id}")
    async def remove_from_watchlist(kind: str, media_id: int) -> dict[str, Any]:
        service = get_library(fastapi_app)
        _parse_kind(kind)
        await service.remove_from_watchlist(media_id)
        return {"id": media_id, "inWatchlist": False}

    @fastapi_app.post("/api/watched/{kind}/{media_id}")
    async def mark_watched(kind: str, media_id: int) -> dict[str, Any]:
        service = get_library(fastapi_app)
        item = await _catalog_call(service.mark_watched(media_id, _parse_kind(kind)))
        return {"item": item.model_dump(mode="json"), "watched": True}

    @fastapi_app.delete("/api/watched/{kind}/{media_id}")
    async def unmark_watched(kind: str, media_id: int) -> dict[str, Any]:
        service = get_library(fastapi_app)
        _parse_kind(kind)
        await service.unmark_watched(media_id)
        return {"id": media_id, "watched": False}

    @fastapi_app.get("/api/session")
    async def session_status() -> dict[str, Any]:
        return _session_payload(get_library(fastapi_app))

    @fastapi_app.post("/api/session/login")
    async def login(payload: LoginPayload) -> dict[str, Any]:
        service = get_library(fastapi_app)
        if not await service.store.login(payload.email, payload.password):
            raise HTTPException(status_code=401, detail="Invalid email or password")
        return _session_payload(service)

    @fastapi_app.post("/api/session/register")
    async def register(payload: RegisterPayload) -> dict[str, Any]:
        service = get_library(fastapi_app)
        if not payload.name.strip():
            raise HTTPException(status_code=400, detail="Name is required")
        if not await service.store.register(payload.email, payload.password, payload.name):
            raise HTTPException(status_code=409, detail="Email is already registered")
        return _session_payload(service)

    @fastapi_app.post("/api/session/logout")
    async def logout() -> dict[str, Any]:
        service = get_library(fastapi_app)
        await service.store.logout()
        return _session_payload(service)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
