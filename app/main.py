"""Entry point for the FastAPI-powered CineAI backend."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from .config import Settings, settings
from .database import Database
from .models import MovieStorage, RecommendationAction, RecommendationFeedback, StoredMovie
from .services.integration import RecommendationService
from .services.movie_picker import MoviePicker
from .services.movie_source import FallbackCache, MovieSource
from .services.movie_storage import LIST_NAMES, MovieStore
from .services.recommendations import RecommendationAssembler
from .services.tmdb import TMDBClient
from .storage import DatabaseStorage, KeyValueStorage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}
MAX_RECOMMENDATION_LIMIT = 50

app: FastAPI


class RecommendationStateUpdate(BaseModel):
    action: RecommendationAction
    movie: RecommendationFeedback


def attach_services(
    fastapi_app: FastAPI,
    app_settings: Settings,
    http_client: httpx.AsyncClient,
    storage: KeyValueStorage,
) -> None:
    """Wire the store, TMDB client and recommendation services onto ``app.state``."""

    tmdb = TMDBClient(app_settings, http_client)
    store = MovieStore(storage, key=app_settings.storage_key)
    movie_source = MovieSource(tmdb, FallbackCache(app_settings.fallback_movies_path))
    assembler = RecommendationAssembler(tmdb)

    fastapi_app.state.movie_store = store
    fastapi_app.state.recommendation_service = RecommendationService(
        store,
        assembler,
        movie_source,
        image_base_url=tmdb.image_base_url,
    )
    fastapi_app.state.movie_picker = MoviePicker(tmdb)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.tmdb_request_timeout, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    if not settings.has_tmdb_credentials:
        logger.warning("TMDB_API_KEY is not set; recommendations will use bundled data")

    attach_services(
        fastapi_app, settings, tmdb_http_client, DatabaseStorage(database.session_factory)
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
        description="One-movie-at-a-time discovery backed by TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_recommendation_service(fastapi_app: FastAPI) -> RecommendationService:
    service = getattr(fastapi_app.state, "recommendation_service", None)
    if not isinstance(service, RecommendationService):
        raise RuntimeError("Recommendation service not initialised")
    return service


def get_movie_store(fastapi_app: FastAPI) -> MovieStore:
    store = getattr(fastapi_app.state, "movie_store", None)
    if not isinstance(store, MovieStore):
        raise RuntimeError("Movie store not initialised")
    return store


def get_movie_picker(fastapi_app: FastAPI) -> MoviePicker:
    picker = getattr(fastapi_app.state, "movie_picker", None)
    if not isinstance(picker, MoviePicker):
        raise RuntimeError("Movie picker not initialised")
    return picker


def _storage_payload(storage: MovieStorage) -> dict[str, Any]:
    return storage.model_dump(mode="json", by_alias=True, exclude_none=True)


def _check_list_name(list_name: str) -> None:
    if list_name not in LIST_NAMES:
        raise HTTPException(status_code=404, detail=f"Unknown list: {list_name}")


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/recommendations")
    async def recommendations(limit: int = 10) -> dict[str, Any]:
        if not 1 <= limit <= MAX_RECOMMENDATION_LIMIT:
            raise HTTPException(
                status_code=400,
                detail=f"limit must be between 1 and {MAX_RECOMMENDATION_LIMIT}",
            )
        service = get_recommendation_service(fastapi_app)
        items = await service.get_recommendations_for_ui(limit)
        return {"recommendations": [item.model_dump(mode="json") for item in items]}

    @fastapi_app.get("/api/recommendations/next")
    async def next_recommendation() -> dict[str, Any]:
        service = get_recommendation_service(fastapi_app)
        item = await service.get_single_recommendation()
        return {"recommendation": item.model_dump(mode="json") if item else None}

    @fastapi_app.get("/api/recommendations/stats")
    async def recommendation_stats() -> dict[str, Any]:
        service = get_recommendation_service(fastapi_app)
        stats = await service.get_recommendation_stats()
        return stats.model_dump(by_alias=True)

    @fastapi_app.post("/api/recommendations/state", status_code=202)
    async def recommendation_state(request: Request) -> dict[str, str]:
        payload = await _read_json(request)
        try:
            update = RecommendationStateUpdate.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        service = get_recommendation_service(fastapi_app)
        await service.update_recommendation_state(update.action, update.movie)
        return {"status": "accepted"}

    @fastapi_app.get("/api/lists")
    async def lists() -> dict[str, Any]:
        storage = await get_movie_store(fastapi_app).load()
        return _storage_payload(storage)

    @fastapi_app.post("/api/lists/{list_name}")
    async def add_to_list(request: Request, list_name: str) -> dict[str, Any]:
        _check_list_name(list_name)
        payload = await _read_json(request)
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        if not payload.get("id"):
            raise HTTPException(status_code=400, detail="Movie id is required")
        storage = await get_movie_store(fastapi_app).add_to_list(list_name, payload)  # type: ignore[arg-type]
        return _storage_payload(storage)

    @fastapi_app.delete("/api/lists/{list_name}/{movie_id}")
    async def remove_from_list(list_name: str, movie_id: str) -> dict[str, Any]:
        _check_list_name(list_name)
        storage = await get_movie_store(fastapi_app).remove_from_list(movie_id, list_name)  # type: ignore[arg-type]
        return _storage_payload(storage)

    @fastapi_app.post("/api/lists/watchedList/{movie_id}/restore")
    async def move_to_my_list(movie_id: str) -> dict[str, Any]:
        storage = await get_movie_store(fastapi_app).move_to_my_list(movie_id)
        return _storage_payload(storage)

    @fastapi_app.put("/api/lists/myList/order")
    async def reorder_my_list(request: Request) -> dict[str, Any]:
        payload = await _read_json(request)
        if not isinstance(payload, list):
            raise HTTPException(status_code=400, detail="Expected a list of movies")
        try:
            new_order = [StoredMovie.model_validate(entry) for entry in payload]
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        storage = await get_movie_store(fastapi_app).reorder_my_list(new_order)
        return _storage_payload(storage)

    @fastapi_app.post("/api/blocked/{movie_id}")
    async def block_movie(movie_id: str) -> dict[str, Any]:
        storage = await get_movie_store(fastapi_app).block_movie(movie_id)
        return _storage_payload(storage)

    @fastapi_app.get("/api/stats")
    async def user_stats() -> dict[str, Any]:
        stats = await get_movie_store(fastapi_app).stats()
        return stats.model_dump(by_alias=True)

    @fastapi_app.get("/api/export")
    async def export_data() -> Response:
        snapshot = await get_movie_store(fastapi_app).export_snapshot()
        return Response(content=snapshot, media_type="application/json")

    @fastapi_app.post("/api/import")
    async def import_data(request: Request) -> dict[str, bool]:
        body = await request.body()
        imported = await get_movie_store(fastapi_app).import_snapshot(
            body.decode("utf-8", errors="replace")
        )
        if not imported:
            raise HTTPException(status_code=400, detail="Snapshot could not be imported")
        return {"imported": True}

    @fastapi_app.delete("/api/data")
    async def clear_data() -> dict[str, str]:
        await get_movie_store(fastapi_app).clear_all()
        return {"status": "cleared"}

    @fastapi_app.get("/api/random-movie")
    async def random_movie() -> JSONResponse:
        card = await get_movie_picker(fastapi_app).random_movie()
        return JSONResponse(
            card.model_dump(mode="json", by_alias=True, exclude_none=True),
            headers=NO_STORE_HEADERS,
        )

    @fastapi_app.get("/api/sample-lists")
    async def sample_lists() -> JSONResponse:
        samples = await get_movie_picker(fastapi_app).sample_lists()
        if samples is None:
            return JSONResponse({"error": "Failed to fetch sample lists"}, status_code=500)
        return JSONResponse(samples.model_dump(mode="json", by_alias=True, exclude_none=True))

    @fastapi_app.get("/api/movie-trailer/{movie_id}")
    async def movie_trailer(movie_id: str) -> JSONResponse:
        try:
            numeric_id = int(movie_id)
        except ValueError:
            return JSONResponse({"error": "Invalid movie ID"}, status_code=400)

        info = await get_movie_picker(fastapi_app).trailer(numeric_id)
        payload = info.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not info.has_trailer:
            return JSONResponse(payload, status_code=404)
        return JSONResponse(payload)


app = create_app()
