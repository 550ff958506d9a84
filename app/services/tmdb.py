"""Client for The Movie Database (TMDB) REST API."""

from __future__ import annotations

import logging
from typing import Any, Literal, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..models import SimpleMovie, TMDBMovie, TMDBMovieDetails, TMDBPage
from ..utils import extract_year
from .http import fetch_with_retry

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="

TrendingWindow = Literal["day", "week"]
ModelT = TypeVar("ModelT", bound=BaseModel)


class TMDBConfigurationError(RuntimeError):
    """Raised when TMDB is called without a configured API key."""


class TMDBResponseError(RuntimeError):
    """Raised when TMDB answers with a payload that cannot be understood."""


def get_image_url(
    path: str | None, size: str = "w500", *, base_url: str = DEFAULT_IMAGE_BASE_URL
) -> str:
    """Return the absolute URL of a TMDB image path, or ``""`` when missing."""

    if not path:
        return ""
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{size}{path}"


def get_trailer_url(details: TMDBMovieDetails) -> str | None:
    """Pick the best YouTube trailer from a detailed record."""

    if details.videos is None or not details.videos.results:
        return None

    trailers = [
        video
        for video in details.videos.results
        if video.site == "YouTube" and video.type == "Trailer"
    ]
    if not trailers:
        return None

    official = next(
        (video for video in trailers if "official trailer" in video.name.lower()),
        None,
    )
    selected = official or trailers[0]
    return f"{YOUTUBE_WATCH_URL}{selected.key}"


def convert_tmdb_to_movie(
    movie: TMDBMovie, *, image_base_url: str = DEFAULT_IMAGE_BASE_URL
) -> SimpleMovie:
    """Convert a TMDB record into the canonical :class:`SimpleMovie` shape."""

    genre: str | None = None
    if isinstance(movie, TMDBMovieDetails):
        genre = ", ".join(entry.name for entry in movie.genres)

    return SimpleMovie(
        id=str(movie.id),
        title=movie.title,
        year=extract_year(movie.release_date),
        genre=genre,
        poster=get_image_url(movie.poster_path, base_url=image_base_url) or None,
        # 0-10 vote average to a 0-5 star rating.
        rating=round(movie.vote_average * 10) / 20,
    )


class TMDBClient:
    """Thin async wrapper around the TMDB movie endpoints."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    @property
    def has_credentials(self) -> bool:
        return self._settings.has_tmdb_credentials

    @property
    def image_base_url(self) -> str:
        return str(self._settings.tmdb_image_url)

    async def search_movies(self, query: str, page: int = 1) -> TMDBPage:
        return await self._get_page("/search/movie", {"query": query, "page": page})

    async def get_popular_movies(self, page: int = 1) -> TMDBPage:
        return await self._get_page("/movie/popular", {"page": page})

    async def get_trending_movies(self, time_window: TrendingWindow = "week") -> TMDBPage:
        return await self._get_page(f"/trending/movie/{time_window}", {})

    async def get_top_rated_movies(self, page: int = 1) -> TMDBPage:
        return await self._get_page("/movie/top_rated", {"page": page})

    async def get_now_playing_movies(self, page: int = 1) -> TMDBPage:
        return await self._get_page("/movie/now_playing", {"page": page})

    async def get_upcoming_movies(self, page: int = 1) -> TMDBPage:
        return await self._get_page("/movie/upcoming", {"page": page})

    async def get_similar_movies(self, movie_id: int, page: int = 1) -> TMDBPage:
        return await self._get_page(f"/movie/{movie_id}/similar", {"page": page})

    async def get_movie_recommendations(self, movie_id: int, page: int = 1) -> TMDBPage:
        return await self._get_page(f"/movie/{movie_id}/recommendations", {"page": page})

    async def get_movie_details(self, movie_id: int) -> TMDBMovieDetails:
        """Fetch a single movie with credits and videos appended."""

        return await self._get_model(
            f"/movie/{movie_id}",
            {"append_to_response": "credits,videos"},
            TMDBMovieDetails,
        )

    async def _get_page(self, endpoint: str, params: dict[str, Any]) -> TMDBPage:
        return await self._get_model(endpoint, params, TMDBPage)

    async def _get_model(
        self, endpoint: str, params: dict[str, Any], model: type[ModelT]
    ) -> ModelT:
        if not self._settings.tmdb_api_key:
            raise TMDBConfigurationError("TMDB API key is not configured")

        response = await fetch_with_retry(
            self._client,
            f"{self._settings.tmdb_base_url}{endpoint}",
            params={**params, "api_key": self._settings.tmdb_api_key},
            retries=self._settings.tmdb_retry_limit,
            timeout=self._settings.tmdb_request_timeout,
            retry_delay=self._settings.tmdb_retry_delay,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TMDBResponseError(f"TMDB returned non-JSON data for {endpoint}") from exc
        if not isinstance(payload, dict):
            raise TMDBResponseError(f"Unexpected TMDB response structure for {endpoint}")
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.debug("TMDB payload for %s failed validation: %s", endpoint, exc)
            raise TMDBResponseError(f"Unexpected TMDB response structure for {endpoint}") from exc
