"""Shape TMDB listings into filtered recommendation lists."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence

from ..models import SimpleMovie, TMDBMovie, TMDBPage, UserLists
from .http import TRANSPORT_ERRORS
from .tmdb import TMDBClient, TMDBConfigurationError, TMDBResponseError, convert_tmdb_to_movie

logger = logging.getLogger(__name__)

CATEGORY_LIMIT = 10
MIXED_PER_CATEGORY = 4
MIXED_LIMIT = 10
MISSING_SYNOPSIS = "No description available"

PROVIDER_ERRORS: tuple[type[BaseException], ...] = (
    TMDBConfigurationError,
    TMDBResponseError,
    *TRANSPORT_ERRORS,
)


def filter_excluded_movies(
    movies: Sequence[TMDBMovie] | None,
    user_lists: UserLists | Mapping[str, Any] | None,
) -> list[TMDBMovie]:
    """Drop movies the user has watched or blocked, preserving order."""

    if not movies or not isinstance(movies, Sequence):
        return []
    if user_lists is None:
        return list(movies)

    excluded = _excluded_ids(user_lists)
    if excluded is None:
        return list(movies)

    return [
        movie
        for movie in movies
        if getattr(movie, "id", None) and str(movie.id) not in excluded
    ]


def _excluded_ids(user_lists: UserLists | Mapping[str, Any]) -> set[str] | None:
    if isinstance(user_lists, UserLists):
        watched: Any = [entry.id for entry in user_lists.watched_list]
        blocked: Any = user_lists.blocked_movies
    elif isinstance(user_lists, Mapping):
        watched = user_lists.get("watchedList")
        blocked = user_lists.get("blockedMovies")
    else:
        return None

    excluded: set[str] = set()
    if isinstance(watched, list):
        for entry in watched:
            movie_id = entry.get("id") if isinstance(entry, Mapping) else entry
            if movie_id:
                excluded.add(str(movie_id))
    if isinstance(blocked, list):
        excluded.update(str(movie_id) for movie_id in blocked if movie_id)
    return excluded


class RecommendationAssembler:
    """Build UI-ready recommendation lists from TMDB category listings."""

    def __init__(self, tmdb: TMDBClient):
        self._tmdb = tmdb

    async def get_popular_recommendations(
        self, user_lists: UserLists | None = None
    ) -> list[SimpleMovie]:
        return await self._category(
            "popular",
            self._tmdb.get_popular_movies,
            user_lists,
            default_synopsis=MISSING_SYNOPSIS,
        )

    async def get_trending_recommendations(
        self, user_lists: UserLists | None = None
    ) -> list[SimpleMovie]:
        return await self._category(
            "trending", lambda: self._tmdb.get_trending_movies("week"), user_lists
        )

    async def get_top_rated_recommendations(
        self, user_lists: UserLists | None = None
    ) -> list[SimpleMovie]:
        return await self._category("top rated", self._tmdb.get_top_rated_movies, user_lists)

    async def get_basic_recommendations(
        self, user_lists: UserLists | None = None
    ) -> list[SimpleMovie]:
        """Popular movies, or trending ones when popular yields nothing."""

        recommendations = await self.get_popular_recommendations(user_lists)
        if recommendations:
            return recommendations
        return await self.get_trending_recommendations(user_lists)

    async def get_mixed_recommendations(
        self, user_lists: UserLists | None = None
    ) -> list[SimpleMovie]:
        """Interleave popular, trending and top rated picks without duplicates."""

        results = await asyncio.gather(
            self._fetch_category("popular", self._tmdb.get_popular_movies, user_lists),
            self._fetch_category(
                "trending", lambda: self._tmdb.get_trending_movies("week"), user_lists
            ),
            self._fetch_category("top rated", self._tmdb.get_top_rated_movies, user_lists),
            return_exceptions=True,
        )

        categories: list[list[SimpleMovie]] = []
        for result in results:
            if isinstance(result, BaseException):
                if not isinstance(result, PROVIDER_ERRORS):
                    raise result
                logger.warning("Mixed recommendation category failed: %r", result)
                continue
            categories.append(result)

        if not categories:
            logger.warning("All recommendation categories failed, using basic recommendations")
            return await self.get_basic_recommendations(user_lists)

        mixed: list[SimpleMovie] = []
        added_ids: set[str] = set()
        for category in categories:
            added = 0
            for movie in category:
                if added >= MIXED_PER_CATEGORY:
                    break
                if movie.id in added_ids:
                    continue
                mixed.append(movie)
                added_ids.add(movie.id)
                added += 1

        if not mixed:
            return await self.get_basic_recommendations(user_lists)
        return mixed[:MIXED_LIMIT]

    async def _category(
        self,
        label: str,
        call: Callable[[], Awaitable[TMDBPage]],
        user_lists: UserLists | None,
        *,
        default_synopsis: str | None = None,
    ) -> list[SimpleMovie]:
        try:
            return await self._fetch_category(
                label, call, user_lists, default_synopsis=default_synopsis
            )
        except PROVIDER_ERRORS as exc:
            logger.warning("Error fetching %s recommendations: %r", label, exc)
            return []

    async def _fetch_category(
        self,
        label: str,
        call: Callable[[], Awaitable[TMDBPage]],
        user_lists: UserLists | None,
        *,
        default_synopsis: str | None = None,
    ) -> list[SimpleMovie]:
        page = await call()
        movies: list[TMDBMovie] = list(page.results)
        if user_lists is not None:
            movies = filter_excluded_movies(movies, user_lists)
        logger.debug("Fetched %d %s movies after filtering", len(movies), label)

        return [
            convert_tmdb_to_movie(movie, image_base_url=self._tmdb.image_base_url).model_copy(
                update={"synopsis": movie.overview or default_synopsis}
            )
            for movie in movies[:CATEGORY_LIMIT]
        ]
