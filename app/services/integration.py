"""Recommendation service consumed by the UI layer."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping

from pydantic import ValidationError

from ..models import (
    RecommendationAction,
    RecommendationFeedback,
    RecommendationStats,
    SimpleMovie,
    UIRecommendation,
    UserLists,
)
from .movie_source import MovieSource, build_exclusion_set
from .movie_storage import MovieStore
from .recommendations import RecommendationAssembler
from .tmdb import convert_tmdb_to_movie

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
OFFLINE_CONFIDENCE = 0.5
UNKNOWN_GENRE = "Unknown"

OFFLINE_RECOMMENDATIONS: tuple[UIRecommendation, ...] = tuple(
    UIRecommendation(
        id=movie_id,
        title=title,
        year=year,
        genre=genre,
        rating=rating,
        reason=reason,
        score=rating,
        confidence=OFFLINE_CONFIDENCE,
    )
    for movie_id, title, year, genre, rating, reason in (
        ("550", "Fight Club", 1999, "Drama", 4.2, "Popular movie (offline)"),
        ("278", "The Shawshank Redemption", 1994, "Drama", 4.4, "Highly rated (offline)"),
        ("13", "Forrest Gump", 1994, "Comedy", 4.3, "Classic movie (offline)"),
        ("238", "The Godfather", 1972, "Crime", 4.4, "Masterpiece (offline)"),
        ("680", "Pulp Fiction", 1994, "Crime", 4.3, "Cult classic (offline)"),
    )
)


class RecommendationService:
    """Glue between the persisted lists, the recommendation sources and the UI."""

    def __init__(
        self,
        store: MovieStore,
        assembler: RecommendationAssembler,
        movie_source: MovieSource,
        *,
        image_base_url: str,
    ):
        self._store = store
        self._assembler = assembler
        self._movie_source = movie_source
        self._image_base_url = image_base_url

    async def get_recommendations_for_ui(self, limit: int = 10) -> list[UIRecommendation]:
        """Return up to ``limit`` recommendations, never failing.

        The popular/trending listings are tried first, then the bundled
        movies without another round of provider calls, then a fixed
        offline list.
        """

        if limit <= 0:
            return []

        storage = await self._store.load()
        user_lists = UserLists.from_storage(storage)
        has_watched = bool(storage.lists.watched_list)

        recommendations = await self._assembler.get_basic_recommendations(user_lists)
        if not recommendations:
            logger.warning("No recommendations from TMDB listings, using bundled movies")
            recommendations = self._bundled_recommendations(user_lists)

        if recommendations:
            return self._convert_to_ui_format(recommendations, limit, has_watched=has_watched)

        logger.warning("Bundled movies were all excluded, using offline recommendations")
        return list(OFFLINE_RECOMMENDATIONS[:limit])

    async def get_single_recommendation(self) -> UIRecommendation | None:
        recommendations = await self.get_recommendations_for_ui(limit=1)
        return recommendations[0] if recommendations else None

    async def update_recommendation_state(
        self,
        action: RecommendationAction,
        movie_data: RecommendationFeedback | Mapping[str, Any],
    ) -> None:
        """Record a user reaction.

        Only logs; list changes go through :class:`MovieStore` directly.
        """

        try:
            feedback = (
                movie_data
                if isinstance(movie_data, RecommendationFeedback)
                else RecommendationFeedback.model_validate(movie_data)
            )
        except ValidationError:
            logger.info("User %s movie: <unrecognised payload>", action)
            return
        logger.info("User %s movie: %s", action, feedback.title)

    async def get_recommendation_stats(self) -> RecommendationStats:
        storage = await self._store.load()
        return RecommendationStats(
            watched_movies=len(storage.lists.watched_list),
            my_list_movies=len(storage.lists.my_list),
            blocked_movies=len(storage.lists.blocked_movies),
            last_update=int(time.time() * 1000),
        )

    @staticmethod
    def get_recommendation_explanation(has_watched_movies: bool = False) -> str:
        if not has_watched_movies:
            return "Popular movie you might enjoy"
        return "Recommended based on popular choices"

    def _bundled_recommendations(self, user_lists: UserLists) -> list[SimpleMovie]:
        exclude_ids = build_exclusion_set(
            [entry.id for entry in user_lists.watched_list], user_lists.blocked_movies
        )
        movies = self._movie_source.get_fallback_movies(exclude_ids)
        return [
            convert_tmdb_to_movie(movie, image_base_url=self._image_base_url).model_copy(
                update={"synopsis": movie.overview or None}
            )
            for movie in movies
        ]

    def _convert_to_ui_format(
        self, movies: list[SimpleMovie], limit: int, *, has_watched: bool
    ) -> list[UIRecommendation]:
        reason = self.get_recommendation_explanation(has_watched)
        return [
            UIRecommendation(
                id=movie.id,
                title=movie.title,
                year=movie.year,
                genre=movie.genre or UNKNOWN_GENRE,
                rating=movie.rating,
                poster=movie.poster,
                reason=reason,
                score=movie.rating,
                confidence=DEFAULT_CONFIDENCE,
            )
            for movie in movies[:limit]
        ]
