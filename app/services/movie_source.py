"""Tiered movie candidate source with bundled and hardcoded fallbacks."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence

from pydantic import ValidationError

from ..models import TMDBMovie, TMDBPage
from ..utils import coerce_movie_id
from .http import TRANSPORT_ERRORS
from .tmdb import TMDBClient, TMDBConfigurationError, TMDBResponseError

logger = logging.getLogger(__name__)

TRENDING_THRESHOLD = 15
SIMILAR_SOURCE_LIMIT = 2
SIMILAR_RESULTS_PER_MOVIE = 5
SIMILAR_STOP_THRESHOLD = 25
MAX_RECOMMENDATIONS = 20

HARDCODED_FALLBACK_MOVIES: tuple[TMDBMovie, ...] = (
    TMDBMovie(
        id=550,
        title="Fight Club",
        overview=(
            "A ticking-time-bomb insomniac and a slippery soap salesman channel primal "
            "male aggression into a shocking new form of therapy."
        ),
        poster_path="/pB8BM7pdSp6B6Ih7QZ4DrQ3PmJK.jpg",
        backdrop_path=None,
        release_date="1999-10-15",
        vote_average=8.4,
        vote_count=26280,
        genre_ids=[18, 53],
    ),
    TMDBMovie(
        id=278,
        title="The Shawshank Redemption",
        overview=(
            "Framed in the 1940s for the double murder of his wife and her lover, upstanding "
            "banker Andy Dufresne begins a new life at the Shawshank prison."
        ),
        poster_path="/q6y0Go1tsGEsmtFryDOJo3dEmqu.jpg",
        backdrop_path=None,
        release_date="1994-09-23",
        vote_average=8.7,
        vote_count=24916,
        genre_ids=[18, 80],
    ),
)


class FailureKind(str, Enum):
    """Why a tier produced no movies."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    DATA = "data"


@dataclass(slots=True)
class TierResult:
    """Outcome of a single provider tier."""

    tier: str
    movies: list[TMDBMovie] = field(default_factory=list)
    failure: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class FallbackCache:
    """Lazily loaded copy of the bundled popular-movies dataset.

    The bundle is read at most once. If it cannot be read the hardcoded list
    takes its place for the lifetime of the cache.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._movies: list[TMDBMovie] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_loaded(self) -> bool:
        return self._movies is not None

    def reset(self) -> None:
        self._movies = None

    def load(self) -> list[TMDBMovie]:
        if self._movies is not None:
            return self._movies

        try:
            movies = self._read_bundle()
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load fallback movies from %s: %s", self._path, exc)
            movies = list(HARDCODED_FALLBACK_MOVIES)

        self._movies = movies
        return movies

    def _read_bundle(self) -> list[TMDBMovie]:
        data = json.loads(self._path.read_text(encoding="utf-8"))
        entries = data.get("popular") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ValueError("Fallback data is missing the 'popular' array")

        movies: list[TMDBMovie] = []
        for entry in entries:
            try:
                # String identifiers in the bundle are coerced to ints here.
                movies.append(TMDBMovie.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed fallback entry: %r", entry)
        return movies


class MovieSource:
    """Produce candidate movies even when TMDB is slow, failing or unconfigured."""

    def __init__(self, tmdb: TMDBClient, fallback_cache: FallbackCache):
        self._tmdb = tmdb
        self._fallback_cache = fallback_cache

    @property
    def fallback_cache(self) -> FallbackCache:
        return self._fallback_cache

    async def get_recommendations(
        self,
        exclude_watched_ids: Iterable[str | int] = (),
        exclude_blocked_ids: Iterable[str | int] = (),
        recent_watched_movies: Sequence[Any] = (),
    ) -> list[TMDBMovie]:
        """Return up to twenty candidates, falling back to bundled data when needed."""

        exclude_ids = build_exclusion_set(exclude_watched_ids, exclude_blocked_ids)

        if not self._tmdb.has_credentials:
            logger.warning("No TMDB API key, using fallback movies")
            return self.get_fallback_movies(exclude_ids)

        candidates = await self._collect_candidates(recent_watched_movies)
        recommendations = deduplicate_movies(candidates, exclude_ids, limit=MAX_RECOMMENDATIONS)
        if recommendations:
            return recommendations

        logger.warning("TMDB produced no usable recommendations, using fallback movies")
        return self.get_fallback_movies(exclude_ids)

    def get_fallback_movies(self, exclude_ids: set[int] | None = None) -> list[TMDBMovie]:
        movies = self._fallback_cache.load()
        if not exclude_ids:
            return list(movies)
        return [movie for movie in movies if movie.id not in exclude_ids]

    async def _collect_candidates(self, recent_watched_movies: Sequence[Any]) -> list[TMDBMovie]:
        accumulated: list[TMDBMovie] = []

        popular = await self._run_tier("popular", self._tmdb.get_popular_movies)
        if popular.failure is FailureKind.CONFIGURATION:
            return accumulated
        accumulated.extend(popular.movies)

        if len(accumulated) < TRENDING_THRESHOLD:
            trending = await self._run_tier(
                "trending", lambda: self._tmdb.get_trending_movies("week")
            )
            if trending.failure is FailureKind.CONFIGURATION:
                return accumulated
            accumulated.extend(trending.movies)

        if not accumulated or not recent_watched_movies:
            return accumulated

        for watched in list(recent_watched_movies)[:SIMILAR_SOURCE_LIMIT]:
            movie_id = coerce_movie_id(_reference_id(watched))
            if movie_id is None:
                logger.warning("Skipping similar lookup for unusable id %r", _reference_id(watched))
                continue
            similar = await self._run_tier(
                f"similar:{movie_id}",
                lambda movie_id=movie_id: self._tmdb.get_similar_movies(movie_id),
            )
            if not similar.ok:
                continue
            accumulated.extend(similar.movies[:SIMILAR_RESULTS_PER_MOVIE])
            if len(accumulated) >= SIMILAR_STOP_THRESHOLD:
                break

        return accumulated

    async def _run_tier(
        self, tier: str, call: Callable[[], Awaitable[TMDBPage]]
    ) -> TierResult:
        try:
            page = await call()
        except TMDBConfigurationError as exc:
            logger.warning("TMDB tier %s skipped: %s", tier, exc)
            return TierResult(tier=tier, failure=FailureKind.CONFIGURATION)
        except TRANSPORT_ERRORS as exc:
            logger.warning("TMDB tier %s failed: %r", tier, exc)
            return TierResult(tier=tier, failure=FailureKind.TRANSPORT)
        except TMDBResponseError as exc:
            logger.warning("TMDB tier %s returned unusable data: %s", tier, exc)
            return TierResult(tier=tier, failure=FailureKind.DATA)
        return TierResult(tier=tier, movies=list(page.results))


def build_exclusion_set(*id_groups: Iterable[str | int]) -> set[int]:
    """Union the given id collections as provider numeric ids."""

    excluded: set[int] = set()
    for group in id_groups:
        for raw_id in group or ():
            movie_id = coerce_movie_id(raw_id)
            if movie_id is not None:
                excluded.add(movie_id)
    return excluded


def deduplicate_movies(
    movies: Iterable[TMDBMovie], exclude_ids: set[int], *, limit: int
) -> list[TMDBMovie]:
    """Keep the first occurrence of each id, dropping excluded ids, up to ``limit``."""

    seen: set[int] = set()
    unique: list[TMDBMovie] = []
    for movie in movies:
        if movie.id in seen or movie.id in exclude_ids:
            continue
        seen.add(movie.id)
        unique.append(movie)
        if len(unique) >= limit:
            break
    return unique


def _reference_id(movie: Any) -> Any:
    if isinstance(movie, Mapping):
        return movie.get("id")
    return getattr(movie, "id", None)
