"""Random movie selection, sample lists and trailer lookup."""

from __future__ import annotations

import logging
import random
from typing import Awaitable, Callable

from ..models import MovieCard, SampleLists, SampleMovie, TMDBMovieDetails, TMDBPage, TrailerInfo
from ..utils import extract_year
from .recommendations import PROVIDER_ERRORS
from .tmdb import TMDBClient, convert_tmdb_to_movie, get_image_url, get_trailer_url

logger = logging.getLogger(__name__)

MAX_RANDOM_PAGE = 20
DEFAULT_YEAR = 2024
DEFAULT_RUNTIME = "120 min"
CARD_GENRE_LIMIT = 2
CARD_CAST_LIMIT = 7
POSTER_BASE_URL = "https://m.media-amazon.com/images/M/"
SAMPLE_MY_LIST_SIZE = 5
SAMPLE_WATCHED_SIZE = 3

RANDOM_SOURCES: tuple[str, ...] = (
    "popular",
    "trending_week",
    "trending_day",
    "top_rated",
    "now_playing",
    "upcoming",
)

FALLBACK_CARDS: tuple[MovieCard, ...] = (
    MovieCard(
        id="550",
        title="Fight Club",
        year=1999,
        genre="Drama, Thriller",
        description=(
            "A ticking-time-bomb insomniac and a slippery soap salesman channel primal "
            "male aggression into a shocking new form of therapy."
        ),
        rating=4.2,
        runtime="139 min",
        poster_url=f"{POSTER_BASE_URL}MV5BNDIzNDU0YzEtYzE5Ni00ZjlkLTk5ZjgtNjM3NWE4YzA3Nzk3XkEyXkFqcGdeQXVyMjUzOTY0NTM@._V1_SX300.jpg",
        director="David Fincher",
        cast=["Brad Pitt", "Edward Norton", "Helena Bonham Carter"],
        reason="A cult classic that explores themes of consumerism and masculinity.",
    ),
    MovieCard(
        id="278",
        title="The Shawshank Redemption",
        year=1994,
        genre="Drama",
        description=(
            "Two imprisoned men bond over a number of years, finding solace and eventual "
            "redemption through acts of common decency."
        ),
        rating=4.7,
        runtime="142 min",
        poster_url=f"{POSTER_BASE_URL}MV5BMDFkYTc0MGEtZmNhMC00ZDIzLWFmNTEtODM1ZmRlYWMwMWFmXkEyXkFqcGdeQXVyMTMxODk2OTU@._V1_SX300.jpg",
        director="Frank Darabont",
        cast=["Tim Robbins", "Morgan Freeman", "Bob Gunton"],
        reason="Widely considered one of the greatest films ever made.",
    ),
    MovieCard(
        id="238",
        title="The Godfather",
        year=1972,
        genre="Crime, Drama",
        description=(
            "The aging patriarch of an organized crime dynasty transfers control of his "
            "clandestine empire to his reluctant son."
        ),
        rating=4.6,
        runtime="175 min",
        poster_url=f"{POSTER_BASE_URL}MV5BM2MyNjYxNmUtYTAwNi00MTYxLWJmNWYtYzZlODY3ZTk3OTFlXkEyXkFqcGdeQXVyNzkwMjQ5NzM@._V1_SX300.jpg",
        director="Francis Ford Coppola",
        cast=["Marlon Brando", "Al Pacino", "James Caan"],
        reason="A masterpiece of cinema that defined the crime genre.",
    ),
    MovieCard(
        id="680",
        title="Pulp Fiction",
        year=1994,
        genre="Crime, Drama",
        description=(
            "The lives of two mob hitmen, a boxer, a gangster and his wife intertwine in "
            "four tales of violence and redemption."
        ),
        rating=4.5,
        runtime="154 min",
        poster_url=f"{POSTER_BASE_URL}MV5BNGNhMDIzZTUtNTBlZi00MTRlLWFjM2ItYzViMjE3YzI5MjljXkEyXkFqcGdeQXVyNzkwMjQ5NzM@._V1_SX300.jpg",
        director="Quentin Tarantino",
        cast=["John Travolta", "Uma Thurman", "Samuel L. Jackson"],
        reason="Tarantino's non-linear masterpiece that redefined storytelling.",
    ),
    MovieCard(
        id="13",
        title="Forrest Gump",
        year=1994,
        genre="Drama, Romance",
        description=(
            "The presidencies of Kennedy and Johnson, the Vietnam War, and other historical "
            "events unfold from the perspective of an Alabama man."
        ),
        rating=4.3,
        runtime="142 min",
        poster_url=f"{POSTER_BASE_URL}MV5BNWIwODRlZTUtY2U3ZS00Yzg1LWJhNzYtMmZiYmEyNmU1NjMzXkEyXkFqcGdeQXVyMTQxNzMzNDI@._V1_SX300.jpg",
        director="Robert Zemeckis",
        cast=["Tom Hanks", "Robin Wright", "Gary Sinise"],
        reason="A heartwarming tale that spans decades of American history.",
    ),
)


class MoviePicker:
    """Pick single movies for the discovery card and build demo data."""

    def __init__(self, tmdb: TMDBClient, *, rng: random.Random | None = None):
        self._tmdb = tmdb
        self._rng = rng or random.Random()

    async def random_movie(self) -> MovieCard:
        """Return a random movie from a random TMDB listing, or a bundled classic."""

        if not self._tmdb.has_credentials:
            return self._fallback_card()

        source = self._rng.choice(RANDOM_SOURCES)
        page = self._rng.randint(1, MAX_RANDOM_PAGE)
        try:
            listing = await self._listing_for(source, page)()
            if not listing.results:
                logger.warning("TMDB %s page %s returned no movies", source, page)
                return self._fallback_card()
            candidate = self._rng.choice(listing.results)
            details = await self._tmdb.get_movie_details(candidate.id)
        except PROVIDER_ERRORS as exc:
            logger.warning("TMDB API failed, using fallback movies: %r", exc)
            return self._fallback_card()

        return self._format_card(details)

    async def sample_lists(self) -> SampleLists | None:
        """Build demo lists from popular and trending movies, or ``None`` on failure."""

        try:
            popular = await self._tmdb.get_popular_movies(1)
            trending = await self._tmdb.get_trending_movies("week")
        except PROVIDER_ERRORS as exc:
            logger.error("Error fetching sample lists: %r", exc)
            return None

        return SampleLists(
            my_list=self._sample(popular, SAMPLE_MY_LIST_SIZE),
            watched_list=self._sample(trending, SAMPLE_WATCHED_SIZE),
        )

    async def trailer(self, movie_id: int) -> TrailerInfo:
        try:
            details = await self._tmdb.get_movie_details(movie_id)
        except PROVIDER_ERRORS as exc:
            logger.warning("TMDB API failed for trailer: %r", exc)
            return TrailerInfo(
                has_trailer=False, error="Trailer service temporarily unavailable"
            )

        trailer_url = get_trailer_url(details)
        if not trailer_url:
            return TrailerInfo(has_trailer=False, error="No trailer available")
        return TrailerInfo(has_trailer=True, trailer_url=trailer_url, movie_title=details.title)

    def _listing_for(self, source: str, page: int) -> Callable[[], Awaitable[TMDBPage]]:
        listings: dict[str, Callable[[], Awaitable[TMDBPage]]] = {
            "popular": lambda: self._tmdb.get_popular_movies(page),
            "trending_week": lambda: self._tmdb.get_trending_movies("week"),
            "trending_day": lambda: self._tmdb.get_trending_movies("day"),
            "top_rated": lambda: self._tmdb.get_top_rated_movies(page),
            "now_playing": lambda: self._tmdb.get_now_playing_movies(page),
            "upcoming": lambda: self._tmdb.get_upcoming_movies(page),
        }
        return listings.get(source, listings["popular"])

    def _sample(self, listing: TMDBPage, size: int) -> list[SampleMovie]:
        base_url = self._tmdb.image_base_url
        return [
            SampleMovie(
                **convert_tmdb_to_movie(movie, image_base_url=base_url).model_dump(),
                user_rating=self._rng.randint(1, 5),
            )
            for movie in listing.results[:size]
        ]

    def _fallback_card(self) -> MovieCard:
        return self._rng.choice(FALLBACK_CARDS).model_copy()

    def _format_card(self, details: TMDBMovieDetails) -> MovieCard:
        base_url = self._tmdb.image_base_url
        director = None
        cast: list[str] = []
        if details.credits is not None:
            director = next(
                (person.name for person in details.credits.crew if person.job == "Director"),
                None,
            )
            cast = [actor.name for actor in details.credits.cast[:CARD_CAST_LIMIT]]

        return MovieCard(
            id=str(details.id),
            title=details.title,
            year=extract_year(details.release_date) or DEFAULT_YEAR,
            genre=", ".join(genre.name for genre in details.genres[:CARD_GENRE_LIMIT]),
            description=details.overview,
            rating=round(details.vote_average * 10) / 20,
            runtime=f"{details.runtime} min" if details.runtime else DEFAULT_RUNTIME,
            poster_url=get_image_url(details.poster_path, "w500", base_url=base_url) or None,
            backdrop_url=get_image_url(details.backdrop_path, "w1280", base_url=base_url) or None,
            director=director or "Unknown Director",
            cast=cast,
            reason=(
                f"Why this movie? Because it's trending with a {details.vote_average:.1f}/10 "
                f"rating and {details.vote_count:,} votes."
            ),
        )
