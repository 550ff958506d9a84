"""Pydantic models describing provider payloads, persisted lists and UI shapes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

STORAGE_VERSION = "2.0"

ListName = Literal["myList", "watchedList"]
RecommendationAction = Literal["like", "dislike", "rate", "skip"]


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""

    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class TMDBGenre(BaseModel):
    id: int
    name: str


class TMDBCastMember(BaseModel):
    id: int
    name: str
    character: str | None = None
    profile_path: str | None = None


class TMDBCrewMember(BaseModel):
    id: int
    name: str
    job: str | None = None
    profile_path: str | None = None


class TMDBCredits(BaseModel):
    cast: list[TMDBCastMember] = Field(default_factory=list)
    crew: list[TMDBCrewMember] = Field(default_factory=list)


class TMDBVideo(BaseModel):
    id: str
    key: str
    name: str = ""
    site: str = ""
    type: str = ""
    iso_639_1: str | None = None
    iso_3166_1: str | None = None
    size: int | None = None


class TMDBVideos(BaseModel):
    results: list[TMDBVideo] = Field(default_factory=list)


class TMDBMovie(BaseModel):
    """Movie record exactly as TMDB list endpoints describe it."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str = ""
    overview: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: list[int] = Field(default_factory=list)
    runtime: int | None = None

    @field_validator("overview", "release_date", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return "" if value is None else value


class TMDBMovieDetails(TMDBMovie):
    """Detailed movie record returned by ``/movie/{id}``."""

    genres: list[TMDBGenre] = Field(default_factory=list)
    credits: TMDBCredits | None = None
    videos: TMDBVideos | None = None


class TMDBPage(BaseModel):
    """A single page of movie results."""

    page: int = 1
    results: list[TMDBMovie] = Field(default_factory=list)
    total_pages: int = 0
    total_results: int = 0


class SimpleMovie(BaseModel):
    """Canonical movie shape used between the provider layer and the UI."""

    id: str
    title: str
    year: int | None = None
    genre: str | None = None
    poster: str | None = None
    rating: float = 0.0
    synopsis: str | None = None


class CatalogMovieInput(BaseModel):
    """Loose movie payload carrying ``poster`` and ``rating`` fields."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    year: int | None = None
    genre: str | None = None
    poster: str | None = None
    rating: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def resolved_poster(self) -> str | None:
        return self.poster

    def resolved_rating(self) -> float:
        return self.rating or 0.0


class CardMovieInput(CatalogMovieInput):
    """Movie payload sent by the card UI, using ``posterUrl`` and ``userRating``."""

    poster_url: str | None = Field(default=None, alias="posterUrl")
    user_rating: float | None = Field(default=None, alias="userRating")

    def resolved_poster(self) -> str | None:
        return self.poster_url or self.poster

    def resolved_rating(self) -> float:
        # A user's own rating takes priority over the public one.
        return self.user_rating or self.rating or 0.0


MovieInput = CatalogMovieInput | CardMovieInput

_CARD_ONLY_KEYS = ("posterUrl", "poster_url", "userRating", "user_rating")


def parse_movie_input(data: MovieInput | SimpleMovie | Mapping[str, Any]) -> MovieInput:
    """Validate a loosely shaped movie payload into one of the known input shapes."""

    if isinstance(data, CatalogMovieInput):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    if any(key in data for key in _CARD_ONLY_KEYS):
        return CardMovieInput.model_validate(data)
    return CatalogMovieInput.model_validate(data)


class StoredMovie(BaseModel):
    """Entry of one of the user's persisted movie lists."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    year: int | None = None
    genre: str | None = None
    poster: str | None = None
    rating: float = 0.0
    date_added: str = Field(alias="dateAdded")
    date_watched: str | None = Field(default=None, alias="dateWatched")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("rating", mode="before")
    @classmethod
    def _missing_rating_is_zero(cls, value: object) -> object:
        return 0.0 if value is None else value

    @classmethod
    def from_input(cls, movie_input: MovieInput, *, now: str | None = None) -> "StoredMovie":
        """Normalise a recognised input shape into a stored list entry."""

        return cls(
            id=movie_input.id,
            title=movie_input.title,
            year=movie_input.year,
            genre=movie_input.genre,
            poster=movie_input.resolved_poster(),
            rating=movie_input.resolved_rating(),
            date_added=now or utc_now_iso(),
        )


def _unique_movies(movies: list[StoredMovie]) -> list[StoredMovie]:
    seen: set[str] = set()
    unique: list[StoredMovie] = []
    for movie in movies:
        if movie.id not in seen:
            seen.add(movie.id)
            unique.append(movie)
    return unique


class MovieLists(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    my_list: list[StoredMovie] = Field(default_factory=list, alias="myList")
    watched_list: list[StoredMovie] = Field(default_factory=list, alias="watchedList")
    blocked_movies: list[str] = Field(default_factory=list, alias="blockedMovies")

    @model_validator(mode="after")
    def _enforce_membership(self) -> "MovieLists":
        """Keep ids unique per list and out of ``myList`` once watched."""

        self.watched_list = _unique_movies(self.watched_list)
        watched_ids = {movie.id for movie in self.watched_list}
        self.my_list = [
            movie for movie in _unique_movies(self.my_list) if movie.id not in watched_ids
        ]
        self.blocked_movies = list(dict.fromkeys(self.blocked_movies))
        return self

    def get(self, list_name: ListName) -> list[StoredMovie]:
        return self.my_list if list_name == "myList" else self.watched_list

    def replace(self, list_name: ListName, movies: list[StoredMovie]) -> None:
        if list_name == "myList":
            self.my_list = movies
        else:
            self.watched_list = movies


class MovieStorage(BaseModel):
    """Root aggregate persisted under the storage key."""

    model_config = ConfigDict(populate_by_name=True)

    lists: MovieLists = Field(default_factory=MovieLists)
    # Reserved for a future taste vector; always persisted empty.
    embedding_profile: list[float] = Field(default_factory=list, alias="embeddingProfile")
    version: str = STORAGE_VERSION

    def to_json(self, *, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


class WatchedReference(BaseModel):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class UserLists(BaseModel):
    """Subset of the persisted lists needed for exclusion filtering."""

    model_config = ConfigDict(populate_by_name=True)

    watched_list: list[WatchedReference] = Field(default_factory=list, alias="watchedList")
    blocked_movies: list[str] = Field(default_factory=list, alias="blockedMovies")

    @classmethod
    def from_storage(cls, storage: MovieStorage) -> "UserLists":
        return cls(
            watched_list=[WatchedReference(id=movie.id) for movie in storage.lists.watched_list],
            blocked_movies=list(storage.lists.blocked_movies),
        )


class UIRecommendation(BaseModel):
    id: str
    title: str
    year: int | None = None
    genre: str
    rating: float
    poster: str | None = None
    reason: str
    score: float
    confidence: float


class UserStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    watched_count: int = Field(alias="watchedCount")
    rated_count: int = Field(alias="ratedCount")
    avg_rating: float = Field(alias="avgRating")
    my_list_count: int = Field(alias="myListCount")
    blocked_count: int = Field(alias="blockedCount")
    last_updated: str = Field(alias="lastUpdated")


class RecommendationStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    watched_movies: int = Field(alias="watchedMovies")
    my_list_movies: int = Field(alias="myListMovies")
    blocked_movies: int = Field(alias="blockedMovies")
    last_update: int = Field(alias="lastUpdate")


class RecommendationFeedback(BaseModel):
    """Movie summary attached to a recommendation state update."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    genre: str | None = None
    user_rating: float | None = Field(default=None, alias="userRating")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class MovieCard(BaseModel):
    """Fully described movie shown on the main discovery card."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    year: int | None = None
    genre: str = ""
    description: str = ""
    rating: float = 0.0
    runtime: str | None = None
    poster_url: str | None = Field(default=None, alias="posterUrl")
    backdrop_url: str | None = Field(default=None, alias="backdropUrl")
    director: str | None = None
    cast: list[str] = Field(default_factory=list)
    reason: str = ""


class SampleMovie(SimpleMovie):
    model_config = ConfigDict(populate_by_name=True)

    user_rating: int = Field(alias="userRating")


class SampleLists(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    my_list: list[SampleMovie] = Field(default_factory=list, alias="myList")
    watched_list: list[SampleMovie] = Field(default_factory=list, alias="watchedList")


class TrailerInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_trailer: bool = Field(alias="hasTrailer")
    trailer_url: str | None = Field(default=None, alias="trailerUrl")
    movie_title: str | None = Field(default=None, alias="movieTitle")
    error: str | None = None
