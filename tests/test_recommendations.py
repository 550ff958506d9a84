"""Tests for assembling recommendation lists from TMDB categories."""

from __future__ import annotations

import pytest

from app.models import TMDBMovie, UserLists, WatchedReference
from app.services.recommendations import RecommendationAssembler, filter_excluded_movies
from app.services.tmdb import TMDBClient

from factories import TMDBStub, build_settings, movie_payload, page_payload


def make_assembler(http_client, **settings_overrides) -> RecommendationAssembler:
    settings = build_settings(TMDB_RETRY_LIMIT=0, **settings_overrides)
    return RecommendationAssembler(TMDBClient(settings, http_client))


def test_filter_excludes_watched_and_blocked_ids() -> None:
    movies = [TMDBMovie(id=movie_id) for movie_id in (1, 2, 3, 4)]
    user_lists = UserLists(watched_list=[WatchedReference(id=1)], blocked_movies=["3"])

    assert [movie.id for movie in filter_excluded_movies(movies, user_lists)] == [2, 4]


def test_filter_accepts_raw_mappings_and_tolerates_bad_shapes() -> None:
    movies = [TMDBMovie(id=movie_id) for movie_id in (1, 2, 3)]

    assert filter_excluded_movies(None, None) == []
    assert filter_excluded_movies(movies, None) == movies
    assert [
        movie.id
        for movie in filter_excluded_movies(
            movies, {"watchedList": [{"id": "2"}, {}], "blockedMovies": "oops"}
        )
    ] == [1, 3]


@pytest.mark.anyio("asyncio")
async def test_popular_recommendations_are_filtered_and_converted() -> None:
    payload = page_payload(1, 2, *range(10, 25))
    payload["results"][1]["overview"] = ""
    stub = TMDBStub({"/movie/popular": payload})

    async with stub.client() as http_client:
        assembler = make_assembler(http_client)
        movies = await assembler.get_popular_recommendations(
            UserLists(blocked_movies=["1"])
        )

    assert len(movies) == 10
    assert movies[0].id == "2"
    assert movies[0].synopsis == "No description available"
    assert movies[0].rating == 3.5
    assert movies[0].poster == "https://image.tmdb.org/t/p/w500/poster-2.jpg"


@pytest.mark.anyio("asyncio")
async def test_basic_falls_back_to_trending() -> None:
    stub = TMDBStub({"/movie/popular": 500, "/trending/movie/week": page_payload(7)})

    async with stub.client() as http_client:
        movies = await make_assembler(http_client).get_basic_recommendations()

    assert [movie.id for movie in movies] == ["7"]
    assert stub.paths == ["/movie/popular", "/trending/movie/week"]


@pytest.mark.anyio("asyncio")
async def test_category_failure_returns_empty_list() -> None:
    stub = TMDBStub({"/movie/top_rated": 502})

    async with stub.client() as http_client:
        movies = await make_assembler(http_client).get_top_rated_recommendations()

    assert movies == []


@pytest.mark.anyio("asyncio")
async def test_mixed_interleaves_categories_without_duplicates() -> None:
    stub = TMDBStub(
        {
            "/movie/popular": page_payload(1, 2, 3, 4, 5),
            "/trending/movie/week": page_payload(1, 2, 6, 7, 8, 9),
            "/movie/top_rated": page_payload(6, 10, 11, 12, 13),
        }
    )

    async with stub.client() as http_client:
        movies = await make_assembler(http_client).get_mixed_recommendations(UserLists())

    ids = [movie.id for movie in movies]
    assert ids == ["1", "2", "3", "4", "6", "7", "8", "9", "10", "11"]
    assert len(ids) == len(set(ids))


@pytest.mark.anyio("asyncio")
async def test_mixed_skips_failed_category() -> None:
    stub = TMDBStub(
        {
            "/movie/popular": page_payload(1, 2),
            "/trending/movie/week": 503,
            "/movie/top_rated": page_payload(3),
        }
    )

    async with stub.client() as http_client:
        movies = await make_assembler(http_client).get_mixed_recommendations()

    assert [movie.id for movie in movies] == ["1", "2", "3"]


@pytest.mark.anyio("asyncio")
async def test_mixed_without_credentials_is_empty() -> None:
    stub = TMDBStub({"/movie/popular": page_payload(1)})

    async with stub.client() as http_client:
        movies = await make_assembler(http_client, TMDB_API_KEY=None).get_mixed_recommendations()

    assert movies == []
    assert stub.requests == []


@pytest.mark.anyio("asyncio")
async def test_list_results_carry_no_genre_names() -> None:
    stub = TMDBStub(
        {
            "/movie/popular": {
                "results": [movie_payload(1, genres=[{"id": 1, "name": "Action"}])]
            }
        }
    )

    async with stub.client() as http_client:
        movies = await make_assembler(http_client).get_popular_recommendations()

    # List endpoints carry only genre ids, so no genre names are derived.
    assert movies[0].genre is None
