"""Tests for the TMDB client and its conversion helpers."""

from __future__ import annotations

import httpx
import pytest

from app.models import TMDBMovie, TMDBMovieDetails
from app.services.tmdb import (
    TMDBClient,
    TMDBConfigurationError,
    TMDBResponseError,
    convert_tmdb_to_movie,
    get_image_url,
    get_trailer_url,
)

from factories import TMDBStub, build_settings, movie_payload, page_payload


@pytest.mark.anyio("asyncio")
async def test_popular_movies_send_api_key_and_page() -> None:
    stub = TMDBStub({"/movie/popular": page_payload(1, 2)})

    async with stub.client() as http_client:
        client = TMDBClient(build_settings(), http_client)
        page = await client.get_popular_movies(3)

    assert [movie.id for movie in page.results] == [1, 2]
    request = stub.requests[0]
    assert request.url.host == "api.themoviedb.org"
    assert request.url.params["api_key"] == "test-key"
    assert request.url.params["page"] == "3"


@pytest.mark.anyio("asyncio")
async def test_endpoints_map_to_tmdb_paths() -> None:
    empty = page_payload()
    stub = TMDBStub(
        {
            "/trending/movie/day": empty,
            "/movie/top_rated": empty,
            "/movie/now_playing": empty,
            "/movie/upcoming": empty,
            "/movie/42/similar": empty,
            "/movie/42/recommendations": empty,
            "/search/movie": empty,
        }
    )

    async with stub.client() as http_client:
        client = TMDBClient(build_settings(), http_client)
        await client.get_trending_movies("day")
        await client.get_top_rated_movies()
        await client.get_now_playing_movies()
        await client.get_upcoming_movies()
        await client.get_similar_movies(42)
        await client.get_movie_recommendations(42)
        await client.search_movies("heat")

    assert stub.paths == [
        "/trending/movie/day",
        "/movie/top_rated",
        "/movie/now_playing",
        "/movie/upcoming",
        "/movie/42/similar",
        "/movie/42/recommendations",
        "/search/movie",
    ]
    assert stub.requests[-1].url.params["query"] == "heat"


@pytest.mark.anyio("asyncio")
async def test_missing_api_key_raises_before_any_request() -> None:
    stub = TMDBStub({"/movie/popular": page_payload(1)})

    async with stub.client() as http_client:
        client = TMDBClient(build_settings(TMDB_API_KEY=None), http_client)
        assert client.has_credentials is False
        with pytest.raises(TMDBConfigurationError):
            await client.get_popular_movies()

    assert stub.requests == []


@pytest.mark.anyio("asyncio")
async def test_non_json_payload_is_a_response_error() -> None:
    stub = TMDBStub({"/movie/popular": lambda _: httpx.Response(200, text="<html>")})

    async with stub.client() as http_client:
        client = TMDBClient(build_settings(), http_client)
        with pytest.raises(TMDBResponseError):
            await client.get_popular_movies()


@pytest.mark.anyio("asyncio")
async def test_movie_details_include_credits_and_videos() -> None:
    details = movie_payload(
        7,
        genres=[{"id": 18, "name": "Drama"}],
        videos={"results": [{"id": "v1", "key": "abc", "name": "Trailer", "site": "YouTube", "type": "Trailer"}]},
    )
    stub = TMDBStub({"/movie/7": details})

    async with stub.client() as http_client:
        client = TMDBClient(build_settings(), http_client)
        result = await client.get_movie_details(7)

    assert stub.requests[0].url.params["append_to_response"] == "credits,videos"
    assert result.genres[0].name == "Drama"
    assert get_trailer_url(result) == "https://www.youtube.com/watch?v=abc"


def test_trailer_prefers_official_youtube_trailer() -> None:
    details = TMDBMovieDetails.model_validate(
        movie_payload(
            1,
            videos={
                "results": [
                    {"id": "a", "key": "teaser", "name": "Teaser", "site": "YouTube", "type": "Teaser"},
                    {"id": "b", "key": "vimeo", "name": "Official Trailer", "site": "Vimeo", "type": "Trailer"},
                    {"id": "c", "key": "first", "name": "Trailer 1", "site": "YouTube", "type": "Trailer"},
                    {"id": "d", "key": "official", "name": "Official Trailer #2", "site": "YouTube", "type": "Trailer"},
                ]
            },
        )
    )

    assert get_trailer_url(details) == "https://www.youtube.com/watch?v=official"


def test_trailer_missing_when_no_videos() -> None:
    assert get_trailer_url(TMDBMovieDetails.model_validate(movie_payload(1))) is None


def test_convert_halves_rating_and_derives_year() -> None:
    movie = TMDBMovie.model_validate(movie_payload(550, vote_average=8.4, release_date="1999-10-15"))

    converted = convert_tmdb_to_movie(movie)

    assert converted.id == "550"
    assert converted.year == 1999
    assert converted.rating == 4.2
    assert converted.poster == "https://image.tmdb.org/t/p/w500/poster-550.jpg"
    assert converted.genre is None


def test_convert_joins_detail_genres() -> None:
    details = TMDBMovieDetails.model_validate(
        movie_payload(1, poster_path=None, release_date="", genres=[{"id": 1, "name": "Action"}, {"id": 2, "name": "Drama"}])
    )

    converted = convert_tmdb_to_movie(details)

    assert converted.genre == "Action, Drama"
    assert converted.poster is None
    assert converted.year is None


def test_image_url_handles_missing_and_absolute_paths() -> None:
    assert get_image_url(None) == ""
    assert get_image_url("https://cdn.example.com/p.jpg") == "https://cdn.example.com/p.jpg"
    assert get_image_url("/p.jpg", "w1280") == "https://image.tmdb.org/t/p/w1280/p.jpg"
