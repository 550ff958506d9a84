"""Utility helpers for the CineAI service."""

from __future__ import annotations

import re

GENRE_BULLET = " • "
COMMA_SPACING_RE = re.compile(r",\s*")
YEAR_RE = re.compile(r"^(\d{4})")


def parse_genres(genre_string: object) -> list[str]:
    """Split a genre string into names.

    Comma separated strings are the current format; strings joined with the
    display bullet are still accepted for entries saved by older versions.
    """

    if not genre_string or not isinstance(genre_string, str):
        return []

    delimiter = "," if "," in genre_string else GENRE_BULLET
    return [genre.strip() for genre in genre_string.split(delimiter) if genre.strip()]


def format_genres_for_display(genre_string: object) -> str:
    """Render a comma separated genre list with bullets."""

    if not genre_string or not isinstance(genre_string, str):
        return ""
    if GENRE_BULLET in genre_string:
        return genre_string
    return COMMA_SPACING_RE.sub(GENRE_BULLET, genre_string)


def extract_year(release_date: str | None) -> int | None:
    """Return the year from a ``YYYY-MM-DD`` release date."""

    if not release_date:
        return None
    match = YEAR_RE.match(release_date.strip())
    if not match:
        return None
    return int(match.group(1))


def coerce_movie_id(value: object) -> int | None:
    """Convert a stored identifier to the provider's numeric id, if possible."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
