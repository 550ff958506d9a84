"""Persistence of the user's movie lists."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from ..models import (
    STORAGE_VERSION,
    ListName,
    MovieInput,
    MovieStorage,
    SimpleMovie,
    StoredMovie,
    UserStats,
    parse_movie_input,
    utc_now_iso,
)
from ..storage import STORAGE_ERRORS, KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "cineai_movie_data"
LIST_NAMES: tuple[str, ...] = ("myList", "watchedList")

# Current list name first, then names written by earlier releases.
_MY_LIST_KEYS = ("myList", "wantToWatch")
_WATCHED_LIST_KEYS = ("watchedList", "watched")
_BLOCKED_KEYS = ("blockedMovies", "blocked")


def default_storage() -> MovieStorage:
    return MovieStorage()


def migrate_legacy_storage(old_data: Mapping[str, Any], *, now: str | None = None) -> MovieStorage:
    """Copy whatever can be recognised from an older storage layout.

    Unknown shapes are dropped and the corresponding list stays empty.
    When both the current and the legacy name of a list are present the
    legacy one wins, matching the order in which old releases wrote them.
    """

    storage = default_storage()
    lists = old_data.get("lists") if isinstance(old_data, Mapping) else None
    if not isinstance(lists, Mapping):
        return storage

    stamp = now or utc_now_iso()

    my_list = _migrate_list(lists, _MY_LIST_KEYS, stamp)
    watched_list = _migrate_list(lists, _WATCHED_LIST_KEYS, stamp)
    if watched_list is not None:
        storage.lists.watched_list = watched_list
    if my_list is not None:
        watched_ids = {movie.id for movie in storage.lists.watched_list}
        storage.lists.my_list = [movie for movie in my_list if movie.id not in watched_ids]

    blocked = _last_present(lists, _BLOCKED_KEYS)
    if isinstance(blocked, list):
        storage.lists.blocked_movies = _unique_ids(blocked)

    return storage


def _last_present(lists: Mapping[str, Any], keys: Sequence[str]) -> Any:
    found: Any = None
    for key in keys:
        value = lists.get(key)
        # Containers count as present even when empty.
        if isinstance(value, (list, Mapping)) or value:
            found = value
    return found


def _migrate_list(
    lists: Mapping[str, Any], keys: Sequence[str], stamp: str
) -> list[StoredMovie] | None:
    entries = _last_present(lists, keys)
    if not isinstance(entries, list):
        return None

    migrated: list[StoredMovie] = []
    seen: set[str] = set()
    for entry in entries:
        movie = _migrate_movie(entry, stamp)
        if movie is None or movie.id in seen:
            continue
        seen.add(movie.id)
        migrated.append(movie)
    return migrated


def _migrate_movie(entry: Any, stamp: str) -> StoredMovie | None:
    if not isinstance(entry, Mapping):
        return None
    try:
        return StoredMovie(
            id=entry.get("id"),
            title=entry.get("title") or "",
            year=entry.get("year"),
            genre=entry.get("genre"),
            poster=entry.get("poster") or entry.get("posterUrl"),
            rating=entry.get("rating") or entry.get("userRating") or 0,
            date_added=entry.get("dateAdded") or stamp,
            date_watched=entry.get("dateWatched"),
        )
    except ValidationError:
        logger.debug("Dropping unrecognised legacy movie entry: %r", entry)
        return None


def _unique_ids(values: Sequence[Any]) -> list[str]:
    unique: list[str] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            continue
        movie_id = str(value)
        if movie_id and movie_id not in unique:
            unique.append(movie_id)
    return unique


class MovieStore:
    """Read-modify-write access to the persisted movie lists.

    Every operation loads the full record from the backend and every
    mutation writes it back whole. Backend failures degrade to defaults on
    read and to a ``False`` result on write.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = DEFAULT_STORAGE_KEY,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self._storage = storage
        self._key = key
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    async def load(self) -> MovieStorage:
        try:
            raw = await self._storage.get_item(self._key)
        except STORAGE_ERRORS:
            logger.exception("Error loading movie data")
            return default_storage()

        if not raw:
            return default_storage()

        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            logger.error("Stored movie data is not valid JSON: %s", exc)
            return default_storage()
        if not isinstance(parsed, dict):
            logger.error("Stored movie data has an unexpected structure")
            return default_storage()

        if parsed.get("version") != STORAGE_VERSION:
            logger.info(
                "Migrating movie data from version %r to %s",
                parsed.get("version"),
                STORAGE_VERSION,
            )
            return migrate_legacy_storage(parsed, now=self._clock())

        try:
            return MovieStorage.model_validate(parsed)
        except ValidationError as exc:
            logger.warning("Stored movie data failed validation, salvaging: %s", exc)
            return migrate_legacy_storage(parsed, now=self._clock())

    async def save(self, storage: MovieStorage) -> bool:
        try:
            await self._storage.set_item(self._key, storage.to_json())
        except (*STORAGE_ERRORS, ValueError):
            logger.exception("Error saving movie data")
            return False
        return True

    async def add_to_list(
        self,
        list_name: ListName,
        movie_data: MovieInput | SimpleMovie | Mapping[str, Any],
    ) -> MovieStorage:
        """Classify a movie into ``myList`` or ``watchedList``."""

        _check_list_name(list_name)
        storage = await self.load()
        try:
            movie_input = parse_movie_input(movie_data)
        except ValidationError as exc:
            logger.warning("Ignoring malformed movie payload for %s: %s", list_name, exc)
            return storage

        now = self._clock()
        movie = StoredMovie.from_input(movie_input, now=now)
        lists = storage.lists

        if list_name == "watchedList":
            movie = movie.model_copy(update={"date_watched": now})
            lists.my_list = [entry for entry in lists.my_list if entry.id != movie.id]
            existing_index = next(
                (index for index, entry in enumerate(lists.watched_list) if entry.id == movie.id),
                None,
            )
            if existing_index is None:
                lists.watched_list.insert(0, movie)
            else:
                lists.watched_list[existing_index] = movie
            await self.save(storage)
            return storage

        in_my_list = any(entry.id == movie.id for entry in lists.my_list)
        in_watched = any(entry.id == movie.id for entry in lists.watched_list)
        if not in_my_list and not in_watched:
            lists.my_list.append(movie)
            await self.save(storage)
        return storage

    async def add_to_my_list(self, movie_data: MovieInput | SimpleMovie | Mapping[str, Any]) -> MovieStorage:
        return await self.add_to_list("myList", movie_data)

    async def add_to_watched_list(
        self, movie_data: MovieInput | SimpleMovie | Mapping[str, Any]
    ) -> MovieStorage:
        return await self.add_to_list("watchedList", movie_data)

    async def remove_from_list(self, movie_id: str, list_name: ListName) -> MovieStorage:
        _check_list_name(list_name)
        storage = await self.load()
        remaining = [entry for entry in storage.lists.get(list_name) if entry.id != movie_id]
        storage.lists.replace(list_name, remaining)
        await self.save(storage)
        return storage

    async def move_to_my_list(self, movie_id: str) -> MovieStorage:
        """Move a watched movie back to the end of ``myList``."""

        storage = await self.load()
        lists = storage.lists
        index = next(
            (position for position, entry in enumerate(lists.watched_list) if entry.id == movie_id),
            None,
        )
        if index is None:
            return storage

        movie = lists.watched_list.pop(index)
        lists.my_list.append(movie.model_copy(update={"date_added": self._clock()}))
        await self.save(storage)
        return storage

    async def reorder_my_list(
        self, new_order: Sequence[StoredMovie | Mapping[str, Any]]
    ) -> MovieStorage:
        storage = await self.load()
        try:
            reordered = [
                entry if isinstance(entry, StoredMovie) else StoredMovie.model_validate(entry)
                for entry in new_order
            ]
        except ValidationError as exc:
            logger.warning("Ignoring malformed list order: %s", exc)
            return storage

        storage.lists.my_list = reordered
        await self.save(storage)
        return storage

    async def block_movie(self, movie_id: str) -> MovieStorage:
        storage = await self.load()
        if movie_id not in storage.lists.blocked_movies:
            storage.lists.blocked_movies.append(movie_id)
            await self.save(storage)
        return storage

    async def clear_all(self) -> None:
        try:
            await self._storage.remove_item(self._key)
        except STORAGE_ERRORS:
            logger.exception("Error clearing movie data")

    async def export_snapshot(self) -> str:
        storage = await self.load()
        return storage.to_json(indent=2)

    async def import_snapshot(self, json_data: str) -> bool:
        """Replace the stored lists with a previously exported snapshot."""

        try:
            parsed = json.loads(json_data)
        except (TypeError, ValueError) as exc:
            logger.error("Error importing data: %s", exc)
            return False
        if not isinstance(parsed, dict):
            logger.error("Error importing data: snapshot is not an object")
            return False

        if parsed.get("version") == STORAGE_VERSION:
            try:
                storage = MovieStorage.model_validate(parsed)
            except ValidationError as exc:
                logger.error("Error importing data: %s", exc)
                return False
        else:
            storage = migrate_legacy_storage(parsed, now=self._clock())

        return await self.save(storage)

    async def stats(self) -> UserStats:
        storage = await self.load()
        watched = storage.lists.watched_list
        rated = [movie for movie in watched if movie.rating]
        average = 0.0
        if rated:
            mean = sum(movie.rating for movie in rated) / len(rated)
            # Half-up rounding to one decimal place.
            average = math.floor(mean * 10 + 0.5) / 10

        return UserStats(
            watched_count=len(watched),
            rated_count=len(rated),
            avg_rating=average,
            my_list_count=len(storage.lists.my_list),
            blocked_count=len(storage.lists.blocked_movies),
            last_updated=self._clock(),
        )


def _check_list_name(list_name: str) -> None:
    if list_name not in LIST_NAMES:
        raise ValueError(f"Unknown movie list {list_name!r}")
