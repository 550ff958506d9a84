"""Key-value backends holding the serialized movie lists."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import StorageEntry


class StorageError(RuntimeError):
    """Raised when a backend refuses to persist a value."""


class StorageQuotaExceeded(StorageError):
    """Raised when a value does not fit in the backend's quota."""


STORAGE_ERRORS: tuple[type[Exception], ...] = (StorageError, SQLAlchemyError, OSError)


class KeyValueStorage(Protocol):
    """Minimal string key-value store, modelled on browser local storage."""

    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, optionally enforcing a byte quota."""

    def __init__(self, *, quota_bytes: int | None = None):
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used = sum(
                len(stored.encode("utf-8"))
                for stored_key, stored in self._items.items()
                if stored_key != key
            )
            if used + len(value.encode("utf-8")) > self._quota_bytes:
                raise StorageQuotaExceeded(f"Storing {key!r} would exceed the storage quota")
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class DatabaseStorage:
    """Key-value storage persisted in the ``storage_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_item(self, key: str) -> str | None:
        async with self._session_factory() as session:
            entry = await session.get(StorageEntry, key)
            return entry.value if entry is not None else None

    async def set_item(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                entry = await session.get(StorageEntry, key)
                if entry is None:
                    session.add(StorageEntry(key=key, value=value))
                else:
                    entry.value = value

    async def remove_item(self, key: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(StorageEntry).where(StorageEntry.key == key))
