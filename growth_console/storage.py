from __future__ import annotations

import asyncio
import logging
import os
import re
import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, TypeVar

from pydantic import BaseModel

from growth_console.errors import DuplicateKey, NotFound, StorageError, StorageUnavailable, UnknownCollection
from growth_console.models import (
    COLLECTION_MODELS,
    COLLECTION_UPDATE_MODELS,
    Record,
    RecordUpdate,
    apply_update,
    partial_model_for,
)

LOGGER = logging.getLogger(__name__)

DATA_DIR_ENV_VAR = "GROWTH_CONSOLE_DATA_DIR"
APP_FOLDER_NAME = "GrowthConsole"
DEFAULT_DATABASE_FILENAME = "growth_console.sqlite3"

_COLLECTION_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

T = TypeVar("T")


def resolve_data_directory(path: str | Path | None = None, *, env: Mapping[str, str] | None = None) -> Path:
    """Resolve the data directory from an explicit path, the environment or the local default."""

    if path is not None:
        explicit_path = Path(path).expanduser()
        if explicit_path.is_dir() or not explicit_path.suffix:
            return explicit_path
        return explicit_path.parent

    env_map: Mapping[str, str] = os.environ if env is None else env
    raw_value = env_map.get(DATA_DIR_ENV_VAR)
    if raw_value:
        return Path(raw_value).expanduser()

    return Path(".data") / APP_FOLDER_NAME


def resolve_database_path(path: str | Path | None = None, *, env: Mapping[str, str] | None = None) -> Path:
    """Resolve the sqlite file path; directories get the default filename appended."""

    if path is not None:
        explicit_path = Path(path).expanduser()
        if explicit_path.is_dir() or not explicit_path.suffix:
            return explicit_path / DEFAULT_DATABASE_FILENAME
        return explicit_path

    return resolve_data_directory(env=env) / DEFAULT_DATABASE_FILENAME


def _update_model_for(
    name: str, model: type[Record], explicit: Mapping[str, type[RecordUpdate]]
) -> type[RecordUpdate]:
    if name in explicit:
        return explicit[name]
    if COLLECTION_MODELS.get(name) is model:
        return COLLECTION_UPDATE_MODELS[name]
    return partial_model_for(model)


class RecordStore:
    """Durable keyed collections persisted in a single sqlite database.

    Each collection is a table holding the JSON payload of its records keyed by
    ``id``. The ``seq`` column keeps insertion order so listings are stable.
    Blocking sqlite calls run in a worker thread; the store must be opened
    before use and closed when done (or used as an async context manager).

    When the database cannot be opened the store stays usable in a degraded
    mode: reads return empty sequences and writes raise ``StorageUnavailable``.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        collections: Mapping[str, type[Record]] = COLLECTION_MODELS,
        update_models: Mapping[str, type[RecordUpdate]] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        for name in collections:
            if not _COLLECTION_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid collection name: {name!r}")

        self.path = resolve_database_path(path, env=env)
        self._models: dict[str, type[Record]] = dict(collections)
        self._update_models: dict[str, type[RecordUpdate]] = {
            name: _update_model_for(name, model, update_models or {}) for name, model in self._models.items()
        }
        self._connection: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self.init_error: Exception | None = None

    @property
    def collections(self) -> tuple[str, ...]:
        return tuple(self._models)

    @property
    def available(self) -> bool:
        return self._connection is not None

    def model_for(self, collection: str) -> type[Record]:
        """Return the record model of ``collection`` or raise ``UnknownCollection``."""

        try:
            return self._models[collection]
        except KeyError:
            raise UnknownCollection(collection) from None

    async def open(self) -> "RecordStore":
        """Open the database. Failures leave the store in degraded mode instead of raising."""

        if self._connection is not None:
            return self

        try:
            self._connection = await asyncio.to_thread(self._open_connection)
        except (OSError, sqlite3.Error) as exc:
            self.init_error = exc
            LOGGER.warning("Record store at %s is unavailable: %s", self.path, exc)
        else:
            self.init_error = None
            LOGGER.info("Opened record store at %s", self.path)
        return self

    async def close(self) -> None:
        connection = self._connection
        if connection is None:
            return

        async with self._lock:
            self._connection = None
            await asyncio.to_thread(connection.close)
        LOGGER.info("Closed record store at %s", self.path)

    async def __aenter__(self) -> "RecordStore":
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def list_all(self, collection: str) -> list[Record]:
        """Return every record in insertion order; empty for unknown collections or an unavailable store."""

        model = self._models.get(collection)
        if model is None:
            LOGGER.debug("Listing unknown collection %r returns nothing", collection)
            return []
        if self._connection is None:
            LOGGER.debug("Record store unavailable, listing %r returns nothing", collection)
            return []

        rows = await self._run(self._select_all, collection)
        try:
            return [model.model_validate_json(payload) for payload in rows]
        except ValueError as exc:
            raise StorageError(f"Corrupt record in {collection!r}: {exc}") from exc

    async def get(self, collection: str, record_id: str) -> Record:
        """Fetch one record by id or raise ``NotFound``."""

        model = self.model_for(collection)
        payload = await self._run(self._select_one, collection, record_id)
        if payload is None:
            raise NotFound(collection, record_id)
        return model.model_validate_json(payload)

    async def insert(self, collection: str, record: Record | Mapping[str, Any]) -> Record:
        """Validate and store a new record, keeping a caller-supplied id."""

        stored = self._coerce_record(collection, record)
        await self._run(self._insert_rows, collection, [stored], False)
        LOGGER.debug("Inserted %s into %s", stored.id, collection)
        return stored

    async def update(
        self,
        collection: str,
        record_id: str,
        changes: RecordUpdate | Mapping[str, Any],
    ) -> Record:
        """Merge the set fields of ``changes`` into an existing record; ``id`` and ``created_at`` never change."""

        validated = self._coerce_changes(collection, changes)
        updated = await self._run(self._update_row, collection, record_id, validated)
        LOGGER.debug("Updated %s in %s", record_id, collection)
        return updated

    async def remove(self, collection: str, record_id: str) -> bool:
        """Delete a record. Returns ``False`` when nothing matched."""

        self.model_for(collection)
        removed = await self._run(self._delete_row, collection, record_id)
        if not removed:
            LOGGER.debug("Nothing removed for %s in %s", record_id, collection)
        return removed

    async def replace_all(self, collection: str, records: Iterable[Record | Mapping[str, Any]]) -> int:
        """Swap the whole collection for ``records`` inside one transaction.

        Records keep their ids and timestamps. If any record fails the
        transaction is rolled back and the previous contents remain.
        """

        stored = [self._coerce_record(collection, record) for record in records]
        await self._run(self._insert_rows, collection, stored, True)
        LOGGER.info("Replaced %s with %d records", collection, len(stored))
        return len(stored)

    def _coerce_record(self, collection: str, record: Record | Mapping[str, Any]) -> Record:
        model = self.model_for(collection)
        if isinstance(record, model):
            return record
        if isinstance(record, Mapping):
            return model.model_validate(dict(record))
        if isinstance(record, BaseModel):
            raise TypeError(f"{type(record).__name__} cannot be stored in {collection!r}")
        raise TypeError(f"Unsupported record type: {type(record).__name__}")

    def _coerce_changes(self, collection: str, changes: RecordUpdate | Mapping[str, Any]) -> RecordUpdate:
        self.model_for(collection)
        update_model = self._update_models[collection]
        if isinstance(changes, update_model):
            return changes
        if isinstance(changes, Mapping):
            return update_model.model_validate(dict(changes))
        raise TypeError(f"Unsupported update type: {type(changes).__name__}")

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            connection = self._connection
            if connection is None:
                raise StorageUnavailable(f"Record store at {self.path} is unavailable: {self.init_error}")
            try:
                return await asyncio.to_thread(func, connection, *args)
            except sqlite3.Error as exc:
                raise StorageError(str(exc)) from exc

    def _open_connection(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(self.path, check_same_thread=False)
        try:
            with connection:
                for name in self._models:
                    connection.execute(
                        f"""
                        CREATE TABLE IF NOT EXISTS "{name}" (
                            seq INTEGER PRIMARY KEY AUTOINCREMENT,
                            id TEXT NOT NULL UNIQUE,
                            payload TEXT NOT NULL
                        )
                        """
                    )
        except sqlite3.Error:
            connection.close()
            raise
        return connection

    @staticmethod
    def _select_all(connection: sqlite3.Connection, collection: str) -> list[str]:
        rows = connection.execute(f'SELECT payload FROM "{collection}" ORDER BY seq').fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _select_one(connection: sqlite3.Connection, collection: str, record_id: str) -> str | None:
        row = connection.execute(f'SELECT payload FROM "{collection}" WHERE id = ?', (record_id,)).fetchone()
        return row[0] if row else None

    @staticmethod
    def _insert_rows(
        connection: sqlite3.Connection, collection: str, records: list[Record], clear_first: bool
    ) -> None:
        with connection:
            if clear_first:
                connection.execute(f'DELETE FROM "{collection}"')
            for record in records:
                try:
                    connection.execute(
                        f'INSERT INTO "{collection}" (id, payload) VALUES (?, ?)',
                        (record.id, record.model_dump_json(by_alias=True)),
                    )
                except sqlite3.IntegrityError:
                    raise DuplicateKey(collection, record.id) from None

    def _update_row(
        self, connection: sqlite3.Connection, collection: str, record_id: str, changes: RecordUpdate
    ) -> Record:
        model = self.model_for(collection)
        with connection:
            payload = self._select_one(connection, collection, record_id)
            if payload is None:
                raise NotFound(collection, record_id)
            updated = apply_update(model.model_validate_json(payload), changes)
            connection.execute(
                f'UPDATE "{collection}" SET payload = ? WHERE id = ?',
                (updated.model_dump_json(by_alias=True), record_id),
            )
        return updated

    @staticmethod
    def _delete_row(connection: sqlite3.Connection, collection: str, record_id: str) -> bool:
        with connection:
            cursor = connection.execute(f'DELETE FROM "{collection}" WHERE id = ?', (record_id,))
        return cursor.rowcount > 0


__all__ = [
    "RecordStore",
    "resolve_data_directory",
    "resolve_database_path",
    "DATA_DIR_ENV_VAR",
    "APP_FOLDER_NAME",
    "DEFAULT_DATABASE_FILENAME",
]
