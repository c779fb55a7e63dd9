"""SQLite-backed durable cache provider.

Second tier of the Cache decorator: survives restarts so that a warm cache
keeps the process from re-querying rate-limited providers.  Uses
``aiosqlite`` for async I/O and opens a short-lived connection per
operation.

Values are stored as JSON text.  Pydantic models are dumped with
``model_dump(mode="json")``, so an :class:`~gittrends_geocoder.models.address.Address`
reads back as a plain ``dict``; the Cache decorator re-validates it.
``False`` (the negative-result sentinel) round-trips as JSON ``false``.
Rows whose ``expires_at`` lies in the past read as absent and are deleted
on access.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import time
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import BaseModel

from gittrends_geocoder.interfaces.cache_provider import ICacheProvider
from gittrends_geocoder.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "sqlite-cache"

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS geocoder_cache (
    key         TEXT PRIMARY KEY,
    value_json  TEXT NOT NULL,
    expires_at  REAL
);
"""

_CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_geocoder_cache_expires ON geocoder_cache(expires_at);"
)

_UPSERT_SQL = """\
INSERT INTO geocoder_cache (key, value_json, expires_at)
VALUES (?, ?, ?)
ON CONFLICT(key)
DO UPDATE SET value_json = excluded.value_json,
              expires_at = excluded.expires_at;
"""

_SELECT_SQL = "SELECT value_json, expires_at FROM geocoder_cache WHERE key = ?;"

_DELETE_SQL = "DELETE FROM geocoder_cache WHERE key = ?;"

_PURGE_EXPIRED_SQL = (
    "DELETE FROM geocoder_cache WHERE expires_at IS NOT NULL AND expires_at <= ?;"
)


def _encode(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, ensure_ascii=False)


class SQLiteCacheProvider(ICacheProvider):
    """Durable key-value cache in a single SQLite table.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file; parent directories are created.
    ttl:
        Default time-to-live in seconds.  ``None`` or ``0`` never expires.
    """

    def __init__(self, db_path: str | Path, ttl: float | None = None) -> None:
        self._db_path = Path(db_path).expanduser()
        self._ttl = ttl if ttl else None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the table and purge expired rows.  Safe to call repeatedly."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiosqlite.connect(str(self._db_path)) as db:
                    await db.execute(_CREATE_TABLE_SQL)
                    await db.execute(_CREATE_INDEX_SQL)
                    cursor = await db.execute(_PURGE_EXPIRED_SQL, (time.time(),))
                    purged = cursor.rowcount
                    await db.commit()
            except (sqlite3.Error, OSError) as exc:
                raise StorageError("initialize", provider_name=_PROVIDER_NAME, cause=exc) from exc
            self._initialized = True
        logger.info(
            "sqlite_cache_initialized",
            path=str(self._db_path),
            purged=max(purged, 0),
        )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        await self.initialize()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_SELECT_SQL, (key,))
                row = await cursor.fetchone()
                if row is None:
                    return None
                value_json, expires_at = row
                if expires_at is not None and expires_at <= time.time():
                    await db.execute(_DELETE_SQL, (key,))
                    await db.commit()
                    logger.debug("sqlite_cache_expired", key=key)
                    return None
        except (sqlite3.Error, OSError) as exc:
            raise StorageError("get", provider_name=_PROVIDER_NAME, cause=exc) from exc

        try:
            return json.loads(value_json)
        except ValueError as exc:
            raise StorageError("decode", provider_name=_PROVIDER_NAME, cause=exc) from exc

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        effective_ttl = ttl if ttl else self._ttl
        expires_at = time.time() + effective_ttl if effective_ttl else None
        try:
            payload = _encode(value)
        except (TypeError, ValueError) as exc:
            raise StorageError("encode", provider_name=_PROVIDER_NAME, cause=exc) from exc

        await self.initialize()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, (key, payload, expires_at))
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            raise StorageError("set", provider_name=_PROVIDER_NAME, cause=exc) from exc
        logger.debug("sqlite_cache_set", key=key)

    async def delete(self, key: str) -> None:
        await self.initialize()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_DELETE_SQL, (key,))
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            raise StorageError("delete", provider_name=_PROVIDER_NAME, cause=exc) from exc

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None
