"""
cache/store.py -- Key-value backends for the region cache.

Two interchangeable stores with the same method surface:

  SQLCacheStore   -- one table on any SQLAlchemy URL (SQLite by default).
                     Expiry is checked on read, and purge_expired() trims
                     dead rows in bulk.
  RedisCacheStore -- redis-py; keys laid out as "<region>::<key>" with a
                     native EX expiry. Region eviction walks SCAN results so
                     it never blocks the server the way KEYS would.

Values are stored as JSON text. Every backend failure is re-raised as
CacheStoreError so CacheService only has one exception type to handle.

Usage:
    store = open_cache_store("")                         # SQL on the app DB
    store = open_cache_store("redis://localhost:6379/0") # Redis
    store.set("products", "0_50_product_id_asc", page, ttl=7200)
    store.get("products", "0_50_product_id_asc")
    store.clear_region("products")
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import redis
from redis.exceptions import RedisError
from sqlalchemy import Column, Float, MetaData, String, Table, Text, create_engine, delete, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

_KEY_SEPARATOR = "::"

_metadata = MetaData()

_entries = Table(
    "cache_entries",
    _metadata,
    Column("region", String(64), primary_key=True),
    Column("cache_key", String(512), primary_key=True),
    Column("data", Text, nullable=False),
    Column("expires_at", Float, nullable=False),  # epoch seconds
)


class CacheStoreError(Exception):
    """The backing store failed (connection refused, locked DB, timeout...)."""


def _decode(data: str) -> Any:
    try:
        return json.loads(data)
    except ValueError as exc:
        raise CacheStoreError(f"Corrupt cache entry: {exc}") from exc


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SQLCacheStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def get(self, region: str, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or an expired row."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(_entries.c.data, _entries.c.expires_at).where(
                        (_entries.c.region == region) & (_entries.c.cache_key == key)
                    )
                ).fetchone()
                if row is None:
                    return None
                if row.expires_at <= time.time():
                    conn.execute(
                        delete(_entries).where((_entries.c.region == region) & (_entries.c.cache_key == key))
                    )
                    conn.commit()
                    return None
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc)) from exc
        return _decode(row.data)

    def set(self, region: str, key: str, value: Any, ttl: int) -> None:
        """Store value under (region, key), replacing any existing entry."""
        payload = json.dumps(value)
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(_entries).where((_entries.c.region == region) & (_entries.c.cache_key == key)))
                conn.execute(
                    _entries.insert().values(
                        region=region,
                        cache_key=key,
                        data=payload,
                        expires_at=time.time() + ttl,
                    )
                )
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc)) from exc

    def delete(self, region: str, key: str) -> bool:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    delete(_entries).where((_entries.c.region == region) & (_entries.c.cache_key == key))
                )
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc)) from exc
        return result.rowcount > 0

    def clear_region(self, region: str) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(_entries).where(_entries.c.region == region))
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc)) from exc
        return result.rowcount

    def purge_expired(self) -> int:
        """Delete all rows past their expiry. Returns number of rows removed."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(_entries).where(_entries.c.expires_at <= time.time()))
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc)) from exc
        return result.rowcount

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


class RedisCacheStore:
    def __init__(self, url: str, client: Optional[redis.Redis] = None) -> None:
        self.redis = client or redis.Redis.from_url(url, decode_responses=True)

    @staticmethod
    def _key(region: str, key: str) -> str:
        return f"{region}{_KEY_SEPARATOR}{key}"

    def get(self, region: str, key: str) -> Optional[Any]:
        try:
            raw = self.redis.get(self._key(region, key))
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        return _decode(raw) if raw is not None else None

    def set(self, region: str, key: str, value: Any, ttl: int) -> None:
        try:
            self.redis.set(self._key(region, key), json.dumps(value), ex=ttl)
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc

    def delete(self, region: str, key: str) -> bool:
        try:
            return bool(self.redis.delete(self._key(region, key)))
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc

    def clear_region(self, region: str) -> int:
        removed = 0
        try:
            batch: list[str] = []
            for name in self.redis.scan_iter(match=f"{region}{_KEY_SEPARATOR}*", count=500):
                batch.append(name)
                if len(batch) >= 500:
                    removed += self.redis.delete(*batch)
                    batch = []
            if batch:
                removed += self.redis.delete(*batch)
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        return removed

    def purge_expired(self) -> int:
        # Redis expires keys natively.
        return 0

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except RedisError:
            return False

    def close(self) -> None:
        self.redis.close()


def open_cache_store(cache_url: str, database_url: str = "") -> SQLCacheStore | RedisCacheStore:
    """Pick a backend from the configured URL.

    redis:// and rediss:// URLs select Redis; anything else (including the
    empty default) is treated as a SQLAlchemy URL, falling back to the
    application database.
    """
    if cache_url.startswith(("redis://", "rediss://", "unix://")):
        return RedisCacheStore(cache_url)
    return SQLCacheStore(cache_url or database_url)
