"""
Response caches consulted by agents before calling the LLM.

Keys are produced by :func:`make_cache_key`: a sha256 over the agent id,
agent version, analysis depth and the canonical JSON of the input. Values are
plain JSON-compatible dicts; agents re-validate them on read.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.ai.errors import CacheError, ConfigurationError
from app.database import crud
from app.database.database import SessionLocal

logger = logging.getLogger(__name__)

KEY_PREFIX = "ai-agent:"


def make_cache_key(agent_id: str, version: str, analysis_depth: str, payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(
        ("%s|%s|%s|%s" % (agent_id, version, analysis_depth, canonical)).encode("utf-8")
    ).hexdigest()
    return "%s:%s" % (agent_id, digest)


class CacheProvider:
    name = "base"

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class NullCacheProvider(CacheProvider):
    name = "none"

    def get(self, key):
        return None

    def set(self, key, value, ttl=3600):
        return None

    def invalidate(self, key):
        return None

    def clear(self):
        return None


class MemoryCacheProvider(CacheProvider):
    """
    Process-local TTL cache.

    An expired entry is dropped when it is read, and every write sweeps all
    expired entries once the earliest expiry has passed, so keys that are
    never read again do not pile up.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._next_expiry = float("inf")
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        full_key = KEY_PREFIX + key
        with self._lock:
            entry = self._entries.get(full_key)
            if entry is not None and self._clock() >= entry[0]:
                del self._entries[full_key]
                self._evictions += 1
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            raw = entry[1]
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        # Stored as JSON text so callers never share mutable state with the cache.
        raw = json.dumps(value, default=str)
        with self._lock:
            now = self._clock()
            if now >= self._next_expiry:
                self._sweep(now)
            expires_at = now + ttl
            self._entries[KEY_PREFIX + key] = (expires_at, raw)
            self._next_expiry = min(self._next_expiry, expires_at)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(KEY_PREFIX + key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._next_expiry = float("inf")

    def stats(self) -> Dict[str, int]:
        with self._lock:
            self._sweep(self._clock())
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _sweep(self, now: float) -> None:
        # caller holds the lock
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        self._evictions += len(expired)
        self._next_expiry = min((e for e, _ in self._entries.values()), default=float("inf"))
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))

    def __len__(self) -> int:
        return len(self._entries)


class DatabaseCacheProvider(CacheProvider):
    """Cache rows in the ``agent_cache`` table so entries survive restarts."""

    name = "database"

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            record = crud.get_cache_record(db, KEY_PREFIX + key)
            if record is None:
                return None
            if _as_aware(record.expires_at) <= datetime.now(timezone.utc):
                crud.delete_cache_record(db, KEY_PREFIX + key)
                return None
            return record.value
        except SQLAlchemyError as e:
            raise CacheError("Cache read failed for %s: %s" % (key, e)) from e
        finally:
            db.close()

    def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        db = self.session_factory()
        try:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            crud.upsert_cache_record(db, KEY_PREFIX + key, value, expires_at)
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError("Cache write failed for %s: %s" % (key, e)) from e
        finally:
            db.close()

    def invalidate(self, key: str) -> None:
        db = self.session_factory()
        try:
            crud.delete_cache_record(db, KEY_PREFIX + key)
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError("Cache invalidate failed for %s: %s" % (key, e)) from e
        finally:
            db.close()

    def clear(self) -> None:
        db = self.session_factory()
        try:
            crud.clear_cache_records(db)
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError("Cache clear failed: %s" % e) from e
        finally:
            db.close()


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_cache_provider(kind: str, session_factory: Optional[Callable[[], Session]] = None) -> CacheProvider:
    kind = (kind or "none").strip().lower()
    if kind == "memory":
        return MemoryCacheProvider()
    if kind in ("none", "null", ""):
        return NullCacheProvider()
    if kind == "database":
        if session_factory is None:
            session_factory = SessionLocal
        return DatabaseCacheProvider(session_factory)
    raise ConfigurationError("Unsupported cache provider: %r" % kind)
