"""
Key/value cache with expiry.

Two interchangeable stores: an in-process one for single-instance
deployments and a database-backed one shared by every instance.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from categorag.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CacheError(Exception):
    """Raised when the backing store cannot be read or written."""
    pass


class CacheStore(ABC):
    """Interface every cache backend implements."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix`` and return how many were removed."""


class MemoryCacheStore(CacheStore):
    """Process-local store. Expired entries are dropped lazily on read."""

    def __init__(self, clock: Clock = datetime.utcnow):
        self._clock = clock
        self._data: Dict[str, Tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at <= self._clock():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + timedelta(seconds=ttl_seconds))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
            for k in keys:
                del self._data[k]
            return len(keys)


class DatabaseCacheStore(CacheStore):
    """
    Store backed by the ``cache_entries`` table.

    Opens a short-lived session per call. Driver timeouts come from the
    engine's connect args; any SQLAlchemy failure surfaces as CacheError.
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = datetime.utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def _session(self) -> Session:
        return self._session_factory()

    def get(self, key: str) -> Optional[str]:
        db = self._session()
        try:
            entry = db.get(CacheEntry, key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                db.delete(entry)
                db.commit()
                return None
            return entry.value
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Cache read failed for {key}: {e}") from e
        finally:
            db.close()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        db = self._session()
        try:
            expires_at = self._clock() + timedelta(seconds=ttl_seconds)
            entry = db.get(CacheEntry, key)
            if entry is None:
                db.add(CacheEntry(key=key, value=value, expires_at=expires_at))
            else:
                entry.value = value
                entry.expires_at = expires_at
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Cache write failed for {key}: {e}") from e
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self._session()
        try:
            db.query(CacheEntry).filter(CacheEntry.key == key).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Cache delete failed for {key}: {e}") from e
        finally:
            db.close()

    def delete_prefix(self, prefix: str) -> int:
        db = self._session()
        try:
            deleted = db.query(CacheEntry).filter(
                CacheEntry.key.startswith(prefix, autoescape=True)
            ).delete(synchronize_session=False)
            db.commit()
            return deleted
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Cache prefix delete failed for {prefix}: {e}") from e
        finally:
            db.close()

    def purge_expired(self) -> int:
        """Remove every expired row. Not needed for correctness, only for table size."""
        db = self._session()
        try:
            deleted = db.query(CacheEntry).filter(
                CacheEntry.expires_at <= self._clock()
            ).delete(synchronize_session=False)
            db.commit()
            if deleted:
                logger.info("Purged %d expired cache entries", deleted)
            return deleted
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Cache purge failed: {e}") from e
        finally:
            db.close()
