"""
Caching layer for permadoc library.

This module provides a bounded in-memory LRU cache of confirmed documents,
keyed by transaction id, and the validity rule deciding when a cached
document can be trusted instead of asking the ledger.
"""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from loguru import logger

from .config import DEFAULT_CACHE_SIZE
from .document import Document


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Set value in cache."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    def clear(self) -> bool:
        """Clear all cache entries."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        pass


class MemoryCache(CacheBackend):
    """In-memory cache with least-recently-used eviction."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        """
        Initialize memory cache.

        Args:
            max_size: Maximum number of entries; 0 disables caching
        """
        if max_size < 0:
            raise ValueError("Cache size must be >= 0")
        self.cache: "OrderedDict[str, Any]" = OrderedDict()
        self.max_size = max_size
        self.evictions = 0
        self._lock = threading.Lock()
        logger.info(f"Memory cache initialized (max_size={max_size})")

    def get(self, key: str) -> Optional[Any]:
        """Get value from memory cache, marking it most recently used."""
        with self._lock:
            if key not in self.cache:
                return None
            self.cache.move_to_end(key)
            return self.cache[key]

    def set(self, key: str, value: Any) -> bool:
        """Set value in memory cache, evicting the least recently used entry on overflow."""
        if self.max_size == 0:
            return False

        with self._lock:
            self.cache[key] = value
            self.cache.move_to_end(key)
            while len(self.cache) > self.max_size:
                evicted, _ = self.cache.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Evicted cache entry: {evicted}")
        return True

    def delete(self, key: str) -> bool:
        """Delete key from memory cache."""
        with self._lock:
            if key in self.cache:
                del self.cache[key]
                return True
            return False

    def clear(self) -> bool:
        """Clear all memory cache entries."""
        with self._lock:
            self.cache.clear()
        logger.info("Memory cache cleared")
        return True

    def exists(self, key: str) -> bool:
        """Check if key exists without touching recency."""
        with self._lock:
            return key in self.cache

    def __len__(self) -> int:
        return len(self.cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            'backend': 'memory',
            'total_entries': len(self.cache),
            'max_size': self.max_size,
            'evictions': self.evictions,
        }


class DocumentCache:
    """
    Document cache keyed by transaction id.

    A cached document is only trusted when it is posted and, if a version or
    owner was asked for, that matches exactly. Only the client inserts or evicts
    entries; callers share the returned Document objects by reference.
    """

    def __init__(self, backend: Optional[CacheBackend] = None, max_size: int = DEFAULT_CACHE_SIZE):
        """
        Initialize document cache.

        Args:
            backend: Cache backend (a MemoryCache of `max_size` if None)
            max_size: Capacity for the default backend
        """
        self.backend = backend if backend is not None else MemoryCache(max_size)
        self.hit_count = 0
        self.miss_count = 0
        self.start_time = datetime.now(timezone.utc)

        logger.info(f"DocumentCache initialized with {self.backend.__class__.__name__}")

    def get(self, transaction_id: str) -> Optional[Document]:
        """
        Get a cached document.

        Args:
            transaction_id: Ledger transaction id

        Returns:
            Document or None if not cached
        """
        document = self.backend.get(transaction_id)

        if document is not None:
            self.hit_count += 1
            logger.debug(f"Cache HIT for transaction: {transaction_id}")
        else:
            self.miss_count += 1
            logger.debug(f"Cache MISS for transaction: {transaction_id}")
        return document

    def put(self, transaction_id: str, document: Document) -> bool:
        """
        Cache a document under its transaction id.

        Returns:
            True if cached (False when caching is disabled)
        """
        success = self.backend.set(transaction_id, document)
        if success:
            logger.debug(f"Cached document '{document.name}' v{document.version} as {transaction_id}")
        return success

    def invalidate(self, transaction_id: str) -> bool:
        """Drop the entry for a transaction id."""
        success = self.backend.delete(transaction_id)
        if success:
            logger.debug(f"Invalidated cache for transaction: {transaction_id}")
        return success

    @staticmethod
    def _trusted(cached: Optional[Document], desired_version: Optional[int], owner: Optional[str]) -> bool:
        if cached is None or not cached.posted:
            return False
        if desired_version is not None and cached.version != desired_version:
            return False
        return owner is None or cached.owner == owner

    def is_valid(
        self,
        transaction_id: Optional[str],
        desired_version: Optional[int] = None,
        owner: Optional[str] = None,
    ) -> bool:
        """
        Check whether a cached entry can be trusted.

        Args:
            transaction_id: Ledger transaction id
            desired_version: Version the caller requires, if any
            owner: Address the entry must have been signed by, if any

        Returns:
            True only if the entry exists, is posted, and matches the version and owner
        """
        if not transaction_id:
            return False
        return self._trusted(self.backend.get(transaction_id), desired_version, owner)

    def get_valid(
        self,
        transaction_id: Optional[str],
        desired_version: Optional[int] = None,
        owner: Optional[str] = None,
    ) -> Optional[Document]:
        """
        Get a cached document only if it can be trusted, counting the lookup.

        Returns:
            Document or None if absent or not trusted
        """
        cached = self.backend.get(transaction_id) if transaction_id else None

        if self._trusted(cached, desired_version, owner):
            self.hit_count += 1
            logger.debug(f"Cache HIT for transaction: {transaction_id}")
            return cached

        self.miss_count += 1
        logger.debug(f"Cache MISS for transaction: {transaction_id}")
        return None

    def get_cache_stats(self) -> Dict[str, Any]:
        """
        Get cache performance statistics.

        Returns:
            Dictionary with cache statistics
        """
        total_requests = self.hit_count + self.miss_count
        hit_rate = (self.hit_count / total_requests) if total_requests > 0 else 0
        uptime = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        stats = {
            'hits': self.hit_count,
            'misses': self.miss_count,
            'total_requests': total_requests,
            'hit_rate': hit_rate,
            'uptime_seconds': uptime,
        }

        if hasattr(self.backend, 'get_stats'):
            stats.update(self.backend.get_stats())

        return stats


def create_cache(max_size: int = DEFAULT_CACHE_SIZE, backend: Optional[CacheBackend] = None) -> DocumentCache:
    """
    Create a new document cache instance.

    Args:
        max_size: Maximum number of cached documents; 0 disables caching
        backend: Optional cache backend overriding `max_size`

    Returns:
        DocumentCache instance
    """
    return DocumentCache(backend=backend, max_size=max_size)
