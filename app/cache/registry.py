"""
Explicitly owned set of named caches.

A CacheRegistry is created by whoever owns the process or request scope
(the FastAPI lifespan, a worker, a test) and disposed by the same owner.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

from config.settings import Settings

from .core import CacheConfig
from .manager import AsyncResultCache
from .ttl_policies import EndpointCategory, get_config_for_category

logger = logging.getLogger("cache.registry")

DEFAULT_CACHE = "default"
FEATURES_CACHE = "features"
GLOBAL_SETTINGS_CACHE = "global_settings"

# Cache key used for the global settings document
GLOBAL_SETTINGS_CACHE_KEY = "global-settings"


def features_list_key(project_path: str, filter_key: str = "all") -> str:
    """Cache key for a project's feature list."""
    return f"list:{project_path}:{filter_key}"


def features_summaries_key(project_path: str, filter_key: str = "all") -> str:
    """Cache key for a project's feature summaries."""
    return f"list-summaries:{project_path}:{filter_key}"


class CacheRegistry:
    """
    Holds the caches shared by one application instance.

    Built-in caches:
    - default: generic cache configured from the cache_* settings
    - features: feature list/summary responses, invalidated per project
    - global_settings: the global settings document, invalidated on save
    """

    def __init__(self, settings: Settings):
        self._caches: Dict[str, AsyncResultCache] = {}
        self._lock = threading.Lock()
        self._disposed = False

        self.register(DEFAULT_CACHE, AsyncResultCache(CacheConfig(
            default_ttl=settings.cache_default_ttl_seconds,
            enable_swr=settings.cache_enable_swr,
            swr_window=settings.cache_swr_window_seconds,
            cleanup_interval=settings.cache_cleanup_interval_seconds,
            max_entries=settings.cache_max_entries,
            name=DEFAULT_CACHE,
        )))
        self.register(FEATURES_CACHE, AsyncResultCache(get_config_for_category(
            EndpointCategory.FEATURES,
            default_ttl=settings.features_cache_ttl_seconds,
            max_entries=settings.features_cache_max_entries,
            name=FEATURES_CACHE,
        )))
        self.register(GLOBAL_SETTINGS_CACHE, AsyncResultCache(CacheConfig(
            default_ttl=settings.global_settings_cache_ttl_seconds,
            enable_swr=settings.global_settings_cache_swr,
            name=GLOBAL_SETTINGS_CACHE,
        )))

    @property
    def features(self) -> AsyncResultCache:
        return self._caches[FEATURES_CACHE]

    @property
    def global_settings(self) -> AsyncResultCache:
        return self._caches[GLOBAL_SETTINGS_CACHE]

    def register(self, name: str, cache: AsyncResultCache) -> AsyncResultCache:
        """
        Add a cache under a name. The registry takes ownership of it.

        Raises:
            ValueError: If the name is taken or the registry is disposed
        """
        with self._lock:
            if self._disposed:
                raise ValueError("Cannot register a cache on a disposed registry")
            if name in self._caches:
                raise ValueError(f"Cache already registered: {name}")
            self._caches[name] = cache
        logger.debug(f"Registered cache: {name}")
        return cache

    def get(self, name: str) -> Optional[AsyncResultCache]:
        with self._lock:
            return self._caches.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._caches.keys())

    def invalidate_features(self, project_path: str) -> int:
        """
        Invalidate all cached feature lists and summaries for a project.

        Call after any successful feature mutation.

        Returns:
            Number of cache entries invalidated
        """
        return self.features.invalidate_by(lambda key: project_path in key)

    def invalidate_global_settings(self) -> bool:
        """Drop the cached global settings document after a save."""
        return self.global_settings.delete(GLOBAL_SETTINGS_CACHE_KEY)

    def clear_all(self) -> int:
        """Clear every cache. Returns total entries cleared."""
        with self._lock:
            caches = list(self._caches.values())
        return sum(cache.clear() for cache in caches)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            caches = dict(self._caches)
        return {name: cache.get_stats() for name, cache in caches.items()}

    def dispose(self) -> None:
        """Dispose every cache. Safe to call more than once."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            caches = list(self._caches.values())
        for cache in caches:
            cache.dispose()
        logger.info(f"Disposed {len(caches)} caches")
